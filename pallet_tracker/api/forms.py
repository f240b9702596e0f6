# pallet_tracker/api/forms.py

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import IntegerField
from wtforms.validators import InputRequired, Optional, NumberRange

from pallet_tracker.errors import DomainViolation


class JsonForm(FlaskForm):
    """Базовая форма для JSON-тела запроса. CSRF для API не используется."""

    class Meta:
        csrf = False


def form_from_json(form_class):
    """
    Создает форму из JSON-тела запроса и валидирует ее.
    Значения приводятся к строкам, как в обычной отправке формы; null считается отсутствующим полем.
    :raises FormValidationError: Если тело не прошло валидацию.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    formdata = MultiDict({key: str(value) for key, value in payload.items() if value is not None})
    form = form_class(formdata=formdata)
    if not form.validate():
        raise FormValidationError(form.errors)
    return form


class FormValidationError(DomainViolation):
    """Тело запроса не прошло валидацию формы."""

    def __init__(self, errors):
        super().__init__('Некорректные данные запроса')
        self.errors = errors


class AssignToMachineForm(JsonForm):
    palletId = IntegerField('Поддон', validators=[InputRequired(), NumberRange(min=1)])
    machineId = IntegerField('Станок', validators=[InputRequired(), NumberRange(min=1)])
    processStepId = IntegerField('Этап маршрута', validators=[InputRequired(), NumberRange(min=1)])
    operatorId = IntegerField('Оператор', validators=[Optional(), NumberRange(min=1)])


class CompleteProcessingForm(JsonForm):
    palletId = IntegerField('Поддон', validators=[InputRequired(), NumberRange(min=1)])
    machineId = IntegerField('Станок', validators=[InputRequired(), NumberRange(min=1)])
    operatorId = IntegerField('Оператор', validators=[Optional(), NumberRange(min=1)])
    segmentId = IntegerField('Участок', validators=[Optional(), NumberRange(min=1)])


class MoveToBufferForm(JsonForm):
    palletId = IntegerField('Поддон', validators=[InputRequired(), NumberRange(min=1)])
    bufferCellId = IntegerField('Ячейка буфера', validators=[InputRequired(), NumberRange(min=1)])


class ChangeRouteForm(JsonForm):
    routeId = IntegerField('Маршрут', validators=[InputRequired(), NumberRange(min=1)])


class PartPriorityForm(JsonForm):
    partId = IntegerField('Деталь', validators=[InputRequired(), NumberRange(min=1)])
    machineId = IntegerField('Станок', validators=[InputRequired(), NumberRange(min=1)])
    priority = IntegerField('Приоритет', validators=[InputRequired(), NumberRange(min=0)])
