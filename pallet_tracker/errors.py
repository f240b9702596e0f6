# pallet_tracker/errors.py

from flask import jsonify


class ProductionError(Exception):
    """Базовая ошибка ядра маршрутизации. Несет HTTP-код для ответа API."""
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFoundError(ProductionError):
    """Запрошенная сущность (деталь, поддон, станок, маршрут, ячейка) не существует."""
    status_code = 404


class DomainViolation(ProductionError):
    """Нарушено предусловие операции, не связанное с отсутствием сущности."""
    status_code = 400


class ConsistencyFailure(DomainViolation):
    """
    Параллельное изменение сделало предусловие недействительным.
    Для клиента неотличимо от DomainViolation: нужно перечитать состояние и повторить.
    """


def register_error_handlers(app):
    """Регистрирует JSON-обработчики для доменных ошибок."""

    @app.errorhandler(ProductionError)
    def handle_production_error(error):
        app.logger.warning('%s: %s', type(error).__name__, error.message)
        body = {'status': 'error', 'message': error.message}
        # Ошибки валидации формы отдаются по полям
        if getattr(error, 'errors', None):
            body['errors'] = error.errors
        return jsonify(body), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'status': 'error', 'message': 'Ресурс не найден'}), 404
