# pallet_tracker/api/machine_routes.py

from flask import Blueprint, jsonify, request

from pallet_tracker.errors import DomainViolation
from pallet_tracker.services import task_service

machine_bp = Blueprint('machines', __name__)


@machine_bp.route('/machines/<int:machine_id>/task')
def machine_task(machine_id):
    """
    Сменное задание станка. Параметр stageId задает участок, на котором
    считаются готовое, распределенное и выполненное количество.
    """
    stage_id = request.args.get('stageId', type=int)
    tasks = task_service.get_machine_tasks(machine_id, stage_id)
    return jsonify(tasks)


@machine_bp.route('/machines-no-shifts/segment/orders')
def segment_orders():
    """Заказы участка для станков без сменного задания."""
    segment_id = request.args.get('segmentId', type=int)
    if segment_id is None:
        raise DomainViolation('Параметр segmentId обязателен')
    return jsonify(task_service.get_segment_orders(segment_id))
