# pallet_tracker/api/detail_routes.py

from flask import Blueprint, jsonify, current_app

from pallet_tracker.services import task_service, pallet_operations_service as pos
from .forms import form_from_json, PartPriorityForm

detail_bp = Blueprint('details', __name__)


@detail_bp.route('/details/master/<int:order_id>/segment/<int:segment_id>')
def details_for_master(order_id, segment_id):
    """Детали заказа с количествами на участке мастера."""
    return jsonify(task_service.get_order_details_for_segment(order_id, segment_id))


@detail_bp.route('/details/master/priority', methods=['PUT'])
def update_priority():
    form = form_from_json(PartPriorityForm)
    record, created = task_service.update_part_priority_for_machine(
        form.partId.data, form.machineId.data, form.priority.data
    )
    current_app.logger.info('Priority of part %s on machine %s set to %s',
                            record.part_id, record.machine_id, record.priority)
    return jsonify({
        'status': 'success',
        'message': 'Приоритет детали создан' if created else 'Приоритет детали обновлен',
        'partId': record.part_id,
        'machineId': record.machine_id,
        'priority': record.priority,
    })


@detail_bp.route('/parts/<int:part_id>/pallets')
def part_pallets(part_id):
    return jsonify(pos.get_part_pallets(part_id))
