# pallet_tracker/api/pallet_routes.py

from flask import Blueprint, jsonify

from pallet_tracker.services import pallet_operations_service as pos
from pallet_tracker.services.buffer_service import move_pallet_to_buffer
from .forms import form_from_json, AssignToMachineForm, CompleteProcessingForm, MoveToBufferForm

pallet_bp = Blueprint('pallet_operations', __name__, url_prefix='/pallet-operations')


@pallet_bp.route('/assign-to-machine', methods=['POST'])
def assign_to_machine():
    """
    Назначает поддон на станок. Если поддон уже в работе на этом этапе,
    операция переносится на новый станок.
    """
    form = form_from_json(AssignToMachineForm)
    assignment, retargeted = pos.assign_pallet_to_machine(
        form.palletId.data, form.machineId.data, form.processStepId.data, form.operatorId.data
    )
    message = (f"Поддон {assignment.pallet.name} перенесен на станок {assignment.machine.name}" if retargeted
               else f"Поддон {assignment.pallet.name} назначен на станок {assignment.machine.name}")
    return jsonify({'status': 'success', 'message': message, 'operation': pos.operation_to_dict(assignment)})


@pallet_bp.route('/update-status', methods=['POST'])
def complete_processing():
    """Завершает обработку поддона на станке и переводит его на следующий этап."""
    form = form_from_json(CompleteProcessingForm)
    assignment, next_stage = pos.complete_pallet_processing(
        form.palletId.data, form.machineId.data, form.operatorId.data, form.segmentId.data
    )
    return jsonify({
        'status': 'success',
        'message': f"Обработка поддона {assignment.pallet.name} завершена",
        'operation': pos.operation_to_dict(assignment),
        'nextStep': {
            'routeStageId': next_stage.id,
            'stageName': next_stage.display_name,
            'sequenceNumber': next_stage.sequence_number,
        } if next_stage else None,
    })


@pallet_bp.route('/move-to-buffer', methods=['POST'])
def move_to_buffer():
    form = form_from_json(MoveToBufferForm)
    pallet, cell = move_pallet_to_buffer(form.palletId.data, form.bufferCellId.data)
    return jsonify({
        'status': 'success',
        'message': f"Поддон {pallet.name} перемещен в ячейку {cell.code}",
        'palletId': pallet.id,
        'bufferCell': {'cellId': cell.id, 'code': cell.code, 'status': cell.status.name},
    })


@pallet_bp.route('/active')
def active_operations():
    return jsonify(pos.get_active_operations())


@pallet_bp.route('/pallets/<int:pallet_id>/history')
def pallet_history(pallet_id):
    return jsonify(pos.get_pallet_operation_history(pallet_id))
