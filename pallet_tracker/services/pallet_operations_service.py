# pallet_tracker/services/pallet_operations_service.py

from datetime import datetime, timezone
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from pallet_tracker import db
from pallet_tracker.errors import NotFoundError, DomainViolation, ConsistencyFailure
from pallet_tracker.models import (Pallet, Part, Machine, MachineStatus, MachineAssignment, OperationStatus,
                                   RouteStage, Stage, User, TaskStatus, PalletStageProgress, AuditLog)
from . import progress_service as progress
from . import eligibility_service as eligibility
from .route_service import get_first_route_stage, get_next_route_stage
from .notification_service import send_room_notification, Events, Rooms


def _get_or_404(model, object_id, message):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(message)
    return obj


def _commit(action_description):
    """
    Фиксирует транзакцию. Нарушение ограничений БД при фиксации означает,
    что состояние изменил параллельный запрос.
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.error('Integrity error while %s: %s', action_description, e)
        raise ConsistencyFailure(
            f"Состояние поддона изменилось во время операции ({action_description}). Обновите данные и повторите."
        )
    except Exception:
        db.session.rollback()
        raise


def _close_assignment(assignment, operator_id, completed_at):
    """
    Переводит операцию в COMPLETED условным UPDATE по статусу IN_PROGRESS.
    Если строку уже закрыл другой запрос, транзакция откатывается и выбрасывается ConsistencyFailure.
    """
    assignment_id = assignment.id
    updated = MachineAssignment.query.filter_by(
        id=assignment_id,
        status=OperationStatus.IN_PROGRESS
    ).update({
        MachineAssignment.status: OperationStatus.COMPLETED,
        MachineAssignment.completed_at: completed_at,
        MachineAssignment.operator_id: operator_id,
    }, synchronize_session='fetch')
    if updated == 0:
        db.session.rollback()
        current_app.logger.warning('Operation %s was already closed by a concurrent request', assignment_id)
        raise ConsistencyFailure(
            f"Операция {assignment_id} уже завершена другим запросом. Обновите данные и повторите."
        )


def create_pallets_for_part(part, quantities, name_prefix=None):
    """
    Создает поддоны для детали. Каждый поддон начинает с первого этапа маршрута.
    :param part: Экземпляр Part.
    :param quantities: Список количеств по поддонам.
    :param name_prefix: Префикс имени поддона (по умолчанию код детали).
    :return: Список созданных Pallet.
    """
    first_stage = get_first_route_stage(part.route)
    prefix = name_prefix or part.code
    offset = len(part.pallets)
    pallets = []
    for i, quantity in enumerate(quantities, start=1):
        if quantity <= 0:
            raise DomainViolation(f"Количество на поддоне должно быть положительным, получено {quantity}")
        pallet = Pallet(
            part=part,
            name=f"{prefix}-{offset + i}",
            quantity=quantity,
            current_step_id=first_stage.id if first_stage else None
        )
        db.session.add(pallet)
        pallets.append(pallet)
    db.session.flush()
    return pallets


def assign_pallet_to_machine(pallet_id, machine_id, route_stage_id, operator_id=None):
    """
    Назначает поддон на станок для этапа маршрута.
    Если поддон уже в работе на этом этапе, операция переносится на новый станок
    без создания дубликата и без потери прогресса.
    :return: Кортеж (MachineAssignment, True если операция перенесена с другого станка).
    """
    current_app.logger.info('Assigning pallet %s to machine %s (route stage %s)', pallet_id, machine_id, route_stage_id)

    pallet = _get_or_404(Pallet, pallet_id, f"Поддон с ID {pallet_id} не найден")
    machine = _get_or_404(Machine, machine_id, f"Станок с ID {machine_id} не найден")
    route_stage = _get_or_404(RouteStage, route_stage_id, f"Этап маршрута с ID {route_stage_id} не найден")
    if operator_id is not None:
        _get_or_404(User, operator_id, f"Оператор с ID {operator_id} не найден")

    if machine.status != MachineStatus.ACTIVE:
        raise DomainViolation(
            f"Станок {machine.name} (ID: {machine.id}) не готов к работе. Текущий статус: {machine.status.name}"
        )
    if pallet.part.route_id != route_stage.route_id:
        raise DomainViolation(
            f"Этап маршрута {route_stage.id} не входит в маршрут детали {pallet.part.code}"
        )
    if pallet.current_step_id is None:
        raise DomainViolation(f"Поддон {pallet.name} не имеет текущего этапа: маршрут пройден или не назначен")
    if route_stage.id != pallet.current_step_id:
        raise DomainViolation(
            f"Этап {route_stage.display_name} не является текущим этапом поддона {pallet.name}"
        )
    if not machine.can_process(route_stage):
        raise DomainViolation(f"Станок {machine.name} не может выполнять этап {route_stage.display_name}")

    existing = MachineAssignment.query.filter_by(
        pallet_id=pallet.id,
        route_stage_id=route_stage.id,
        status=OperationStatus.IN_PROGRESS
    ).order_by(MachineAssignment.id.desc()).first()

    if existing is not None:
        previous_machine_id = existing.machine_id
        existing.machine_id = machine.id
        if operator_id is not None:
            existing.operator_id = operator_id
        assignment = existing
        details = f"Поддон {pallet.name} перемещен со станка {previous_machine_id} на станок {machine.name}."
    else:
        assignment = MachineAssignment(
            pallet_id=pallet.id,
            machine_id=machine.id,
            route_stage_id=route_stage.id,
            operator_id=operator_id,
            status=OperationStatus.IN_PROGRESS
        )
        db.session.add(assignment)
        progress.append_stage_progress(pallet.id, route_stage.id, TaskStatus.IN_PROGRESS)
        details = f"Поддон {pallet.name} назначен на станок {machine.name}, этап {route_stage.display_name}."

    db.session.add(AuditLog(
        part_id=pallet.part_id,
        pallet_id=pallet.id,
        user_id=operator_id,
        action="Назначение на станок",
        details=details,
        category='pallet'
    ))
    _commit('assign to machine')

    retargeted = existing is not None
    current_app.logger.info(
        '%s operation %s for pallet %s on machine %s',
        'Retargeted' if retargeted else 'Created', assignment.id, pallet.id, machine.id
    )
    send_room_notification(
        Events.PALLET_EVENT,
        details,
        {'action': 'assigned', 'palletId': pallet.id, 'machineId': machine.id, 'operationId': assignment.id}
    )
    return assignment, retargeted


def complete_pallet_processing(pallet_id, machine_id, operator_id=None, segment_id=None):
    """
    Завершает обработку поддона на станке и переводит его на следующий этап маршрута.
    Все изменения фиксируются одной транзакцией: либо все, либо ничего.
    :param pallet_id: ID поддона.
    :param machine_id: ID станка.
    :param operator_id: ID оператора; если не задан, берется из назначения.
    :param segment_id: ID участка мастера, для которого обновляется флаг завершения детали.
    :return: Кортеж (MachineAssignment, следующий RouteStage или None).
    """
    current_app.logger.info('Completing pallet %s on machine %s', pallet_id, machine_id)

    pallet = _get_or_404(Pallet, pallet_id, f"Поддон с ID {pallet_id} не найден")
    _get_or_404(Machine, machine_id, f"Станок с ID {machine_id} не найден")
    segment = None
    if segment_id is not None:
        segment = _get_or_404(Stage, segment_id, f"Участок с ID {segment_id} не найден")
    if operator_id is not None:
        _get_or_404(User, operator_id, f"Оператор с ID {operator_id} не найден")

    if pallet.current_step_id is None:
        raise DomainViolation(f"Поддон {pallet.name} не имеет текущего этапа: маршрут пройден или не назначен")

    # Строка операции блокируется до конца транзакции, параллельное завершение ждет
    assignment = MachineAssignment.query.filter_by(
        pallet_id=pallet.id,
        machine_id=machine_id,
        route_stage_id=pallet.current_step_id,
        status=OperationStatus.IN_PROGRESS
    ).order_by(MachineAssignment.id.desc()).with_for_update().first()
    if assignment is None:
        raise DomainViolation(
            f"Не найдена активная операция для поддона {pallet_id} на станке {machine_id}"
        )

    resolved_operator_id = operator_id if operator_id is not None else assignment.operator_id
    if resolved_operator_id is None:
        raise DomainViolation(f"Не указан оператор для завершения обработки поддона {pallet_id}")

    route_stage = assignment.route_stage
    next_stage = get_next_route_stage(route_stage.route, route_stage)
    completed_at = datetime.now(timezone.utc)

    _close_assignment(assignment, resolved_operator_id, completed_at)

    try:
        progress.append_stage_progress(pallet.id, route_stage.id, TaskStatus.COMPLETED, completed_at)

        if next_stage is not None:
            pallet.current_step_id = next_stage.id
            progress.append_stage_progress(pallet.id, next_stage.id, TaskStatus.NOT_PROCESSED)
        else:
            pallet.current_step_id = None

        progress.upsert_part_route_progress(pallet.part_id, route_stage.id, completed_at)
        if segment is not None:
            segment_route_stage_ids = eligibility.route_stage_ids_for_stage(segment.id)
            progress.upsert_part_segment_progress(pallet.part_id, segment.id, segment_route_stage_ids, completed_at)

        next_description = f"следующий этап: {next_stage.display_name}" if next_stage else "маршрут пройден"
        db.session.add(AuditLog(
            part_id=pallet.part_id,
            pallet_id=pallet.id,
            user_id=resolved_operator_id,
            action="Завершение обработки",
            details=f"Поддон {pallet.name} обработан на этапе {route_stage.display_name}, {next_description}.",
            category='pallet'
        ))
    except Exception:
        db.session.rollback()
        raise
    _commit('complete processing')

    current_app.logger.info('Pallet %s completed route stage %s, next stage %s',
                            pallet.id, route_stage.id, next_stage.id if next_stage else None)
    send_room_notification(
        Events.PALLET_EVENT,
        f"Обработка поддона {pallet.name} завершена",
        {
            'action': 'completed',
            'palletId': pallet.id,
            'machineId': machine_id,
            'operationId': assignment.id,
            'nextStepId': next_stage.id if next_stage else None,
        }
    )
    if next_stage is None:
        send_room_notification(
            Events.DETAIL_EVENT,
            f"Поддон {pallet.name} прошел весь маршрут",
            {'partId': pallet.part_id, 'palletId': pallet.id},
            rooms=(Rooms.MASTER,)
        )
    return assignment, next_stage


def operation_to_dict(assignment):
    pallet = assignment.pallet
    return {
        'operationId': assignment.id,
        'status': assignment.status.name,
        'palletId': pallet.id,
        'palletName': pallet.name,
        'quantity': pallet.quantity,
        'machineId': assignment.machine_id,
        'machineName': assignment.machine.name,
        'processStepId': assignment.route_stage_id,
        'processStepName': assignment.route_stage.display_name,
        'operatorId': assignment.operator_id,
        'operatorName': assignment.operator.display_name if assignment.operator else None,
        'assignedAt': assignment.assigned_at.isoformat() if assignment.assigned_at else None,
        'completedAt': assignment.completed_at.isoformat() if assignment.completed_at else None,
    }


def get_active_operations():
    """Все операции, которые сейчас выполняются на станках."""
    assignments = MachineAssignment.query.options(
        joinedload(MachineAssignment.pallet).joinedload(Pallet.part),
        joinedload(MachineAssignment.machine),
        joinedload(MachineAssignment.route_stage).joinedload(RouteStage.stage)
    ).filter(
        MachineAssignment.status == OperationStatus.IN_PROGRESS
    ).order_by(MachineAssignment.assigned_at.desc(), MachineAssignment.id.desc()).all()
    return [operation_to_dict(a) for a in assignments]


def get_pallet_operation_history(pallet_id):
    """
    Собирает историю поддона: назначения на станки и записи прогресса по этапам,
    отсортированные в порядке создания.
    """
    pallet = _get_or_404(Pallet, pallet_id, f"Поддон с ID {pallet_id} не найден")
    progress_rows = PalletStageProgress.query.options(
        joinedload(PalletStageProgress.route_stage).joinedload(RouteStage.stage)
    ).filter_by(pallet_id=pallet.id).order_by(PalletStageProgress.id).all()

    return {
        'palletId': pallet.id,
        'palletName': pallet.name,
        'partId': pallet.part_id,
        'currentStepId': pallet.current_step_id,
        'operations': [operation_to_dict(a) for a in pallet.machine_assignments],
        'stageProgress': [
            {
                'id': row.id,
                'routeStageId': row.route_stage_id,
                'stageName': row.route_stage.display_name,
                'status': row.status.name,
                'createdAt': row.created_at.isoformat() if row.created_at else None,
                'completedAt': row.completed_at.isoformat() if row.completed_at else None,
            }
            for row in progress_rows
        ],
    }


def get_part_pallets(part_id):
    """Поддоны детали с текущим этапом, ячейкой буфера и последним статусом."""
    part = _get_or_404(Part, part_id, f"Деталь с ID {part_id} не найдена")

    pallets = []
    for pallet in part.pallets:
        current_step = pallet.current_step
        latest = progress.latest_stage_progress(pallet.id, [current_step.id]) if current_step else None
        pallets.append({
            'palletId': pallet.id,
            'palletName': pallet.name,
            'quantity': pallet.quantity,
            'currentStep': {
                'routeStageId': current_step.id,
                'stageId': current_step.stage_id,
                'stageName': current_step.display_name,
                'sequence': current_step.sequence_number,
            } if current_step else None,
            'status': latest.status.name if latest else TaskStatus.NOT_PROCESSED.name,
            'bufferCell': {
                'cellId': pallet.buffer_cell.id,
                'cellCode': pallet.buffer_cell.code,
                'bufferId': pallet.buffer_cell.buffer_id,
            } if pallet.buffer_cell else None,
        })
    return {'partId': part.id, 'partCode': part.code, 'partName': part.name, 'pallets': pallets}
