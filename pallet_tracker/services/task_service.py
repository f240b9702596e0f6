# pallet_tracker/services/task_service.py

"""
Задания для станков и мастеров участков.

Станки со сменным заданием видят только назначенные им поддоны. Станки без
сменного задания (флаг no_shift_task) дополнительно видят очередь участка:
детали, у которых есть количество, готовое к обработке на их этапах.
"""

from sqlalchemy.orm import joinedload

from pallet_tracker import db
from pallet_tracker.errors import NotFoundError
from pallet_tracker.models import (Machine, MachineAssignment, OperationStatus, Pallet, Part, Stage, Order,
                                   OrderStatus, Package, PackagePart, PartMachinePriority, RouteStage)
from . import eligibility_service as eligibility
from .quantity_service import classify_parts, quantities_to_dict

# Заказы, по которым уже ведется производство
_PRODUCTION_ORDER_STATUSES = (OrderStatus.LAUNCH_PERMITTED, OrderStatus.IN_PROGRESS)


def _part_to_dict(part):
    return {
        'id': part.id,
        'code': part.code,
        'name': part.name,
        'material': part.material,
        'size': part.size,
        'totalQuantity': part.total_quantity,
    }


def _order_to_dict(order):
    if order is None:
        return None
    return {
        'id': order.id,
        'batchNumber': order.batch_number,
        'name': order.name,
        'status': order.status.name,
    }


def _first_order(part):
    orders = part.orders
    return orders[0] if orders else None


def _machine_priorities(machine_id):
    rows = PartMachinePriority.query.filter_by(machine_id=machine_id).all()
    return {row.part_id: row.priority for row in rows}


def get_machine_tasks(machine_id, stage_id=None):
    """
    Формирует сменное задание станка.
    :param machine_id: ID станка.
    :param stage_id: Этап, для которого считаются количества (по умолчанию этап операции).
    :return: Список заданий, отсортированный по приоритету детали и времени назначения.
    """
    machine = db.session.get(Machine, machine_id)
    if machine is None:
        raise NotFoundError(f"Станок с ID {machine_id} не найден")
    if stage_id is not None and db.session.get(Stage, stage_id) is None:
        raise NotFoundError(f"Этап с ID {stage_id} не найден")

    priorities = _machine_priorities(machine.id)
    assignments = MachineAssignment.query.options(
        joinedload(MachineAssignment.pallet).joinedload(Pallet.part),
        joinedload(MachineAssignment.route_stage).joinedload(RouteStage.stage)
    ).filter(
        MachineAssignment.machine_id == machine.id,
        MachineAssignment.status == OperationStatus.IN_PROGRESS
    ).order_by(MachineAssignment.assigned_at, MachineAssignment.id).all()

    tasks = []
    seen_part_ids = set()
    for assignment in assignments:
        part = assignment.pallet.part
        task_stage_id = stage_id if stage_id is not None else assignment.route_stage.stage_id
        quantities = classify_parts([part], task_stage_id)[part.id]
        seen_part_ids.add(part.id)
        tasks.append({
            'operationId': assignment.id,
            'processStepId': assignment.route_stage_id,
            'processStepName': assignment.route_stage.display_name,
            'palletId': assignment.pallet_id,
            'quantity': assignment.pallet.quantity,
            'status': assignment.status.name,
            'priority': priorities.get(part.id, 0),
            'assignedAt': assignment.assigned_at,
            **quantities_to_dict(quantities),
            'detail': _part_to_dict(part),
            'order': _order_to_dict(_first_order(part)),
        })

    if machine.no_shift_task:
        tasks.extend(_queue_tasks(machine, stage_id, priorities, seen_part_ids))

    # Сортировка устойчивая: внутри приоритета сохраняется порядок назначения из запроса
    tasks.sort(key=lambda t: (-t['priority'], t['assignedAt'] is None))
    for task in tasks:
        task['assignedAt'] = task['assignedAt'].isoformat() if task['assignedAt'] else None
    return tasks


def _queue_tasks(machine, stage_id, priorities, seen_part_ids):
    """Очередь участка для станка без сменного задания: детали с готовым количеством."""
    stage_ids = [stage_id] if stage_id is not None else [stage.id for stage in machine.stages]
    tasks = []
    for queue_stage_id in stage_ids:
        parts = _production_parts_for_stage(queue_stage_id)
        quantities_by_part = classify_parts(parts, queue_stage_id)
        for part in parts:
            quantities = quantities_by_part[part.id]
            if part.id in seen_part_ids or quantities.ready == 0:
                continue
            seen_part_ids.add(part.id)
            route_stage = _first_matching_route_stage(part, queue_stage_id)
            tasks.append({
                'operationId': None,
                'processStepId': route_stage.id if route_stage else None,
                'processStepName': route_stage.display_name if route_stage else None,
                'palletId': None,
                'quantity': quantities.ready,
                'status': 'READY',
                'priority': priorities.get(part.id, 0),
                'assignedAt': None,
                **quantities_to_dict(quantities),
                'detail': _part_to_dict(part),
                'order': _order_to_dict(_first_order(part)),
            })
    return tasks


def _first_matching_route_stage(part, stage_id):
    substage_ids = eligibility.substage_ids_for_stage(stage_id)
    if part.route is None:
        return None
    for route_stage in part.route.route_stages:
        if route_stage.stage_id == stage_id or route_stage.substage_id in substage_ids:
            return route_stage
    return None


def _production_parts_for_stage(stage_id, order_id=None):
    """Детали заказов в производстве, маршрут которых проходит через этап."""
    query = Part.query.join(PackagePart).join(Package).join(Order).filter(
        Order.status.in_(_PRODUCTION_ORDER_STATUSES)
    )
    if order_id is not None:
        query = query.filter(Order.id == order_id)
    parts = query.options(joinedload(Part.pallets)).order_by(Part.id).distinct().all()
    substage_ids = eligibility.substage_ids_for_stage(stage_id)
    return [part for part in parts if eligibility.part_route_contains_stage(part, stage_id, substage_ids)]


def get_segment_orders(segment_id):
    """
    Заказы, детали которых проходят через участок, с суммарными количествами.
    Используется станками без сменного задания для выбора заказа.
    """
    segment = db.session.get(Stage, segment_id)
    if segment is None:
        raise NotFoundError(f"Участок с ID {segment_id} не найден")

    parts = _production_parts_for_stage(segment.id)
    quantities_by_part = classify_parts(parts, segment.id)

    orders = {}
    for part in parts:
        quantities = quantities_by_part[part.id]
        for order in part.orders:
            if order.status not in _PRODUCTION_ORDER_STATUSES:
                continue
            entry = orders.get(order.id)
            if entry is None:
                entry = orders[order.id] = {
                    **_order_to_dict(order),
                    'requiredDate': order.required_date.isoformat() if order.required_date else None,
                    'partsCount': 0,
                    'readyForProcessing': 0,
                    'distributed': 0,
                    'completed': 0,
                }
            entry['partsCount'] += 1
            entry['readyForProcessing'] += quantities.ready
            entry['distributed'] += quantities.distributed
            entry['completed'] += quantities.completed
    return sorted(orders.values(), key=lambda o: o['id'])


def get_order_details_for_segment(order_id, segment_id):
    """
    Детали заказа с распределением количеств на участке мастера.
    Общее количество по заказу складывается из потребностей по всем упаковкам.
    """
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Производственный заказ с ID {order_id} не найден")
    segment = db.session.get(Stage, segment_id)
    if segment is None:
        raise NotFoundError(f"Производственный участок с ID {segment_id} не найден")

    package_parts = PackagePart.query.join(Package).options(
        joinedload(PackagePart.package),
        joinedload(PackagePart.part).joinedload(Part.pallets)
    ).filter(Package.order_id == order.id).order_by(PackagePart.part_id, PackagePart.package_id).all()

    if not package_parts:
        return []

    parts = []
    for package_part in package_parts:
        if package_part.part not in parts:
            parts.append(package_part.part)
    quantities_by_part = classify_parts(parts, segment.id)

    details = {}
    for package_part in package_parts:
        part = package_part.part
        entry = details.get(part.id)
        if entry is None:
            route_stage = _first_matching_route_stage(part, segment.id)
            entry = details[part.id] = {
                **_part_to_dict(part),
                'totalQuantity': 0,
                **quantities_to_dict(quantities_by_part[part.id]),
                'substage': {
                    'substageId': route_stage.substage_id,
                    'substageName': route_stage.substage.name,
                } if route_stage and route_stage.substage else None,
                'packages': [],
            }
        entry['totalQuantity'] += package_part.quantity
        entry['packages'].append({
            'packageId': package_part.package.id,
            'packageCode': package_part.package.code,
            'packageName': package_part.package.name,
            'quantity': package_part.quantity,
        })
    return list(details.values())


def update_part_priority_for_machine(part_id, machine_id, priority):
    """
    Изменяет приоритет детали в задании станка (чем больше значение, тем выше).
    :return: Кортеж (PartMachinePriority, True если запись создана).
    """
    if db.session.get(Part, part_id) is None:
        raise NotFoundError(f"Деталь с ID {part_id} не найдена")
    if db.session.get(Machine, machine_id) is None:
        raise NotFoundError(f"Станок с ID {machine_id} не найден")

    record = PartMachinePriority.query.filter_by(part_id=part_id, machine_id=machine_id).first()
    created = record is None
    if created:
        record = PartMachinePriority(part_id=part_id, machine_id=machine_id)
        db.session.add(record)
    record.priority = priority
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return record, created
