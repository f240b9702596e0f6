# pallet_tracker/services/route_service.py

from collections import namedtuple
from flask import current_app
from sqlalchemy.orm import joinedload

from pallet_tracker import db
from pallet_tracker.errors import NotFoundError, DomainViolation
from pallet_tracker.models import (Route, RouteStage, Part, Pallet, Order, OrderStatus, PackagePart, Package,
                                   PartRouteProgress, PalletStageProgress, TaskStatus, AuditLog,
                                   MachineAssignment, OperationStatus)
from .notification_service import send_room_notification, Events, Rooms


RouteStageInfo = namedtuple(
    'RouteStageInfo',
    ['route_stage_id', 'stage_id', 'substage_id', 'sequence_number', 'stage_name', 'substage_name']
)


def _route_stage_info(route_stage):
    return RouteStageInfo(
        route_stage_id=route_stage.id,
        stage_id=route_stage.stage_id,
        substage_id=route_stage.substage_id,
        sequence_number=route_stage.sequence_number,
        stage_name=route_stage.stage.name,
        substage_name=route_stage.substage.name if route_stage.substage else None
    )


def get_route_or_404(route_id):
    route = db.session.get(Route, route_id)
    if route is None:
        raise NotFoundError(f"Маршрут с ID {route_id} не найден")
    return route


def get_route_stages(route_id):
    """
    Возвращает этапы маршрута, упорядоченные по номеру последовательности.
    :param route_id: ID маршрута.
    :return: Список RouteStageInfo.
    """
    get_route_or_404(route_id)
    route_stages = RouteStage.query.options(
        joinedload(RouteStage.stage), joinedload(RouteStage.substage)
    ).filter(RouteStage.route_id == route_id).order_by(RouteStage.sequence_number).all()
    return [_route_stage_info(rs) for rs in route_stages]


def get_first_route_stage(route):
    """Первый этап маршрута или None для пустого маршрута."""
    if route is None or not route.route_stages:
        return None
    return min(route.route_stages, key=lambda rs: rs.sequence_number)


def get_next_route_stage(route, route_stage):
    """
    Следующий этап маршрута после указанного: наименьший номер, больший текущего.
    Для последнего этапа возвращает None.
    """
    following = [rs for rs in route.route_stages if rs.sequence_number > route_stage.sequence_number]
    if not following:
        return None
    return min(following, key=lambda rs: rs.sequence_number)


def route_to_dict(route):
    if route is None:
        return None
    return {
        'routeId': route.id,
        'routeName': route.name,
        'stages': [
            {
                'routeStageId': rs.id,
                'stageId': rs.stage_id,
                'stageName': rs.stage.name,
                'substageId': rs.substage_id,
                'substageName': rs.substage.name if rs.substage else None,
                'sequenceNumber': rs.sequence_number,
            }
            for rs in route.route_stages
        ],
    }


def _route_change_statuses():
    return {OrderStatus[name] for name in current_app.config['ROUTE_CHANGE_ORDER_STATUSES']}


def change_part_route(part_id, new_route_id, user=None):
    """
    Меняет технологический маршрут детали и сбрасывает весь прогресс по старому маршруту.
    Разрешено, только пока все заказы детали в статусе "Предварительный" или "Утверждено"
    и ни один поддон детали не находится в работе на станке.
    :param part_id: ID детали.
    :param new_route_id: ID нового маршрута.
    :param user: Пользователь, выполняющий изменение (может быть None).
    :return: Кортеж (Part, предыдущий Route или None).
    """
    part = db.session.get(Part, part_id)
    if part is None:
        raise NotFoundError(f"Деталь с ID {part_id} не найдена")

    allowed_statuses = _route_change_statuses()
    for order in part.orders:
        if order.status not in allowed_statuses:
            raise DomainViolation(
                f"Нельзя изменять маршрут у деталей из заказа со статусом {order.status.name}. "
                f"Изменение разрешено только для заказов в статусах "
                f"{', '.join(sorted(s.name for s in allowed_statuses))}"
            )

    new_route = get_route_or_404(new_route_id)
    if part.route_id == new_route.id:
        raise DomainViolation('Новый маршрут совпадает с текущим')

    active_count = MachineAssignment.query.join(Pallet).filter(
        Pallet.part_id == part.id,
        MachineAssignment.status == OperationStatus.IN_PROGRESS
    ).count()
    if active_count:
        raise DomainViolation(
            f"Нельзя изменить маршрут детали {part.code}: поддоны в работе на станках ({active_count}). "
            f"Завершите обработку и повторите."
        )

    previous_route = part.route
    old_route_stage_ids = [rs.id for rs in previous_route.route_stages] if previous_route else []
    first_stage = get_first_route_stage(new_route)

    try:
        part.route = new_route

        PartRouteProgress.query.filter_by(part_id=part.id).delete(synchronize_session='fetch')
        for route_stage in new_route.route_stages:
            db.session.add(PartRouteProgress(
                part_id=part.id,
                route_stage_id=route_stage.id,
                status=TaskStatus.NOT_PROCESSED
            ))

        # Поддоны начинают новый маршрут с первого этапа
        pallet_ids = [pallet.id for pallet in part.pallets]
        if pallet_ids and old_route_stage_ids:
            PalletStageProgress.query.filter(
                PalletStageProgress.pallet_id.in_(pallet_ids),
                PalletStageProgress.route_stage_id.in_(old_route_stage_ids)
            ).delete(synchronize_session='fetch')
        for pallet in part.pallets:
            pallet.current_step_id = first_stage.id if first_stage else None

        old_route_name = previous_route.name if previous_route else "Не назначен"
        db.session.add(AuditLog(
            part_id=part.id,
            user_id=user.id if user else None,
            action="Смена маршрута",
            details=f"Маршрут изменен с '{old_route_name}' на '{new_route.name}'.",
            category='route'
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(part)
    current_app.logger.info('Part %s route changed from %s to %s', part.id,
                            previous_route.id if previous_route else None, new_route.id)
    send_room_notification(
        Events.DETAIL_EVENT,
        f"Для детали {part.code} изменен маршрут.",
        {'partId': part.id, 'routeId': new_route.id},
        rooms=(Rooms.TECHNOLOGIST, Rooms.MASTER)
    )
    send_room_notification(
        Events.ORDER_EVENT,
        f"Изменен маршрут детали {part.code} в заказе",
        {'orderIds': [order.id for order in part.orders], 'partId': part.id},
        rooms=(Rooms.TECHNOLOGIST,)
    )
    return part, previous_route


def get_orders_for_route_management():
    """Заказы, в которых еще можно менять маршруты деталей, с количеством позиций."""
    orders = Order.query.options(
        joinedload(Order.packages).joinedload(Package.package_parts)
    ).filter(
        Order.status.in_(_route_change_statuses())
    ).order_by(Order.created_at.desc()).all()

    return [
        {
            'orderId': order.id,
            'batchNumber': order.batch_number,
            'orderName': order.name,
            'status': order.status.name,
            'requiredDate': order.required_date.isoformat() if order.required_date else None,
            'createdAt': order.created_at.isoformat() if order.created_at else None,
            'totalParts': sum(len(pkg.package_parts) for pkg in order.packages),
        }
        for order in orders
    ]


def get_order_parts_for_route_management(order_id):
    """Детали заказа с текущими маршрутами и список доступных маршрутов."""
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Заказ с ID {order_id} не найден")
    if order.status not in _route_change_statuses():
        raise DomainViolation(
            f"Заказ должен иметь статус PRELIMINARY или APPROVED для управления маршрутами. "
            f"Текущий статус: {order.status.name}"
        )

    package_parts = PackagePart.query.join(Package).options(
        joinedload(PackagePart.part).joinedload(Part.route),
        joinedload(PackagePart.package)
    ).filter(Package.order_id == order.id).order_by(PackagePart.part_id).all()

    parts = {}
    for package_part in package_parts:
        part = package_part.part
        entry = parts.get(part.id)
        if entry is None:
            entry = parts[part.id] = {
                'partId': part.id,
                'partCode': part.code,
                'partName': part.name,
                'size': part.size,
                'materialName': part.material,
                'totalQuantity': part.total_quantity,
                'status': part.status.name,
                'currentRoute': route_to_dict(part.route),
                'packages': [],
            }
        entry['packages'].append({
            'packageId': package_part.package.id,
            'packageCode': package_part.package.code,
            'packageName': package_part.package.name,
            'quantity': package_part.quantity,
        })

    available_routes = [route_to_dict(route) for route in Route.query.order_by(Route.name).all()]
    return {
        'order': {
            'orderId': order.id,
            'batchNumber': order.batch_number,
            'orderName': order.name,
            'status': order.status.name,
            'totalParts': len(parts),
        },
        'parts': list(parts.values()),
        'availableRoutes': available_routes,
    }
