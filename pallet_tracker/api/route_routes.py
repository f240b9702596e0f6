# pallet_tracker/api/route_routes.py

from flask import Blueprint, jsonify

from pallet_tracker.services import route_service
from .forms import form_from_json, ChangeRouteForm

route_bp = Blueprint('routes', __name__)


@route_bp.route('/routes/<int:route_id>/stages')
def route_stages(route_id):
    """Этапы маршрута в порядке прохождения."""
    stages = route_service.get_route_stages(route_id)
    return jsonify([
        {
            'routeStageId': info.route_stage_id,
            'stageId': info.stage_id,
            'stageName': info.stage_name,
            'substageId': info.substage_id,
            'substageName': info.substage_name,
            'sequenceNumber': info.sequence_number,
        }
        for info in stages
    ])


@route_bp.route('/route-management/orders')
def route_management_orders():
    return jsonify(route_service.get_orders_for_route_management())


@route_bp.route('/route-management/orders/<int:order_id>/parts')
def route_management_order_parts(order_id):
    return jsonify(route_service.get_order_parts_for_route_management(order_id))


@route_bp.route('/route-management/parts/<int:part_id>/route', methods=['PATCH'])
def change_part_route(part_id):
    """Меняет маршрут детали; прогресс по старому маршруту сбрасывается."""
    form = form_from_json(ChangeRouteForm)
    part, previous_route = route_service.change_part_route(part_id, form.routeId.data)
    return jsonify({
        'status': 'success',
        'message': f"Маршрут детали {part.code} изменен",
        'partId': part.id,
        'previousRouteId': previous_route.id if previous_route else None,
        'route': route_service.route_to_dict(part.route),
    })
