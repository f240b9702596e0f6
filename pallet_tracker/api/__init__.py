# pallet_tracker/api/__init__.py

from flask import Blueprint

from pallet_tracker import csrf

# Сборный блюпринт JSON API; дочерние блюпринты разнесены по разделам
api_bp = Blueprint('api', __name__, url_prefix='/api')

from . import machine_routes, detail_routes, pallet_routes, route_routes, buffer_routes  # noqa: E402

for child_bp in (machine_routes.machine_bp, detail_routes.detail_bp, pallet_routes.pallet_bp,
                 route_routes.route_bp, buffer_routes.buffer_bp):
    # CSRFProtect проверяет исключения по собственному блюпринту запроса, а не по родителю
    csrf.exempt(child_bp)
    api_bp.register_blueprint(child_bp)
