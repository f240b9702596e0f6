# pallet_tracker/api/buffer_routes.py

from flask import Blueprint, jsonify

from pallet_tracker.services.buffer_service import get_buffer_cells

buffer_bp = Blueprint('buffers', __name__)


@buffer_bp.route('/buffers/<int:buffer_id>/cells')
def buffer_cells(buffer_id):
    return jsonify(get_buffer_cells(buffer_id))
