# pallet_tracker/sockets.py

from flask import current_app
from flask_socketio import join_room, leave_room, emit

from pallet_tracker import socketio
from pallet_tracker.services.notification_service import Rooms


@socketio.on('join_room')
def handle_join_room(data):
    """Подписывает клиента на комнату участка, станков или технолога."""
    room = (data or {}).get('room')
    if room not in Rooms.ALL:
        emit('room_error', {'message': f"Неизвестная комната: {room}"})
        return
    join_room(room)
    current_app.logger.info('Client joined room %s', room)
    emit('room_joined', {'room': room})


@socketio.on('leave_room')
def handle_leave_room(data):
    room = (data or {}).get('room')
    if room in Rooms.ALL:
        leave_room(room)
        emit('room_left', {'room': room})
