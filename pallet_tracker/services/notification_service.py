# pallet_tracker/services/notification_service.py

from flask import current_app

from pallet_tracker import socketio


class Rooms:
    """Комнаты Socket.IO, по которым группируются клиенты."""
    MASTER = 'room:master'
    MACHINES = 'room:machines'
    MACHINES_NO_SHIFT = 'room:machines-no-shift'
    TECHNOLOGIST = 'room:technologist'

    ALL = (MASTER, MACHINES, MACHINES_NO_SHIFT, TECHNOLOGIST)


class Events:
    """Имена событий в формате "категория:действие"."""
    PALLET_EVENT = 'pallet:event'
    DETAIL_EVENT = 'detail:event'
    BUFFER_EVENT = 'buffer:event'
    ORDER_EVENT = 'order:event'


# Кому по умолчанию уходят события производственного цеха
SHOP_FLOOR_ROOMS = (Rooms.MASTER, Rooms.MACHINES, Rooms.MACHINES_NO_SHIFT)


def send_room_notification(event_type: str, message: str, data: dict = None, rooms=SHOP_FLOOR_ROOMS):
    """
    Централизованная функция для отправки WebSocket-уведомлений в комнаты.
    Отправка не должна влиять на результат операции: ошибки только логируются.
    :param event_type: Тип события (например, Events.PALLET_EVENT).
    :param message: Текст уведомления.
    :param data: Словарь с дополнительными данными.
    :param rooms: Комнаты-получатели.
    """
    payload = {'event': event_type, 'message': message}
    if data:
        payload.update(data)
    for room in rooms:
        try:
            socketio.emit(event_type, payload, to=room)
        except RuntimeError:
            current_app.logger.warning(
                'WebSocket emit skipped (not in a Socket.IO server context): %s', message
            )
