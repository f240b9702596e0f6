# tests/test_notifications.py

from pallet_tracker.services import pallet_operations_service as pos
from pallet_tracker.services.buffer_service import move_pallet_to_buffer
from pallet_tracker.services.notification_service import Rooms, Events


def _events(socketio_client, name):
    return [event for event in socketio_client.get_received() if event['name'] == name]


def test_join_known_room(socketio_client):
    socketio_client.emit('join_room', {'room': Rooms.MASTER})
    joined = _events(socketio_client, 'room_joined')
    assert joined and joined[0]['args'][0]['room'] == Rooms.MASTER


def test_join_unknown_room_is_rejected(socketio_client):
    socketio_client.emit('join_room', {'room': 'room:unknown'})
    assert _events(socketio_client, 'room_error')


def test_pallet_events_reach_machine_room(socketio_client, plant):
    socketio_client.emit('join_room', {'room': Rooms.MACHINES})
    socketio_client.get_received()

    pos.assign_pallet_to_machine(plant.pallet_1.id, plant.saw.id, plant.rs_cut.id, plant.operator.id)
    events = _events(socketio_client, Events.PALLET_EVENT)

    assert len(events) == 1
    payload = events[0]['args'][0]
    assert payload['action'] == 'assigned'
    assert payload['palletId'] == plant.pallet_1.id


def test_client_outside_rooms_gets_nothing(socketio_client, plant):
    socketio_client.get_received()
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)
    assert _events(socketio_client, Events.BUFFER_EVENT) == []


def test_leave_room_stops_events(socketio_client, plant):
    socketio_client.emit('join_room', {'room': Rooms.MASTER})
    socketio_client.emit('leave_room', {'room': Rooms.MASTER})
    socketio_client.get_received()

    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)
    assert _events(socketio_client, Events.BUFFER_EVENT) == []


def test_route_change_notifies_technologist(socketio_client, plant):
    from pallet_tracker.services import route_service

    socketio_client.emit('join_room', {'room': Rooms.TECHNOLOGIST})
    socketio_client.get_received()

    route_service.change_part_route(plant.draft_part.id, plant.alt_route.id)
    order_events = _events(socketio_client, Events.ORDER_EVENT)

    assert order_events[0]['args'][0]['orderIds'] == [plant.draft_order.id]
