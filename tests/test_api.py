# tests/test_api.py

from pallet_tracker.models import BufferCellStatus


def _assign(client, plant, pallet, machine=None):
    return client.post('/api/pallet-operations/assign-to-machine', json={
        'palletId': pallet.id,
        'machineId': (machine or plant.saw).id,
        'processStepId': plant.rs_cut.id,
        'operatorId': plant.operator.id,
    })


def test_assign_and_complete_flow(client, plant):
    response = _assign(client, plant, plant.pallet_1)
    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'success'
    assert body['operation']['status'] == 'IN_PROGRESS'
    assert body['operation']['operatorName'] == 'Иван Петров'

    response = client.post('/api/pallet-operations/update-status', json={
        'palletId': plant.pallet_1.id,
        'machineId': plant.saw.id,
        'segmentId': plant.cut.id,
    })
    assert response.status_code == 200
    body = response.get_json()
    assert body['operation']['status'] == 'COMPLETED'
    assert body['nextStep']['routeStageId'] == plant.rs_edge.id


def test_assign_retarget_message(client, plant):
    _assign(client, plant, plant.pallet_1)
    response = _assign(client, plant, plant.pallet_1, machine=plant.saw_2)
    assert response.status_code == 200
    assert response.get_json()['operation']['machineId'] == plant.saw_2.id


def test_assign_unknown_pallet_is_404(client, plant):
    response = client.post('/api/pallet-operations/assign-to-machine', json={
        'palletId': 9999, 'machineId': plant.saw.id, 'processStepId': plant.rs_cut.id,
    })
    assert response.status_code == 404
    assert response.get_json()['status'] == 'error'


def test_assign_to_broken_machine_is_400(client, plant):
    response = _assign(client, plant, plant.pallet_1, machine=plant.broken_saw)
    assert response.status_code == 400


def test_invalid_body_returns_field_errors(client, plant):
    response = client.post('/api/pallet-operations/assign-to-machine', json={'palletId': 'abc'})
    assert response.status_code == 400
    errors = response.get_json()['errors']
    assert {'palletId', 'machineId', 'processStepId'} <= set(errors)


def test_null_optional_field_is_ignored(client, plant):
    response = client.post('/api/pallet-operations/assign-to-machine', json={
        'palletId': plant.pallet_1.id, 'machineId': plant.saw.id,
        'processStepId': plant.rs_cut.id, 'operatorId': None,
    })
    assert response.status_code == 200


def test_complete_without_operation_is_400(client, plant):
    response = client.post('/api/pallet-operations/update-status', json={
        'palletId': plant.pallet_1.id, 'machineId': plant.saw.id, 'operatorId': plant.operator.id,
    })
    assert response.status_code == 400


def test_move_to_buffer(client, plant):
    response = client.post('/api/pallet-operations/move-to-buffer', json={
        'palletId': plant.pallet_1.id, 'bufferCellId': plant.cell_a.id,
    })
    assert response.status_code == 200
    assert response.get_json()['bufferCell']['status'] == BufferCellStatus.OCCUPIED.name

    response = client.post('/api/pallet-operations/move-to-buffer', json={
        'palletId': plant.pallet_2.id, 'bufferCellId': plant.cell_a.id,
    })
    assert response.status_code == 400

    response = client.get(f'/api/buffers/{plant.buffer.id}/cells')
    cells = {c['code']: c for c in response.get_json()['cells']}
    assert cells['A1']['currentLoad'] == 1


def test_active_operations_and_history(client, plant):
    _assign(client, plant, plant.pallet_1)

    active = client.get('/api/pallet-operations/active').get_json()
    assert [op['palletId'] for op in active] == [plant.pallet_1.id]

    history = client.get(f'/api/pallet-operations/pallets/{plant.pallet_1.id}/history').get_json()
    assert history['palletId'] == plant.pallet_1.id
    assert len(history['operations']) == 1

    assert client.get('/api/pallet-operations/pallets/9999/history').status_code == 404


def test_part_pallets(client, plant):
    body = client.get(f'/api/parts/{plant.part.id}/pallets').get_json()
    assert [p['quantity'] for p in body['pallets']] == [5, 5]


def test_machine_task(client, plant):
    _assign(client, plant, plant.pallet_1)
    tasks = client.get(f'/api/machines/{plant.saw.id}/task?stageId={plant.cut.id}').get_json()
    assert tasks[0]['distributed'] == 5

    assert client.get('/api/machines/9999/task').status_code == 404


def test_segment_orders(client, plant):
    response = client.get(f'/api/machines-no-shifts/segment/orders?segmentId={plant.cut.id}')
    assert [o['id'] for o in response.get_json()] == [plant.order.id]

    assert client.get('/api/machines-no-shifts/segment/orders').status_code == 400


def test_master_details_and_priority(client, plant):
    response = client.get(f'/api/details/master/{plant.order.id}/segment/{plant.cut.id}')
    assert response.get_json()[0]['readyForProcessing'] == 10

    response = client.put('/api/details/master/priority', json={
        'partId': plant.part.id, 'machineId': plant.saw.id, 'priority': 0,
    })
    assert response.status_code == 200
    assert response.get_json()['priority'] == 0


def test_route_stages(client, plant):
    body = client.get(f'/api/routes/{plant.route.id}/stages').get_json()
    assert [s['stageName'] for s in body] == ['Cut', 'Edge', 'Pack']
    assert client.get('/api/routes/9999/stages').status_code == 404


def test_route_management(client, plant):
    orders = client.get('/api/route-management/orders').get_json()
    assert [o['orderId'] for o in orders] == [plant.draft_order.id]

    parts = client.get(f'/api/route-management/orders/{plant.draft_order.id}/parts').get_json()
    assert parts['parts'][0]['partId'] == plant.draft_part.id

    response = client.patch(f'/api/route-management/parts/{plant.draft_part.id}/route',
                            json={'routeId': plant.alt_route.id})
    assert response.status_code == 200
    assert response.get_json()['route']['routeId'] == plant.alt_route.id

    response = client.patch(f'/api/route-management/parts/{plant.draft_part.id}/route',
                            json={'routeId': plant.alt_route.id})
    assert response.status_code == 400

    response = client.patch(f'/api/route-management/parts/{plant.part.id}/route',
                            json={'routeId': plant.alt_route.id})
    assert response.status_code == 400


def test_unknown_url_is_json_404(client):
    response = client.get('/api/nope')
    assert response.status_code == 404
    assert response.get_json()['status'] == 'error'
