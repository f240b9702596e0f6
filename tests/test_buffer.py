# tests/test_buffer.py

import pytest

from pallet_tracker.errors import NotFoundError, DomainViolation
from pallet_tracker.models import BufferCell, BufferCellStatus, TaskStatus
from pallet_tracker.services import pallet_operations_service as pos
from pallet_tracker.services.buffer_service import move_pallet_to_buffer, get_buffer_cells, count_cell_occupants


def _assert_capacity_invariant():
    for cell in BufferCell.query.all():
        load = count_cell_occupants(cell.id)
        assert load <= cell.capacity
        if cell.status in (BufferCellStatus.AVAILABLE, BufferCellStatus.OCCUPIED):
            assert (cell.status == BufferCellStatus.OCCUPIED) == (load == cell.capacity)


def test_move_into_single_cell_occupies_it(plant):
    pallet, cell = move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)

    assert pallet.buffer_cell_id == plant.cell_a.id
    assert cell.status == BufferCellStatus.OCCUPIED
    _assert_capacity_invariant()


def test_full_cell_rejects_another_pallet(plant):
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)
    with pytest.raises(DomainViolation):
        move_pallet_to_buffer(plant.pallet_2.id, plant.cell_a.id)

    assert plant.pallet_2.buffer_cell_id is None
    _assert_capacity_invariant()


def test_cell_fills_up_gradually(plant):
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_double.id)
    assert plant.cell_double.status == BufferCellStatus.AVAILABLE

    move_pallet_to_buffer(plant.pallet_2.id, plant.cell_double.id)
    assert plant.cell_double.status == BufferCellStatus.OCCUPIED
    _assert_capacity_invariant()


def test_moving_frees_previous_cell(plant):
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_b.id)

    assert plant.cell_a.status == BufferCellStatus.AVAILABLE
    assert plant.cell_b.status == BufferCellStatus.OCCUPIED
    assert count_cell_occupants(plant.cell_a.id) == 0
    _assert_capacity_invariant()


def test_moving_into_same_cell_is_allowed(plant):
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)
    _, cell = move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)

    assert cell.status == BufferCellStatus.OCCUPIED
    assert count_cell_occupants(cell.id) == 1


def test_maintenance_cell_is_unavailable(plant):
    with pytest.raises(DomainViolation):
        move_pallet_to_buffer(plant.pallet_1.id, plant.cell_maintenance.id)
    assert plant.cell_maintenance.status == BufferCellStatus.MAINTENANCE


def test_unknown_pallet_or_cell(plant):
    with pytest.raises(NotFoundError):
        move_pallet_to_buffer(9999, plant.cell_a.id)
    with pytest.raises(NotFoundError):
        move_pallet_to_buffer(plant.pallet_1.id, 9999)


def test_buffer_move_keeps_processing_state(plant):
    pos.assign_pallet_to_machine(plant.pallet_1.id, plant.saw.id, plant.rs_cut.id, plant.operator.id)
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_a.id)

    assert plant.pallet_1.current_step_id == plant.rs_cut.id
    assert plant.pallet_1.stage_progress[-1].status == TaskStatus.IN_PROGRESS


def test_buffer_cells_listing(plant):
    move_pallet_to_buffer(plant.pallet_1.id, plant.cell_double.id)
    result = get_buffer_cells(plant.buffer.id)

    cells = {cell['code']: cell for cell in result['cells']}
    assert result['bufferName'] == 'Buffer 1'
    assert cells['C1']['currentLoad'] == 1
    assert cells['C1']['pallets'] == [{'palletId': plant.pallet_1.id, 'palletName': 'X-1'}]
    assert cells['M1']['status'] == 'MAINTENANCE'
