# pallet_tracker/services/buffer_service.py

from flask import current_app

from pallet_tracker import db
from pallet_tracker.errors import NotFoundError, DomainViolation
from pallet_tracker.models import Pallet, Buffer, BufferCell, BufferCellStatus, AuditLog
from .notification_service import send_room_notification, Events

# Ячейки в этих статусах принимают поддоны; резерв и обслуживание не принимают
_PLACEABLE_STATUSES = (BufferCellStatus.AVAILABLE, BufferCellStatus.OCCUPIED)


def count_cell_occupants(cell_id, exclude_pallet_id=None):
    """Число поддонов, которые сейчас находятся в ячейке."""
    query = Pallet.query.filter(Pallet.buffer_cell_id == cell_id)
    if exclude_pallet_id is not None:
        query = query.filter(Pallet.id != exclude_pallet_id)
    return query.count()


def _status_for_load(load, capacity):
    return BufferCellStatus.OCCUPIED if load >= capacity else BufferCellStatus.AVAILABLE


def _refresh_cell_status(cell, load):
    """Ячейка заполнена тогда и только тогда, когда заполненность равна вместимости."""
    if cell.status in _PLACEABLE_STATUSES:
        cell.status = _status_for_load(load, cell.capacity)


def move_pallet_to_buffer(pallet_id, buffer_cell_id):
    """
    Перемещает поддон в ячейку буфера. Это только смена места хранения:
    статус обработки поддона не меняется.
    :param pallet_id: ID поддона.
    :param buffer_cell_id: ID целевой ячейки.
    :return: Кортеж (Pallet, BufferCell).
    """
    current_app.logger.info('Moving pallet %s to buffer cell %s', pallet_id, buffer_cell_id)

    pallet = db.session.get(Pallet, pallet_id)
    if pallet is None:
        raise NotFoundError(f"Поддон с ID {pallet_id} не найден")

    # Блокируем строку ячейки, чтобы проверка вместимости и запись шли под одной блокировкой
    cell = BufferCell.query.filter(BufferCell.id == buffer_cell_id).with_for_update().first()
    if cell is None:
        raise NotFoundError(f"Ячейка буфера с ID {buffer_cell_id} не найдена")

    if cell.status not in _PLACEABLE_STATUSES:
        db.session.rollback()
        raise DomainViolation(f"Ячейка буфера {cell.code} недоступна. Текущий статус: {cell.status.name}")

    load_after_move = count_cell_occupants(cell.id, exclude_pallet_id=pallet.id) + 1
    if load_after_move > cell.capacity:
        db.session.rollback()
        raise DomainViolation(
            f"Ячейка буфера {cell.code} уже заполнена до максимальной вместимости ({cell.capacity})"
        )

    old_cell = pallet.buffer_cell if pallet.buffer_cell_id not in (None, cell.id) else None

    try:
        pallet.buffer_cell_id = cell.id
        db.session.flush()

        if old_cell is not None:
            _refresh_cell_status(old_cell, count_cell_occupants(old_cell.id))
        _refresh_cell_status(cell, load_after_move)

        db.session.add(AuditLog(
            part_id=pallet.part_id,
            pallet_id=pallet.id,
            action="Перемещение в буфер",
            details=f"Поддон {pallet.name} перемещен в ячейку {cell.code}"
                    + (f" из ячейки {old_cell.code}." if old_cell else "."),
            category='buffer'
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('Pallet %s placed into cell %s (%s/%s)', pallet.id, cell.id, load_after_move, cell.capacity)
    send_room_notification(
        Events.BUFFER_EVENT,
        f"Поддон {pallet.name} перемещен в ячейку {cell.code}",
        {
            'palletId': pallet.id,
            'bufferCellId': cell.id,
            'previousCellId': old_cell.id if old_cell else None,
        }
    )
    return pallet, cell


def cell_to_dict(cell):
    load = count_cell_occupants(cell.id)
    return {
        'cellId': cell.id,
        'code': cell.code,
        'capacity': cell.capacity,
        'currentLoad': load,
        'status': cell.status.name,
        'pallets': [{'palletId': p.id, 'palletName': p.name} for p in cell.pallets],
    }


def get_buffer_cells(buffer_id):
    """Ячейки буфера с текущей заполненностью."""
    buffer = db.session.get(Buffer, buffer_id)
    if buffer is None:
        raise NotFoundError(f"Буфер с ID {buffer_id} не найден")
    return {
        'bufferId': buffer.id,
        'bufferName': buffer.name,
        'location': buffer.location,
        'cells': [cell_to_dict(cell) for cell in buffer.cells],
    }
