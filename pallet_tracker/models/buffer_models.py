# pallet_tracker/models/buffer_models.py

import enum
from pallet_tracker import db


class BufferCellStatus(enum.Enum):
    AVAILABLE = 'AVAILABLE'
    OCCUPIED = 'OCCUPIED'
    RESERVED = 'RESERVED'
    MAINTENANCE = 'MAINTENANCE'


class Buffer(db.Model):
    """Буфер: зона хранения поддонов между этапами."""
    __tablename__ = 'Buffers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    location = db.Column(db.String(150), nullable=True)

    cells = db.relationship('BufferCell', back_populates='buffer', cascade="all, delete-orphan",
                            order_by='BufferCell.id')

    def __repr__(self):
        return f'<Buffer {self.name}>'


class BufferCell(db.Model):
    """
    Ячейка буфера. Заполненность равна числу поддонов, ссылающихся на ячейку;
    она не хранится отдельно и пересчитывается при каждом перемещении.
    """
    __tablename__ = 'BufferCells'
    id = db.Column(db.Integer, primary_key=True)
    buffer_id = db.Column(db.Integer, db.ForeignKey('Buffers.id'), nullable=False, index=True)
    code = db.Column(db.String(50), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=1, server_default='1')
    status = db.Column(db.Enum(BufferCellStatus), nullable=False, default=BufferCellStatus.AVAILABLE)

    buffer = db.relationship('Buffer', back_populates='cells')
    pallets = db.relationship('Pallet', back_populates='buffer_cell')

    def __repr__(self):
        return f'<BufferCell {self.code}>'
