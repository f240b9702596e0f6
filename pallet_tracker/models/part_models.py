# pallet_tracker/models/part_models.py

import enum
from datetime import datetime, timezone
from pallet_tracker import db


class PartStatus(enum.Enum):
    PENDING = 'PENDING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class Part(db.Model):
    """Деталь: изделие со своим маршрутом и общей потребностью по всем упаковкам."""
    __tablename__ = 'Parts'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(100), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    material = db.Column(db.String(150), nullable=True)
    size = db.Column(db.String(100), nullable=True)

    total_quantity = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    status = db.Column(db.Enum(PartStatus), nullable=False, default=PartStatus.PENDING)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    route_id = db.Column(db.Integer, db.ForeignKey('Routes.id'), nullable=True, index=True)

    route = db.relationship('Route', back_populates='parts')
    pallets = db.relationship('Pallet', back_populates='part', cascade="all, delete-orphan",
                              order_by='Pallet.id')
    package_parts = db.relationship('PackagePart', back_populates='part', cascade="all, delete-orphan")
    route_progress = db.relationship('PartRouteProgress', back_populates='part', cascade="all, delete-orphan")
    segment_progress = db.relationship('PartSegmentProgress', back_populates='part',
                                       cascade="all, delete-orphan")

    @property
    def orders(self):
        """Заказы, в упаковки которых входит деталь."""
        seen = {}
        for package_part in self.package_parts:
            order = package_part.package.order
            seen[order.id] = order
        return list(seen.values())

    def __repr__(self):
        return f'<Part {self.code}>'


class Pallet(db.Model):
    """
    Поддон: физическая партия деталей фиксированного количества.
    current_step_id указывает на следующий необработанный этап маршрута,
    а buffer_cell_id на место хранения, не связанное с обработкой.
    """
    __tablename__ = 'Pallets'
    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey('Parts.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    current_step_id = db.Column(db.Integer, db.ForeignKey('RouteStages.id'), nullable=True)
    buffer_cell_id = db.Column(db.Integer, db.ForeignKey('BufferCells.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    part = db.relationship('Part', back_populates='pallets')
    current_step = db.relationship('RouteStage')
    buffer_cell = db.relationship('BufferCell', back_populates='pallets')
    stage_progress = db.relationship('PalletStageProgress', back_populates='pallet',
                                     cascade="all, delete-orphan", order_by='PalletStageProgress.id')
    machine_assignments = db.relationship('MachineAssignment', back_populates='pallet',
                                          cascade="all, delete-orphan", order_by='MachineAssignment.id')

    def __repr__(self):
        return f'<Pallet {self.name}>'
