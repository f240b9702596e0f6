# pallet_tracker/models/machine_models.py

import enum
from datetime import datetime, timezone
from pallet_tracker import db


class MachineStatus(enum.Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    MAINTENANCE = 'MAINTENANCE'
    BROKEN = 'BROKEN'


class OperationStatus(enum.Enum):
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


# Ассоциативные таблицы: какие этапы и подэтапы умеет выполнять станок
machine_stages = db.Table(
    'MachineStages',
    db.Column('machine_id', db.Integer, db.ForeignKey('Machines.id'), primary_key=True),
    db.Column('stage_id', db.Integer, db.ForeignKey('Stages.id'), primary_key=True)
)

machine_substages = db.Table(
    'MachineSubstages',
    db.Column('machine_id', db.Integer, db.ForeignKey('Machines.id'), primary_key=True),
    db.Column('substage_id', db.Integer, db.ForeignKey('Substages.id'), primary_key=True)
)


class Machine(db.Model):
    """
    Станок. Флаг no_shift_task отличает станки, которые сами берут поддоны
    из очереди участка, от станков со сменным заданием мастера.
    """
    __tablename__ = 'Machines'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    status = db.Column(db.Enum(MachineStatus), nullable=False, default=MachineStatus.ACTIVE)
    no_shift_task = db.Column(db.Boolean, nullable=False, default=False, server_default='false')

    stages = db.relationship('Stage', secondary=machine_stages, order_by='Stage.id')
    substages = db.relationship('Substage', secondary=machine_substages, order_by='Substage.id')
    assignments = db.relationship('MachineAssignment', back_populates='machine')

    def can_process(self, route_stage):
        """Проверяет, привязан ли станок к этапу или подэтапу позиции маршрута."""
        if any(stage.id == route_stage.stage_id for stage in self.stages):
            return True
        return route_stage.substage_id is not None and any(
            substage.id == route_stage.substage_id for substage in self.substages
        )

    def __repr__(self):
        return f'<Machine {self.name}>'


class MachineAssignment(db.Model):
    """
    Назначение поддона на станок для конкретной позиции маршрута.
    completed_at = NULL означает, что поддон все еще на станке.
    """
    __tablename__ = 'MachineAssignments'
    id = db.Column(db.Integer, primary_key=True)
    pallet_id = db.Column(db.Integer, db.ForeignKey('Pallets.id', ondelete='CASCADE'), nullable=False, index=True)
    machine_id = db.Column(db.Integer, db.ForeignKey('Machines.id'), nullable=False, index=True)
    route_stage_id = db.Column(db.Integer, db.ForeignKey('RouteStages.id'), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey('Users.id', ondelete='SET NULL'), nullable=True)
    status = db.Column(db.Enum(OperationStatus), nullable=False, default=OperationStatus.IN_PROGRESS)
    assigned_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    completed_at = db.Column(db.DateTime, nullable=True)

    pallet = db.relationship('Pallet', back_populates='machine_assignments')
    machine = db.relationship('Machine', back_populates='assignments')
    route_stage = db.relationship('RouteStage')
    operator = db.relationship('User', foreign_keys=[operator_id])

    def __repr__(self):
        return f'<MachineAssignment pallet={self.pallet_id} machine={self.machine_id} {self.status.name}>'


class PartMachinePriority(db.Model):
    """Приоритет детали в задании станка (чем больше значение, тем выше в списке)."""
    __tablename__ = 'PartMachinePriorities'
    __table_args__ = (
        db.UniqueConstraint('machine_id', 'part_id', name='uq_machine_part_priority'),
    )
    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey('Parts.id', ondelete='CASCADE'), nullable=False)
    machine_id = db.Column(db.Integer, db.ForeignKey('Machines.id'), nullable=False)
    priority = db.Column(db.Integer, nullable=False, default=0)

    part = db.relationship('Part')
    machine = db.relationship('Machine')
