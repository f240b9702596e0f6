# pallet_tracker/models/history_models.py

import enum
from datetime import datetime, timezone
from pallet_tracker import db


class TaskStatus(enum.Enum):
    """Статус попытки прохождения этапа поддоном или деталью."""
    NOT_PROCESSED = 'NOT_PROCESSED'
    PENDING = 'PENDING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class PalletStageProgress(db.Model):
    """
    Журнал прохождения поддоном этапов маршрута. Записи только добавляются:
    на каждый переход создается новая строка. Актуальной считается запись
    с наибольшим id: даты у записей могут совпадать.
    """
    __tablename__ = 'PalletStageProgress'
    id = db.Column(db.Integer, primary_key=True)
    pallet_id = db.Column(db.Integer, db.ForeignKey('Pallets.id', ondelete='CASCADE'), nullable=False, index=True)
    route_stage_id = db.Column(db.Integer, db.ForeignKey('RouteStages.id'), nullable=False, index=True)
    status = db.Column(db.Enum(TaskStatus), nullable=False, default=TaskStatus.NOT_PROCESSED)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    completed_at = db.Column(db.DateTime, nullable=True)

    pallet = db.relationship('Pallet', back_populates='stage_progress')
    route_stage = db.relationship('RouteStage')

    def __repr__(self):
        return f'<PalletStageProgress pallet={self.pallet_id} route_stage={self.route_stage_id} {self.status.name}>'


class PartRouteProgress(db.Model):
    """Сводный статус детали по одному этапу ее маршрута."""
    __tablename__ = 'PartRouteProgress'
    __table_args__ = (
        db.UniqueConstraint('part_id', 'route_stage_id', name='uq_part_route_stage'),
    )
    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey('Parts.id', ondelete='CASCADE'), nullable=False, index=True)
    route_stage_id = db.Column(db.Integer, db.ForeignKey('RouteStages.id'), nullable=False)
    status = db.Column(db.Enum(TaskStatus), nullable=False, default=TaskStatus.NOT_PROCESSED)
    completed_at = db.Column(db.DateTime, nullable=True)

    part = db.relationship('Part', back_populates='route_progress')
    route_stage = db.relationship('RouteStage')


class PartSegmentProgress(db.Model):
    """Флаг завершения детали на участке, обновляется мастером участка."""
    __tablename__ = 'PartSegmentProgress'
    __table_args__ = (
        db.UniqueConstraint('part_id', 'segment_id', name='uq_part_segment'),
    )
    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, db.ForeignKey('Parts.id', ondelete='CASCADE'), nullable=False, index=True)
    segment_id = db.Column(db.Integer, db.ForeignKey('Stages.id'), nullable=False)
    status = db.Column(db.Enum(TaskStatus), nullable=False, default=TaskStatus.IN_PROGRESS)
    completed_at = db.Column(db.DateTime, nullable=True)

    part = db.relationship('Part', back_populates='segment_progress')
    segment = db.relationship('Stage')


class AuditLog(db.Model):
    """Хранит журнал всех значимых действий с деталями и поддонами."""
    __tablename__ = 'AuditLogs'
    id = db.Column(db.Integer, primary_key=True)
    part_id = db.Column(db.Integer, nullable=True, index=True)
    pallet_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('Users.id', ondelete='SET NULL'), nullable=True)
    timestamp = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), index=True)
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=False, default='general', server_default='general', index=True)

    user = db.relationship('User', back_populates='audit_logs')
