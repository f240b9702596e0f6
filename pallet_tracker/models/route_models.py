# pallet_tracker/models/route_models.py

from pallet_tracker import db


class Stage(db.Model):
    """
    Производственный этап (участок). Участок, к которому обращаются станки
    и мастера, это тот же этап вместе со всеми его подэтапами.
    """
    __tablename__ = 'Stages'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    final_stage = db.Column(db.Boolean, nullable=False, default=False, server_default='false')

    substages = db.relationship('Substage', back_populates='stage', cascade="all, delete-orphan",
                                order_by='Substage.id')
    route_stages = db.relationship('RouteStage', back_populates='stage')

    def __repr__(self):
        return f'<Stage {self.name}>'


class Substage(db.Model):
    """Подэтап внутри этапа, используется для более точной привязки станков."""
    __tablename__ = 'Substages'
    id = db.Column(db.Integer, primary_key=True)
    stage_id = db.Column(db.Integer, db.ForeignKey('Stages.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)

    stage = db.relationship('Stage', back_populates='substages')

    def __repr__(self):
        return f'<Substage {self.name}>'


class Route(db.Model):
    """Технологический маршрут: упорядоченный набор этапов (RouteStage)."""
    __tablename__ = 'Routes'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    route_stages = db.relationship('RouteStage', back_populates='route', cascade="all, delete-orphan",
                                   order_by='RouteStage.sequence_number')
    parts = db.relationship('Part', back_populates='route')

    def __repr__(self):
        return f'<Route {self.name}>'


class RouteStage(db.Model):
    """
    Позиция маршрута: связывает порядковый номер с этапом и, при необходимости,
    с подэтапом. Номер уникален в пределах маршрута, наименьший номер у первого этапа.
    """
    __tablename__ = 'RouteStages'
    __table_args__ = (
        db.UniqueConstraint('route_id', 'sequence_number', name='uq_route_stage_sequence'),
    )
    id = db.Column(db.Integer, primary_key=True)
    route_id = db.Column(db.Integer, db.ForeignKey('Routes.id'), nullable=False, index=True)
    stage_id = db.Column(db.Integer, db.ForeignKey('Stages.id'), nullable=False, index=True)
    substage_id = db.Column(db.Integer, db.ForeignKey('Substages.id'), nullable=True, index=True)
    sequence_number = db.Column(db.Integer, nullable=False)

    route = db.relationship('Route', back_populates='route_stages')
    stage = db.relationship('Stage', back_populates='route_stages')
    substage = db.relationship('Substage')

    @property
    def display_name(self):
        if self.substage:
            return f'{self.stage.name} / {self.substage.name}'
        return self.stage.name

    def __repr__(self):
        return f'<RouteStage route={self.route_id} stage={self.stage_id} seq={self.sequence_number}>'
