# pallet_tracker/models/order_models.py

import enum
from datetime import datetime, timezone
from pallet_tracker import db


class OrderStatus(enum.Enum):
    """Жизненный цикл производственного заказа."""
    PRELIMINARY = 'PRELIMINARY'
    APPROVED = 'APPROVED'
    LAUNCH_PERMITTED = 'LAUNCH_PERMITTED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class Order(db.Model):
    """Производственный заказ. Состоит из упаковок."""
    __tablename__ = 'Orders'
    id = db.Column(db.Integer, primary_key=True)
    batch_number = db.Column(db.String(50), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    status = db.Column(db.Enum(OrderStatus), nullable=False, default=OrderStatus.PRELIMINARY)
    required_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    packages = db.relationship('Package', back_populates='order', cascade="all, delete-orphan",
                               order_by='Package.id')

    def __repr__(self):
        return f'<Order {self.batch_number}>'


class Package(db.Model):
    """Упаковка внутри заказа. Задает потребность в деталях через PackagePart."""
    __tablename__ = 'Packages'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('Orders.id'), nullable=False, index=True)
    code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1, server_default='1')

    order = db.relationship('Order', back_populates='packages')
    package_parts = db.relationship('PackagePart', back_populates='package', cascade="all, delete-orphan")

    def __repr__(self):
        return f'<Package {self.code}>'


class PackagePart(db.Model):
    """Потребность детали в конкретной упаковке."""
    __tablename__ = 'PackageParts'
    __table_args__ = (
        db.UniqueConstraint('package_id', 'part_id', name='uq_package_part'),
    )
    id = db.Column(db.Integer, primary_key=True)
    package_id = db.Column(db.Integer, db.ForeignKey('Packages.id'), nullable=False, index=True)
    part_id = db.Column(db.Integer, db.ForeignKey('Parts.id'), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    package = db.relationship('Package', back_populates='package_parts')
    part = db.relationship('Part', back_populates='package_parts')
