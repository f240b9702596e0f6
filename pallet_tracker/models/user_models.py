# pallet_tracker/models/user_models.py

import enum
from pallet_tracker import db


class UserRole(enum.Enum):
    """Производственные роли. Проверка прав выполняется внешним сервисом авторизации."""
    OPERATOR = 'OPERATOR'
    MASTER = 'MASTER'
    TECHNOLOGIST = 'TECHNOLOGIST'
    ADMIN = 'ADMIN'


class User(db.Model):
    """Пользователь системы: оператор станка, мастер участка, технолог."""
    __tablename__ = 'Users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), index=True, unique=True, nullable=False)
    full_name = db.Column(db.String(128), nullable=True)
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.OPERATOR)

    audit_logs = db.relationship('AuditLog', back_populates='user')

    @property
    def display_name(self):
        return self.full_name or self.username

    def __repr__(self):
        return f'<User {self.username}>'
