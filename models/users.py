# models/users.py
from sqlalchemy import Column, String, DateTime, Index, func
from sqlalchemy_serializer import SerializerMixin
from .base import db, utcnow


class User(db.Model, SerializerMixin):
    __tablename__ = "users"

    # Primary Key (identity provider subject, a string UUID)
    id = Column(String, primary_key=True)

    # Basic Info
    name = Column(String(150), nullable=True)
    email = Column(String(150), unique=True, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    roles = db.relationship('UserRole', backref='user', cascade='all, delete-orphan', lazy='selectin')

    serialize_only = ('id', 'name', 'email', 'created_at')

    __table_args__ = (
        Index("ix_users_email_lower", func.lower(email), unique=True),
    )

    @property
    def is_admin(self):
        return any(role.role == 'admin' for role in self.roles)

    def __repr__(self):
        return f'<User {self.id}>'


class UserRole(db.Model, SerializerMixin):
    __tablename__ = "user_roles"

    id = Column(db.Integer, primary_key=True)
    user_id = Column(String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role = Column(db.Enum('user', 'admin', name='app_role'), nullable=False, default='user')
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
