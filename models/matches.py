import uuid
from sqlalchemy import Uuid, CheckConstraint
from .base import db, utcnow
from sqlalchemy_serializer import SerializerMixin


class Match(db.Model, SerializerMixin):
    __tablename__ = "matches"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id_1 = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    user_id_2 = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_message_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    serialize_only = ('id', 'user_id_1', 'user_id_2', 'is_active', 'last_message_at', 'created_at')

    # user_id_1 is always the smaller ID so a pair maps to exactly one row
    __table_args__ = (
        db.UniqueConstraint('user_id_1', 'user_id_2', name='uq_match_pair'),
        CheckConstraint('user_id_1 < user_id_2', name='check_user_order'),
    )

    def has_participant(self, user_id):
        return user_id in (self.user_id_1, self.user_id_2)

    def other_user_id(self, user_id):
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1
