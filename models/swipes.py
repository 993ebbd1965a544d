import uuid
from sqlalchemy import Uuid
from .base import db, utcnow
from sqlalchemy_serializer import SerializerMixin

SWIPE_DIRECTIONS = ('pass', 'like', 'super_like')
LIKE_DIRECTIONS = ('like', 'super_like')


class Swipe(db.Model, SerializerMixin):
    __tablename__ = "swipes"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    swiper_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    swiped_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    direction = db.Column(db.Enum(*SWIPE_DIRECTIONS, name='swipe_type'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    serialize_only = ('id', 'swiper_id', 'swiped_id', 'direction', 'created_at')

    # One swipe per ordered pair, never on yourself
    __table_args__ = (
        db.UniqueConstraint('swiper_id', 'swiped_id', name='uq_swipe_pair'),
        db.CheckConstraint('swiper_id != swiped_id', name='check_no_self_swipe'),
        db.Index('idx_swiped_direction', 'swiped_id', 'direction'),
    )
