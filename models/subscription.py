import uuid
from sqlalchemy import Uuid
from .base import db, utcnow
from sqlalchemy_serializer import SerializerMixin

TIERS = ('free', 'premium', 'premium_plus')
PAID_TIERS = ('premium', 'premium_plus')

# Sentinel stored in the remaining-count columns for paid tiers
UNLIMITED = -1


class Subscription(db.Model, SerializerMixin):
    __tablename__ = "subscriptions"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)

    tier = db.Column(db.Enum(*TIERS, name='subscription_tier'), nullable=False, default='free')
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Billing period of the current paid tier
    current_period_start = db.Column(db.DateTime, nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True)

    # Daily quotas (free tier); UNLIMITED for paid tiers
    daily_swipes_remaining = db.Column(db.Integer, nullable=True)
    daily_messages_remaining = db.Column(db.Integer, nullable=True)
    last_swipe_reset = db.Column(db.DateTime, nullable=True)
    last_message_reset = db.Column(db.DateTime, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    serialize_only = (
        'tier', 'is_active', 'current_period_start', 'current_period_end',
        'daily_swipes_remaining', 'daily_messages_remaining',
    )

    __table_args__ = (
        db.CheckConstraint('daily_swipes_remaining >= -1', name='check_swipes_floor'),
        db.CheckConstraint('daily_messages_remaining >= -1', name='check_messages_floor'),
        db.Index('idx_subscriptions_tier', 'tier'),
        db.Index('idx_subscriptions_period_end', 'current_period_end'),
    )

    @property
    def is_paid(self):
        return self.tier in PAID_TIERS
