import uuid
from sqlalchemy import Uuid
from .base import db, utcnow
from sqlalchemy_serializer import SerializerMixin

PAYMENT_STATUSES = ('pending', 'success', 'failed', 'abandoned')


class Payment(db.Model, SerializerMixin):
    __tablename__ = "payments"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    # Paystack specific IDs
    reference = db.Column(db.String(255), nullable=False, unique=True, index=True)
    paystack_transaction_id = db.Column(db.String(255), nullable=True)

    # Payment details (amount is fixed server-side per plan)
    plan = db.Column(db.Enum('premium', 'premium_plus', name='payment_plans'), nullable=False)
    amount = db.Column(db.Integer, nullable=False)  # kobo
    currency = db.Column(db.String(3), nullable=False, default='NGN')

    status = db.Column(db.Enum(*PAYMENT_STATUSES, name='payment_status'), nullable=False, default='pending')
    entitlement_applied = db.Column(db.Boolean, nullable=False, default=False)

    authorization_url = db.Column(db.String(500), nullable=True)
    access_code = db.Column(db.String(100), nullable=True)
    channel = db.Column(db.String(50), nullable=True)
    gateway_response = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    paid_at = db.Column(db.DateTime, nullable=True)

    serialize_only = ('reference', 'plan', 'amount', 'currency', 'status', 'paid_at', 'created_at')

    __table_args__ = (
        db.Index('idx_payments_user_status', 'user_id', 'status'),
    )
