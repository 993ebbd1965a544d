import uuid
from sqlalchemy import Uuid
from .base import db, utcnow


class PasswordResetToken(db.Model):
    """One OTP → reset-token handoff. Codes and tokens are stored as SHA-256 digests."""
    __tablename__ = "password_reset_tokens"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = db.Column(db.String(150), nullable=False, index=True)

    otp_hash = db.Column(db.String(64), nullable=False)
    otp_expires_at = db.Column(db.DateTime, nullable=False)
    otp_verified = db.Column(db.Boolean, nullable=False, default=False)
    attempts = db.Column(db.Integer, nullable=False, default=0)

    reset_token_hash = db.Column(db.String(64), nullable=True, unique=True)
    token_expires_at = db.Column(db.DateTime, nullable=True)

    used = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.Index('idx_reset_tokens_email_used', 'email', 'used'),
    )
