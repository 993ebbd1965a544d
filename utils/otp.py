"""
Password reset by emailed one-time code.

send_otp -> verify_otp (returns a reset token) -> reset_password. Codes and
tokens are only ever stored as SHA-256 digests.
"""
import hashlib
import hmac
import logging
import secrets
from datetime import timedelta

from sqlalchemy import func

from models import db, User, PasswordResetToken, utcnow
from utils.email_templates import get_otp_email
from utils.emailer import send_email
from utils.errors import ValidationError
from utils.identity import get_identity_client
from utils.validation import normalize_email

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_TTL = timedelta(minutes=10)
RESET_TOKEN_TTL = timedelta(minutes=10)
MAX_ATTEMPTS = 5
MIN_PASSWORD_LENGTH = 6

GENERIC_SEND_MESSAGE = "If an account exists for this email, a verification code has been sent"


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def generate_otp() -> str:
    return ''.join(secrets.choice('0123456789') for _ in range(OTP_LENGTH))


def _find_user(email: str):
    return User.query.filter(func.lower(User.email) == email).first()


def send_otp(email) -> str:
    """
    Issue a fresh code for email and mail it. Returns the generic message,
    which is the same whether or not the account exists.
    """
    email = normalize_email(email)
    user = _find_user(email)
    if user is None:
        logger.info("OTP requested for unknown email")
        return GENERIC_SEND_MESSAGE

    now = utcnow()
    PasswordResetToken.query.filter_by(email=email, used=False).update(
        {'used': True}, synchronize_session=False
    )

    otp = generate_otp()
    db.session.add(PasswordResetToken(
        email=email,
        otp_hash=_digest(otp),
        otp_expires_at=now + OTP_TTL,
        created_at=now,
    ))
    db.session.commit()

    minutes = int(OTP_TTL.total_seconds() // 60)
    if not send_email(email, "Your BexMatch password reset code", get_otp_email(otp, minutes)):
        logger.error(f"Failed to deliver OTP email for user {user.id}")
    else:
        logger.info(f"OTP issued for user {user.id}")
    return GENERIC_SEND_MESSAGE


def verify_otp(email, otp) -> str:
    """
    Check a code against the latest pending one for email.

    Returns a single-use reset token. Wrong codes count against the attempt
    limit; the code is burned once the limit is reached.

    Raises:
        ValidationError: missing, wrong, expired, or burned code
    """
    email = normalize_email(email)
    if not otp or not isinstance(otp, str):
        raise ValidationError("Verification code is required")

    record = PasswordResetToken.query.filter_by(
        email=email, used=False, otp_verified=False
    ).order_by(PasswordResetToken.created_at.desc()).first()
    if record is None:
        raise ValidationError("Invalid or expired code")

    now = utcnow()
    if record.otp_expires_at <= now:
        record.used = True
        db.session.commit()
        raise ValidationError("Code has expired. Please request a new one")

    if not hmac.compare_digest(record.otp_hash, _digest(otp.strip())):
        record.attempts += 1
        if record.attempts >= MAX_ATTEMPTS:
            record.used = True
            logger.warning(f"OTP for {email} burned after {record.attempts} failed attempts")
        db.session.commit()
        raise ValidationError("Invalid or expired code")

    reset_token = secrets.token_urlsafe(32)
    record.otp_verified = True
    record.reset_token_hash = _digest(reset_token)
    record.token_expires_at = now + RESET_TOKEN_TTL
    db.session.commit()
    return reset_token


def reset_password(reset_token, new_password):
    """
    Raises:
        ValidationError: short password, or unknown/used/expired token
        GatewayError: identity provider rejected the update (token stays usable)
    """
    if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not reset_token or not isinstance(reset_token, str):
        raise ValidationError("Reset token is required")

    record = PasswordResetToken.query.filter_by(reset_token_hash=_digest(reset_token)).first()
    now = utcnow()
    if (record is None or record.used or not record.otp_verified
            or record.token_expires_at is None or record.token_expires_at <= now):
        raise ValidationError("Invalid or expired reset token")

    user = _find_user(record.email)
    if user is None:
        record.used = True
        db.session.commit()
        raise ValidationError("Invalid or expired reset token")

    get_identity_client().update_password(user.id, new_password)

    record.used = True
    db.session.commit()
    logger.info(f"Password reset completed for user {user.id}")
