import uuid
from datetime import date, datetime, timezone
from typing import Optional

from utils.errors import ValidationError


def normalize_email(email) -> str:
    if not isinstance(email, str) or '@' not in email:
        raise ValidationError("A valid email is required")
    return email.strip().lower()


def parse_uuid(value, field: str = 'id') -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")


def parse_date(value, field: str = 'date') -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


def parse_datetime(value, field: str = 'timestamp') -> Optional[datetime]:
    """Parse an ISO timestamp into naive UTC; None passes through"""
    if value in (None, ''):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO timestamp")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def age_on(dob: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


def get_json_body(request) -> dict:
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        raise ValidationError("No data provided")
    return data
