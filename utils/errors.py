from typing import Dict, Optional


class ServiceError(Exception):
    """Base error raised by domain helpers and turned into an error_response by resources"""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class PermissionDenied(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class QuotaExceeded(PermissionDenied):
    def __init__(self, action: str, message: Optional[str] = None):
        super().__init__(
            message or f"Daily {action} limit reached. Upgrade for unlimited {action}s!",
            details={'requires_upgrade': True, 'action': action},
        )
        self.action = action


class GatewayError(ServiceError):
    """An upstream HTTP service (payment gateway, storage, identity admin) failed"""
    status_code = 502
