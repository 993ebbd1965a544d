import logging
from collections import namedtuple
from functools import wraps

import jwt
from flask import request, current_app, g
from jwt import PyJWKClient

from models import db, User
from utils import quota
from utils.errors import AuthenticationError
from utils.response import error_response

logger = logging.getLogger(__name__)

AuthSession = namedtuple('AuthSession', ['user_id', 'email', 'claims'])


class AuthMiddleware:
    def __init__(self):
        self._jwks_clients = {}

    def _jwks_client(self, url):
        if url not in self._jwks_clients:
            self._jwks_clients[url] = PyJWKClient(url)
        return self._jwks_clients[url]

    def decode_token(self, token):
        config = current_app.config
        jwks_url = config.get('AUTH_JWKS_URL')

        if jwks_url:
            key = self._jwks_client(jwks_url).get_signing_key_from_jwt(token).key
            algorithms = ["RS256", "ES256"]
        else:
            key = config.get('AUTH_JWT_SECRET')
            if not key:
                raise AuthenticationError("Authentication is not configured", 500)
            algorithms = ["HS256"]

        return jwt.decode(
            token,
            key=key,
            algorithms=algorithms,
            audience=config.get('AUTH_JWT_AUDIENCE'),
            options={"verify_exp": True},
            leeway=60  # Allow 60 seconds of clock skew
        )

    def _ensure_user(self, session):
        """First authenticated request creates the local user row if the signup webhook hasn't yet"""
        if session.email is None or db.session.get(User, session.user_id) is not None:
            return
        user = User(id=session.user_id, email=session.email.lower(),
                    name=(session.claims.get('user_metadata') or {}).get('full_name'))
        db.session.add(user)
        db.session.flush()
        quota.get_or_create_subscription(user.id)
        db.session.commit()
        logger.info("Created local user %s from token claims", session.user_id)

    def auth_required(self, f):
        @wraps(f)
        def decorated(*args, **kwargs):
            auth_header = request.headers.get("Authorization", "")

            if not auth_header.startswith("Bearer "):
                logger.warning("Missing or malformed Authorization header")
                return error_response("Not authenticated", 401)

            token = auth_header.split("Bearer ")[1]

            try:
                payload = self.decode_token(token)
            except jwt.ExpiredSignatureError:
                logger.warning("JWT token expired")
                return error_response("Token expired", 401)
            except jwt.InvalidTokenError as e:
                logger.warning("Invalid JWT token: %s", str(e))
                return error_response("Invalid token", 401)
            except AuthenticationError as e:
                logger.error("JWT validation error: %s", e.message)
                return error_response(e.message, e.status_code)
            except Exception as e:
                logger.error("JWT validation error: %s", str(e))
                return error_response("Authentication failed", 500)

            if not payload.get("sub"):
                return error_response("Invalid token", 401)

            g.auth_session = AuthSession(
                user_id=payload["sub"],
                email=payload.get("email"),
                claims=payload,
            )
            logger.debug("JWT validated for user: %s", payload["sub"])

            try:
                self._ensure_user(g.auth_session)
            except Exception as e:
                db.session.rollback()
                logger.error("Failed to sync user %s: %s", payload["sub"], str(e))
                return error_response("Authentication failed", 500)

            return f(*args, **kwargs)

        return decorated


def current_session() -> AuthSession:
    session = g.get('auth_session')
    if session is None:
        raise AuthenticationError("Not authenticated")
    return session


def current_user_id() -> str:
    return current_session().user_id


def admin_required(f):
    """
    Require a user_roles row with role 'admin'.
    Must be used after @auth_required
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        session = g.get('auth_session')
        if session is None:
            return error_response("Not authenticated", 401)

        user = db.session.get(User, session.user_id)
        if user is None or not user.is_admin:
            logger.warning("Non-admin %s tried an admin route", session.user_id)
            return error_response("Admin access required", 403)

        return f(*args, **kwargs)

    return decorated


# Global instance
auth_middleware = AuthMiddleware()
auth_required = auth_middleware.auth_required
