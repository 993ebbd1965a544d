import logging
from functools import wraps

from flask import g

from models import db, Profile
from utils import quota
from utils.response import error_response

logger = logging.getLogger(__name__)


def tier_required(*tiers):
    """
    Decorator to require one of the given subscription tiers.
    Must be used after @auth_required
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                session = g.get('auth_session')
                if session is None:
                    return error_response("Not authenticated", 401)

                subscription = quota.load_entitlements(session.user_id)
                db.session.commit()

                if subscription.tier not in tiers or not subscription.is_active:
                    return error_response(
                        "Upgrade required to access this feature",
                        403,
                        {
                            'requires_upgrade': True,
                            'required_tiers': list(tiers),
                        }
                    )

            except Exception as e:
                db.session.rollback()
                logger.error(f"Subscription check error: {str(e)}")
                return error_response("Failed to verify subscription", 500)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def active_account_required(f):
    """
    Reject writes from suspended accounts.
    Must be used after @auth_required
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        session = g.get('auth_session')
        if session is None:
            return error_response("Not authenticated", 401)

        profile = Profile.query.filter_by(user_id=session.user_id).first()
        if profile is not None and profile.is_suspended:
            logger.warning(f"Suspended user {session.user_id} attempted a write")
            return error_response(
                "Your account has been suspended",
                403,
                {'suspended': True, 'reason': profile.suspension_reason}
            )

        return f(*args, **kwargs)

    return decorated_function
