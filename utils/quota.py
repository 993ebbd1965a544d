"""
Entitlement and daily quota checks.

Counters live on the Subscription row. Free users get a fixed number of swipes
and messages per rolling 24h window; paid tiers store UNLIMITED. Consumption is
a conditional UPDATE so concurrent sessions can never drive a counter below zero.
"""
import logging
from datetime import timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import update, or_

from models import db, Subscription, utcnow
from models.subscription import UNLIMITED, PAID_TIERS
from utils.errors import QuotaExceeded, ValidationError

logger = logging.getLogger(__name__)

RESET_WINDOW = timedelta(hours=24)

ACTIONS = {
    'swipe': ('daily_swipes_remaining', 'last_swipe_reset', 'FREE_DAILY_SWIPES'),
    'message': ('daily_messages_remaining', 'last_message_reset', 'FREE_DAILY_MESSAGES'),
}


def _action_columns(action):
    try:
        return ACTIONS[action]
    except KeyError:
        raise ValidationError(f"Unknown quota action '{action}'")


def free_limit(action) -> int:
    _, _, config_key = _action_columns(action)
    return current_app.config[config_key]


def remaining(action, subscription) -> Optional[int]:
    counter, _, _ = _action_columns(action)
    return getattr(subscription, counter)


def is_unlimited(action, subscription) -> bool:
    if subscription.tier in PAID_TIERS and subscription.is_active:
        return True
    return remaining(action, subscription) == UNLIMITED


def can_perform(action, subscription) -> bool:
    """Pure check against an already-loaded subscription row"""
    if subscription is None:
        return False
    if is_unlimited(action, subscription):
        return True
    left = remaining(action, subscription)
    # A counter that was never initialized gets a full window on first use
    return left is None or left > 0


def get_or_create_subscription(user_id) -> Subscription:
    subscription = Subscription.query.filter_by(user_id=user_id).first()
    if subscription is None:
        subscription = Subscription(
            user_id=user_id,
            tier='free',
            is_active=True,
            daily_swipes_remaining=current_app.config['FREE_DAILY_SWIPES'],
            daily_messages_remaining=current_app.config['FREE_DAILY_MESSAGES'],
            last_swipe_reset=utcnow(),
            last_message_reset=utcnow(),
        )
        db.session.add(subscription)
        db.session.flush()
        logger.info(f"Created free subscription for user {user_id}")
    return subscription


def expire_if_lapsed(subscription, now=None) -> bool:
    """Downgrade a paid tier whose period has ended. Returns True if downgraded."""
    now = now or utcnow()
    if subscription.tier not in PAID_TIERS:
        return False
    if subscription.current_period_end is None or subscription.current_period_end > now:
        return False

    logger.info(f"Subscription for user {subscription.user_id} lapsed; downgrading to free")
    subscription.tier = 'free'
    subscription.is_active = True
    subscription.daily_swipes_remaining = current_app.config['FREE_DAILY_SWIPES']
    subscription.daily_messages_remaining = current_app.config['FREE_DAILY_MESSAGES']
    subscription.last_swipe_reset = now
    subscription.last_message_reset = now
    db.session.flush()
    return True


def refresh_window(action, user_id, now=None) -> int:
    """Reset a free counter whose window has elapsed. Returns rows reset (0 or 1)."""
    now = now or utcnow()
    counter, reset_column, _ = _action_columns(action)
    counter_col = getattr(Subscription, counter)
    reset_col = getattr(Subscription, reset_column)

    result = db.session.execute(
        update(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.tier == 'free',
            or_(reset_col.is_(None), reset_col <= now - RESET_WINDOW, counter_col.is_(None)),
        )
        .values({counter: free_limit(action), reset_column: now})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def load_entitlements(user_id, now=None) -> Subscription:
    """Subscription row with lapsed periods and elapsed windows applied"""
    now = now or utcnow()
    subscription = get_or_create_subscription(user_id)
    expire_if_lapsed(subscription, now)
    reset = sum(refresh_window(action, user_id, now) for action in ACTIONS)
    if reset:
        db.session.refresh(subscription)
    return subscription


def consume(action, user_id, now=None) -> Subscription:
    """
    Spend one unit of a daily quota, server-side.

    Runs inside the caller's transaction: the caller commits together with the
    row that the action wrote, or rolls both back.

    Raises:
        QuotaExceeded: the free counter is already at zero
    """
    counter, _, _ = _action_columns(action)
    subscription = load_entitlements(user_id, now)

    if is_unlimited(action, subscription):
        return subscription

    counter_col = getattr(Subscription, counter)
    result = db.session.execute(
        update(Subscription)
        .where(Subscription.user_id == user_id, counter_col > 0)
        .values({counter: counter_col - 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.info(f"User {user_id} is out of daily {action}s")
        raise QuotaExceeded(action)

    db.session.refresh(subscription)
    return subscription


def apply_paid_tier(user_id, tier, duration_days, now=None) -> Subscription:
    """Grant a paid tier for a billing period and lift the daily limits"""
    now = now or utcnow()
    subscription = get_or_create_subscription(user_id)
    subscription.tier = tier
    subscription.is_active = True
    subscription.current_period_start = now
    subscription.current_period_end = now + timedelta(days=duration_days)
    subscription.daily_swipes_remaining = UNLIMITED
    subscription.daily_messages_remaining = UNLIMITED
    db.session.flush()
    logger.info(f"User {user_id} upgraded to {tier} until {subscription.current_period_end.isoformat()}")
    return subscription


def reset_all_free_quotas(now=None) -> int:
    """Bulk version of refresh_window for the scheduled job"""
    now = now or utcnow()
    total = 0
    for action in ACTIONS:
        counter, reset_column, _ = _action_columns(action)
        reset_col = getattr(Subscription, reset_column)
        result = db.session.execute(
            update(Subscription)
            .where(
                Subscription.tier == 'free',
                or_(reset_col.is_(None), reset_col <= now - RESET_WINDOW),
            )
            .values({counter: free_limit(action), reset_column: now})
            .execution_options(synchronize_session=False)
        )
        total += result.rowcount
    db.session.commit()
    return total


def expire_lapsed_subscriptions(now=None) -> int:
    now = now or utcnow()
    lapsed = Subscription.query.filter(
        Subscription.tier.in_(PAID_TIERS),
        Subscription.current_period_end.isnot(None),
        Subscription.current_period_end <= now,
    ).all()
    for subscription in lapsed:
        expire_if_lapsed(subscription, now)
    db.session.commit()
    return len(lapsed)


def quota_summary(subscription) -> dict:
    return {
        action: (UNLIMITED if is_unlimited(action, subscription) else remaining(action, subscription))
        for action in ACTIONS
    }
