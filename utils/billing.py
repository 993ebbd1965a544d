"""
Subscription purchase flow: initialize a hosted checkout, verify by reference,
and apply the Paystack charge.success webhook.

Amounts and currency come from SUBSCRIPTION_PLANS only; the client names a
plan and nothing else.
"""
import logging
import secrets

from flask import current_app

from models import db, User, Payment, utcnow
from utils import quota
from utils.email_templates import get_payment_success_email
from utils.emailer import send_email
from utils.errors import ValidationError, NotFound
from utils.paystack import get_paystack_client

logger = logging.getLogger(__name__)

CURRENCY = 'NGN'

# Amounts in kobo (1 NGN = 100 kobo)
SUBSCRIPTION_PLANS = {
    'premium': {
        'amount': 2000000,  # 20,000 NGN
        'name': 'Premium',
        'duration_days': 30,
        'features': ['Unlimited swipes', 'Unlimited messages', 'See who likes you'],
    },
    'premium_plus': {
        'amount': 4500000,  # 45,000 NGN
        'name': 'Premium Plus',
        'duration_days': 30,
        'features': ['Everything in Premium', 'Message before matching', 'Priority visibility'],
    },
}

# Paystack transaction status -> Payment.status
GATEWAY_STATUS_MAP = {
    'success': 'success',
    'failed': 'failed',
    'reversed': 'failed',
    'abandoned': 'abandoned',
}


def generate_reference(user_id: str) -> str:
    return f"pay_{user_id[:8]}_{secrets.token_hex(8)}"


def initialize_payment(user: User, plan_id: str, payer_email: str = None) -> dict:
    """
    Create a pending Payment and open a Paystack checkout for it.

    Raises:
        ValidationError: unknown plan
        GatewayError: Paystack refused or was unreachable (payment marked failed)
    """
    plan = SUBSCRIPTION_PLANS.get(plan_id)
    if plan is None:
        raise ValidationError("Invalid plan")

    reference = generate_reference(user.id)
    payment = Payment(
        user_id=user.id,
        reference=reference,
        plan=plan_id,
        amount=plan['amount'],
        currency=CURRENCY,
        status='pending',
    )
    db.session.add(payment)
    db.session.commit()

    callback_url = f"{current_app.config['FRONTEND_URL']}/app/subscription/callback"
    try:
        data = get_paystack_client().initialize_transaction(
            email=payer_email or user.email,
            amount=plan['amount'],
            reference=reference,
            currency=CURRENCY,
            callback_url=callback_url,
            metadata={'user_id': user.id, 'plan': plan_id, 'plan_name': plan['name']},
        )
    except Exception:
        payment.status = 'failed'
        db.session.commit()
        raise

    payment.authorization_url = data.get('authorization_url')
    payment.access_code = data.get('access_code')
    db.session.commit()

    logger.info(f"Payment initialized for user {user.id}: {reference} ({plan_id})")
    return {
        'reference': reference,
        'authorization_url': payment.authorization_url,
        'access_code': payment.access_code,
        'amount': plan['amount'] / 100,
        'currency': CURRENCY,
        'plan': plan_id,
    }


def _apply_successful_charge(payment: Payment, transaction: dict):
    """Mark the payment paid and grant the tier, at most once per payment"""
    payment.status = 'success'
    payment.paid_at = payment.paid_at or utcnow()
    if transaction.get('id') is not None:
        payment.paystack_transaction_id = str(transaction.get('id'))
    payment.channel = transaction.get('channel') or payment.channel

    if payment.entitlement_applied:
        logger.info(f"Payment {payment.reference} already applied; skipping entitlement update")
        return

    plan = SUBSCRIPTION_PLANS[payment.plan]
    subscription = quota.apply_paid_tier(payment.user_id, payment.plan, plan['duration_days'])
    payment.entitlement_applied = True
    _send_confirmation(payment, plan, subscription)


def _send_confirmation(payment: Payment, plan: dict, subscription):
    user = db.session.get(User, payment.user_id)
    if user is None:
        return
    html = get_payment_success_email(
        plan_name=plan['name'],
        expires_at=subscription.current_period_end.strftime('%d %B %Y'),
        app_url=f"{current_app.config['FRONTEND_URL']}/app/discover",
    )
    send_email(user.email, f"Your {plan['name']} plan is active", html)


def _amount_matches(payment: Payment, transaction: dict) -> bool:
    amount = transaction.get('amount')
    currency = transaction.get('currency')
    if amount is not None and int(amount) != payment.amount:
        return False
    if currency and currency.upper() != payment.currency:
        return False
    return True


def verify_payment(reference: str, user_id: str = None) -> dict:
    """
    Ask Paystack for the transaction's status and record it.

    Only a gateway status of exactly "success" for the expected amount touches
    the Subscription row.

    Raises:
        NotFound: no such payment (for this user)
        GatewayError: Paystack refused or was unreachable
    """
    query = Payment.query.filter_by(reference=reference)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    payment = query.first()
    if payment is None:
        raise NotFound("Payment not found")

    transaction = get_paystack_client().verify_transaction(reference)
    gateway_status = transaction.get('status')
    payment.gateway_response = transaction

    if gateway_status == 'success' and _amount_matches(payment, transaction):
        _apply_successful_charge(payment, transaction)
    elif gateway_status == 'success' and payment.status != 'success':
        logger.warning(f"Payment {reference} reported success with unexpected amount/currency")
        payment.status = 'failed'
    elif payment.status != 'success':
        payment.status = GATEWAY_STATUS_MAP.get(gateway_status, 'pending')

    db.session.commit()

    verified = payment.status == 'success'
    logger.info(f"Payment {reference} verified: gateway status={gateway_status}, recorded={payment.status}")
    return {
        'verified': verified,
        'status': payment.status,
        'reference': reference,
        'tier': payment.plan if verified else None,
        'paid_at': payment.paid_at.isoformat() if payment.paid_at else None,
    }


def handle_webhook_event(event: dict) -> bool:
    """
    Apply a signature-checked Paystack event. Returns True if state changed.
    Unknown events and unknown references are acknowledged and ignored.
    """
    event_type = event.get('event')
    if event_type != 'charge.success':
        logger.info(f"Ignoring Paystack event {event_type}")
        return False

    data = event.get('data') or {}
    reference = data.get('reference')
    payment = Payment.query.filter_by(reference=reference).first() if reference else None
    if payment is None:
        logger.warning(f"Webhook charge.success for unknown reference {reference}")
        return False

    if not _amount_matches(payment, data):
        logger.warning(f"Webhook charge.success for {reference} with unexpected amount/currency")
        return False

    payment.gateway_response = data
    _apply_successful_charge(payment, data)
    db.session.commit()
    logger.info(f"Webhook: payment {reference} marked as success")
    return True
