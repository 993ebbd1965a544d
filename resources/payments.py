import json
import logging
from middleware.auth import auth_required, current_user_id
from flask_restful import Resource
from flask import request, current_app
from models import db, User
from models.payments import Payment
from utils import quota
from utils.billing import SUBSCRIPTION_PLANS, CURRENCY, initialize_payment, verify_payment, handle_webhook_event
from utils.errors import ServiceError
from utils.paystack import SIGNATURE_HEADER, verify_signature
from utils.response import success_response, error_response, service_error_response

logger = logging.getLogger(__name__)


class PaymentPlansResource(Resource):
    """Available subscription plans"""

    def get(self):
        plans = [
            {
                'id': plan_id,
                'name': plan['name'],
                'amount': plan['amount'] / 100,
                'amount_kobo': plan['amount'],
                'currency': CURRENCY,
                'duration_days': plan['duration_days'],
                'features': plan['features'],
            }
            for plan_id, plan in SUBSCRIPTION_PLANS.items()
        ]
        return success_response(plans, "Plans retrieved")


class InitializePaymentResource(Resource):
    """Initialize a payment with Paystack"""

    @auth_required
    def post(self):
        """
        Body: {"plan": "premium" | "premium_plus", "email": optional payer email}

        The amount always comes from the server-side plan table.
        """
        try:
            user_id = current_user_id()
            data = request.get_json(silent=True) or {}

            user = db.session.get(User, user_id)
            if not user:
                return error_response("User not found", 404)

            result = initialize_payment(user, data.get('plan'), data.get('email'))
            return success_response(result, "Payment initialized successfully")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error initializing payment: {str(e)}")
            return error_response("Failed to initialize payment", 500)


class VerifyPaymentResource(Resource):
    """Verify payment with Paystack"""

    @auth_required
    def get(self, reference):
        try:
            user_id = current_user_id()
            result = verify_payment(reference, user_id=user_id)
            message = "Payment verified successfully" if result['verified'] else "Payment not completed"
            return success_response(result, message)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error verifying payment {reference}: {str(e)}")
            return error_response("Failed to verify payment", 500)


class PaystackWebhookResource(Resource):
    """Handle Paystack webhook events"""

    def post(self):
        try:
            raw_body = request.get_data()
            signature = request.headers.get(SIGNATURE_HEADER)

            if not verify_signature(raw_body, signature, current_app.config.get('PAYSTACK_SECRET_KEY')):
                logger.warning("Paystack webhook signature verification failed")
                return error_response("Invalid signature", 401)

            try:
                event = json.loads(raw_body)
            except ValueError:
                return error_response("Invalid payload", 400)

            logger.info(f"Paystack webhook received: {event.get('event')}")
            applied = handle_webhook_event(event)

            return success_response({'received': True, 'applied': applied}, "Webhook processed")

        except Exception as e:
            db.session.rollback()
            logger.exception("Unhandled error in Paystack webhook")
            return error_response("Webhook processing failed", 500)


class SubscriptionStatusResource(Resource):
    """Current tier, billing period and remaining quotas"""

    @auth_required
    def get(self):
        try:
            user_id = current_user_id()
            subscription = quota.load_entitlements(user_id)
            db.session.commit()

            latest_payment = Payment.query.filter_by(user_id=user_id)\
                .order_by(Payment.created_at.desc())\
                .first()

            data = {
                'tier': subscription.tier,
                'is_active': subscription.is_active,
                'is_paid': subscription.is_paid,
                'current_period_start': subscription.current_period_start.isoformat() if subscription.current_period_start else None,
                'current_period_end': subscription.current_period_end.isoformat() if subscription.current_period_end else None,
                'remaining': quota.quota_summary(subscription),
                'latest_payment': latest_payment.to_dict() if latest_payment else None,
            }
            return success_response(data, "Subscription status retrieved")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error fetching subscription status: {str(e)}")
            return error_response("Failed to fetch subscription status", 500)
