import json
import logging
from flask import request, current_app
from flask_restful import Resource
from svix.webhooks import Webhook, WebhookVerificationError
from models import db, User
from utils import quota
from utils.email_templates import get_welcome_email
from utils.emailer import send_email
from utils.response import success_response, error_response

logger = logging.getLogger(__name__)


class IdentityWebhook(Resource):
    """Handle identity provider user lifecycle events"""

    def post(self):
        """Process identity webhook events"""
        try:
            webhook_secret = current_app.config.get("IDENTITY_WEBHOOK_SECRET")
            if not webhook_secret:
                logger.error("IDENTITY_WEBHOOK_SECRET is missing")
                return error_response("Server misconfigured", 500)

            payload = request.get_data()
            headers = dict(request.headers)

            # Verify webhook signature
            try:
                wh = Webhook(webhook_secret)
                wh.verify(payload, headers)
                data = json.loads(payload)
            except WebhookVerificationError:
                logger.warning("Webhook signature verification failed")
                return error_response("Invalid signature", 400)
            except ValueError:
                return error_response("Invalid payload", 400)

            if not isinstance(data, dict):
                return error_response("Invalid payload", 400)

            event_type = data.get("type") or ""
            user_data = data.get("data", {})

            logger.info("Processing identity webhook event: %s", event_type)

            handler = getattr(self, f"_handle_{event_type.replace('.', '_')}", None)
            if handler:
                return handler(user_data)
            else:
                logger.info("Unhandled event type: %s", event_type)
                return success_response({"status": "ignored"}, "Event ignored")

        except Exception:
            db.session.rollback()
            logger.exception("Unhandled error in identity webhook")
            return error_response("Internal server error", 500)

    def _handle_user_created(self, user_data: dict):
        user_id = user_data.get("id")
        if not user_id:
            return error_response("Missing user ID", 400)

        if db.session.get(User, user_id):
            logger.info("User %s already exists", user_id)
            return success_response({"status": "exists"}, "User already exists")

        email = self._extract_email(user_data)
        if not email:
            return error_response("Missing email", 400)

        user = User(id=user_id, name=self._extract_name(user_data), email=email)
        db.session.add(user)
        db.session.flush()
        quota.get_or_create_subscription(user.id)
        db.session.commit()
        logger.info("Created user %s with free subscription", user_id)

        html = get_welcome_email(user.name, f"{current_app.config['FRONTEND_URL']}/onboarding")
        send_email(user.email, "Welcome to BexMatch", html)

        return success_response({"status": "created"}, "User created successfully", 201)

    def _handle_user_updated(self, user_data: dict):
        user_id = user_data.get("id")
        if not user_id:
            return error_response("Missing user ID", 400)

        user = db.session.get(User, user_id)
        if not user:
            logger.warning("User %s not found for update", user_id)
            return error_response("User not found", 404)

        user.name = self._extract_name(user_data) or user.name
        user.email = self._extract_email(user_data) or user.email
        db.session.commit()
        logger.info("Updated user %s", user_id)

        return success_response({"status": "updated"}, "User updated successfully")

    def _handle_user_deleted(self, user_data: dict):
        user_id = user_data.get("id")
        if not user_id:
            return error_response("Missing user ID", 400)

        user = db.session.get(User, user_id)
        if not user:
            logger.warning("User %s not found for deletion", user_id)
            return success_response({"status": "already_deleted"}, "User already deleted")

        # Dependent rows go with it via ondelete='CASCADE'
        db.session.delete(user)
        db.session.commit()
        logger.info("Deleted user %s", user_id)

        return success_response({"status": "deleted"}, "User deleted successfully")

    def _extract_email(self, user_data: dict):
        email = user_data.get("email")
        if not email and user_data.get("email_addresses"):
            email = user_data["email_addresses"][0].get("email_address")
        return email.strip().lower() if email else None

    def _extract_name(self, user_data: dict):
        metadata = user_data.get("user_metadata") or {}
        name = user_data.get("name") or metadata.get("full_name") or metadata.get("name")
        return name.strip() if name else None
