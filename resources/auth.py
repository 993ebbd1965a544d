import logging
from flask_restful import Resource
from flask import request
from models import db
from utils import otp
from utils.errors import ServiceError
from utils.response import success_response, error_response, service_error_response
from utils.validation import get_json_body

logger = logging.getLogger(__name__)


class SendOTPResource(Resource):
    """Start a password reset by emailing a one-time code"""

    def post(self):
        try:
            data = get_json_body(request)
            message = otp.send_otp(data.get('email'))
            return success_response({'sent': True}, message)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error sending OTP: {str(e)}")
            return error_response("Failed to send verification code", 500)


class VerifyOTPResource(Resource):
    """Exchange a valid code for a single-use reset token"""

    def post(self):
        try:
            data = get_json_body(request)
            reset_token = otp.verify_otp(data.get('email'), data.get('otp'))
            return success_response({'reset_token': reset_token}, "Code verified")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error verifying OTP: {str(e)}")
            return error_response("Failed to verify code", 500)


class ResetPasswordResource(Resource):

    def post(self):
        try:
            data = get_json_body(request)
            otp.reset_password(data.get('reset_token'), data.get('new_password'))
            return success_response({'reset': True}, "Password updated successfully")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error resetting password: {str(e)}")
            return error_response("Failed to reset password", 500)
