import logging
from middleware.auth import auth_required, current_user_id
from flask_restful import Resource
from flask import request
from models import db, User, BlockedUser, Report
from utils.cache import CacheManager
from utils.errors import ServiceError, ValidationError, NotFound
from utils.matching import deactivate_match
from utils.response import success_response, error_response, service_error_response
from utils.validation import get_json_body

logger = logging.getLogger(__name__)


def _existing_user(user_id, field):
    if not user_id or not isinstance(user_id, str):
        raise ValidationError(f"{field} is required")
    if db.session.get(User, user_id) is None:
        raise NotFound("User not found")
    return user_id


class BlockListResource(Resource):

    @auth_required
    def get(self):
        """Users the caller has blocked"""
        try:
            user_id = current_user_id()
            blocks = BlockedUser.query.filter_by(blocker_id=user_id)\
                .order_by(BlockedUser.created_at.desc())\
                .all()
            return success_response([block.to_dict() for block in blocks], f"Found {len(blocks)} blocked users")

        except Exception as e:
            logger.error(f"Error fetching blocks: {str(e)}")
            return error_response("Failed to fetch blocked users", 500)

    @auth_required
    def post(self):
        """
        Body: {"user_id": "...", "reason": optional}

        Also ends any match between the two users.
        """
        try:
            user_id = current_user_id()
            data = get_json_body(request)
            target_id = _existing_user(data.get('user_id'), 'user_id')
            if target_id == user_id:
                raise ValidationError("You cannot block yourself")

            existing = BlockedUser.query.filter_by(blocker_id=user_id, blocked_id=target_id).first()
            if existing:
                return success_response(existing.to_dict(), "User already blocked")

            block = BlockedUser(blocker_id=user_id, blocked_id=target_id, reason=data.get('reason'))
            db.session.add(block)
            deactivate_match(user_id, target_id)
            db.session.commit()

            CacheManager.invalidate_user_cache(user_id, target_id)
            logger.info(f"User {user_id} blocked {target_id}")

            return success_response(block.to_dict(), "User blocked", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error blocking user: {str(e)}")
            return error_response("Failed to block user", 500)


class BlockResource(Resource):

    @auth_required
    def delete(self, user_id):
        """Unblock; an ended match is not restored"""
        try:
            blocker_id = current_user_id()
            block = BlockedUser.query.filter_by(blocker_id=blocker_id, blocked_id=user_id).first()
            if not block:
                raise NotFound("Block not found")

            db.session.delete(block)
            db.session.commit()

            CacheManager.invalidate_user_cache(blocker_id, user_id)
            logger.info(f"User {blocker_id} unblocked {user_id}")

            return success_response({'unblocked': user_id}, "User unblocked")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error unblocking user: {str(e)}")
            return error_response("Failed to unblock user", 500)


class ReportResource(Resource):

    @auth_required
    def post(self):
        """Body: {"reported_user_id": "...", "reason": "...", "description": optional}"""
        try:
            user_id = current_user_id()
            data = get_json_body(request)
            reported_id = _existing_user(data.get('reported_user_id'), 'reported_user_id')
            if reported_id == user_id:
                raise ValidationError("You cannot report yourself")

            reason = (data.get('reason') or '').strip()
            if not reason or len(reason) > 100:
                raise ValidationError("reason is required (max 100 characters)")

            report = Report(
                reporter_id=user_id,
                reported_user_id=reported_id,
                reason=reason,
                description=data.get('description'),
                status='pending',
            )
            db.session.add(report)
            db.session.commit()
            logger.info(f"User {user_id} reported {reported_id}: {reason}")

            return success_response({'id': str(report.id), 'status': report.status}, "Report submitted", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error submitting report: {str(e)}")
            return error_response("Failed to submit report", 500)
