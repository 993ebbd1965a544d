import logging
from datetime import datetime, time
from middleware.auth import auth_required, admin_required, current_user_id
from flask_restful import Resource
from flask import request
from models import db, User, Profile, Match, Subscription, Report, AdminMessage, AdminAnnouncement, \
    DismissedAnnouncement, utcnow
from models.moderation import ANNOUNCEMENT_TARGETS
from models.subscription import PAID_TIERS
from utils import quota
from utils.cache import CacheManager, invalidate_discovery_everywhere
from utils.errors import ServiceError, ValidationError, NotFound
from utils.response import success_response, error_response, service_error_response, paginated_response
from utils.validation import get_json_body, parse_datetime

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value else None


def _report_dict(report):
    return {
        'id': str(report.id),
        'reporter_id': report.reporter_id,
        'reported_user_id': report.reported_user_id,
        'reason': report.reason,
        'description': report.description,
        'status': report.status,
        'reviewed_at': _iso(report.reviewed_at),
        'reviewed_by': report.reviewed_by,
        'created_at': _iso(report.created_at),
    }


def _verification_dict(profile):
    primary = profile.primary_photo
    return {
        'profile_id': str(profile.id),
        'user_id': profile.user_id,
        'display_name': profile.display_name,
        'photo_url': primary.photo_url if primary else None,
        'verification_status': profile.verification_status,
        'submitted_at': _iso(profile.verification_submitted_at),
    }


def _message_dict(message):
    return {
        'id': str(message.id),
        'subject': message.subject,
        'content': message.content,
        'is_read': message.is_read,
        'created_at': _iso(message.created_at),
    }


def _announcement_dict(announcement):
    return {
        'id': str(announcement.id),
        'title': announcement.title,
        'content': announcement.content,
        'target_tier': announcement.target_tier,
        'expires_at': _iso(announcement.expires_at),
        'created_at': _iso(announcement.created_at),
    }


def _require_text(data, field, max_length=None):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def _require_bool(data, field):
    value = data.get(field)
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value


class AdminStatsResource(Resource):

    @auth_required
    @admin_required
    def get(self):
        try:
            start_of_day = datetime.combine(utcnow().date(), time.min)
            stats = {
                'total_users': User.query.count(),
                'premium_users': Subscription.query.filter(
                    Subscription.tier.in_(PAID_TIERS), Subscription.is_active.is_(True)
                ).count(),
                'pending_verifications': Profile.query.filter_by(verification_status='submitted').count(),
                'pending_reports': Report.query.filter_by(status='pending').count(),
                'new_users_today': User.query.filter(User.created_at >= start_of_day).count(),
                'total_matches': Match.query.count(),
            }
            return success_response(stats, "Stats retrieved")

        except Exception as e:
            logger.error(f"Error fetching admin stats: {str(e)}")
            return error_response("Failed to fetch stats", 500)


class AdminUsersResource(Resource):

    @auth_required
    @admin_required
    def get(self):
        """Paginated user listing, newest first"""
        try:
            page = max(request.args.get('page', type=int, default=1), 1)
            per_page = max(1, min(request.args.get('per_page', type=int, default=20), 100))

            pagination = db.paginate(
                db.select(User).order_by(User.created_at.desc()),
                page=page,
                per_page=per_page,
                error_out=False,
            )

            users = []
            for user in pagination.items:
                profile = Profile.query.filter_by(user_id=user.id).first()
                subscription = Subscription.query.filter_by(user_id=user.id).first()
                entry = user.to_dict()
                entry.update({
                    'is_admin': user.is_admin,
                    'tier': subscription.tier if subscription else 'free',
                    'display_name': profile.display_name if profile else None,
                    'is_suspended': profile.is_suspended if profile else False,
                    'is_verified': profile.is_verified if profile else False,
                })
                users.append(entry)

            return paginated_response(users, pagination.total, page, per_page)

        except Exception as e:
            logger.error(f"Error listing users: {str(e)}")
            return error_response("Failed to list users", 500)


class AdminVerificationsResource(Resource):

    @auth_required
    @admin_required
    def get(self):
        """Profiles waiting for manual verification review, oldest first"""
        try:
            queue = Profile.query.filter_by(verification_status='submitted')\
                .order_by(Profile.verification_submitted_at.asc())\
                .all()
            return success_response([_verification_dict(p) for p in queue], f"{len(queue)} pending verifications")

        except Exception as e:
            logger.error(f"Error fetching verification queue: {str(e)}")
            return error_response("Failed to fetch verifications", 500)


class AdminVerificationDecisionResource(Resource):

    @auth_required
    @admin_required
    def post(self, profile_id):
        """Body: {"approved": true | false}"""
        try:
            admin_id = current_user_id()
            data = get_json_body(request)
            approved = _require_bool(data, 'approved')

            profile = db.session.get(Profile, profile_id)
            if not profile:
                raise NotFound("Profile not found")

            profile.is_verified = approved
            profile.verification_status = 'approved' if approved else 'rejected'
            profile.verification_reviewed_at = utcnow()
            profile.verification_reviewed_by = admin_id
            db.session.commit()

            CacheManager.invalidate_user_cache(profile.user_id)
            logger.info(f"Admin {admin_id} {'approved' if approved else 'rejected'} verification for {profile.user_id}")

            return success_response(_verification_dict(profile), "Verification reviewed")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error reviewing verification: {str(e)}")
            return error_response("Failed to review verification", 500)


class AdminReportsResource(Resource):

    @auth_required
    @admin_required
    def get(self):
        try:
            status = request.args.get('status', 'pending')
            reports = Report.query.filter_by(status=status)\
                .order_by(Report.created_at.desc())\
                .all()
            return success_response([_report_dict(r) for r in reports], f"Found {len(reports)} reports")

        except Exception as e:
            logger.error(f"Error fetching reports: {str(e)}")
            return error_response("Failed to fetch reports", 500)


class AdminReportDecisionResource(Resource):

    @auth_required
    @admin_required
    def post(self, report_id):
        """Body: {"action": "resolved" | "dismissed"}"""
        try:
            admin_id = current_user_id()
            data = get_json_body(request)
            action = data.get('action')
            if action not in ('resolved', 'dismissed'):
                raise ValidationError("action must be 'resolved' or 'dismissed'")

            report = db.session.get(Report, report_id)
            if not report:
                raise NotFound("Report not found")

            report.status = action
            report.reviewed_at = utcnow()
            report.reviewed_by = admin_id
            db.session.commit()
            logger.info(f"Admin {admin_id} marked report {report_id} {action}")

            return success_response(_report_dict(report), f"Report {action}")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating report: {str(e)}")
            return error_response("Failed to update report", 500)


class AdminSuspendUserResource(Resource):

    @auth_required
    @admin_required
    def post(self, user_id):
        """Body: {"suspended": true | false, "reason": optional}"""
        try:
            admin_id = current_user_id()
            data = get_json_body(request)
            suspended = _require_bool(data, 'suspended')
            if user_id == admin_id:
                raise ValidationError("You cannot suspend yourself")

            profile = Profile.query.filter_by(user_id=user_id).first()
            if not profile:
                raise NotFound("Profile not found")

            profile.is_suspended = suspended
            profile.suspension_reason = data.get('reason') if suspended else None
            db.session.commit()

            invalidate_discovery_everywhere()
            CacheManager.invalidate_user_cache(user_id)
            logger.info(f"Admin {admin_id} set suspended={suspended} for user {user_id}")

            return success_response(
                {'user_id': user_id, 'is_suspended': profile.is_suspended, 'reason': profile.suspension_reason},
                "User suspended" if suspended else "User reinstated"
            )

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error suspending user: {str(e)}")
            return error_response("Failed to update suspension", 500)


class AdminMessagesResource(Resource):

    @auth_required
    @admin_required
    def post(self):
        """Body: {"recipient_id": "...", "subject": optional, "content": "..."}"""
        try:
            admin_id = current_user_id()
            data = get_json_body(request)
            recipient_id = data.get('recipient_id')
            if not recipient_id or db.session.get(User, recipient_id) is None:
                raise NotFound("Recipient not found")

            message = AdminMessage(
                admin_id=admin_id,
                recipient_id=recipient_id,
                content=_require_text(data, 'content'),
            )
            if data.get('subject'):
                message.subject = _require_text(data, 'subject', 200)
            db.session.add(message)
            db.session.commit()
            logger.info(f"Admin {admin_id} messaged user {recipient_id}")

            return success_response(_message_dict(message), "Message sent", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error sending admin message: {str(e)}")
            return error_response("Failed to send message", 500)


class AdminAnnouncementsResource(Resource):

    @auth_required
    @admin_required
    def post(self):
        """Body: {"title": "...", "content": "...", "target_tier": optional, "expires_at": optional ISO}"""
        try:
            admin_id = current_user_id()
            data = get_json_body(request)

            target_tier = data.get('target_tier') or 'all'
            if target_tier not in ANNOUNCEMENT_TARGETS:
                raise ValidationError(f"target_tier must be one of: {', '.join(ANNOUNCEMENT_TARGETS)}")

            expires_at = parse_datetime(data.get('expires_at'), 'expires_at')
            if expires_at is not None and expires_at <= utcnow():
                raise ValidationError("expires_at must be in the future")

            announcement = AdminAnnouncement(
                admin_id=admin_id,
                title=_require_text(data, 'title', 200),
                content=_require_text(data, 'content'),
                target_tier=target_tier,
                expires_at=expires_at,
            )
            db.session.add(announcement)
            db.session.commit()
            logger.info(f"Admin {admin_id} posted announcement for {target_tier}")

            return success_response(_announcement_dict(announcement), "Announcement posted", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error posting announcement: {str(e)}")
            return error_response("Failed to post announcement", 500)


class InboxResource(Resource):
    """Admin messages and current announcements for the caller"""

    @auth_required
    def get(self):
        try:
            user_id = current_user_id()
            subscription = quota.load_entitlements(user_id)
            db.session.commit()

            messages = AdminMessage.query.filter_by(recipient_id=user_id)\
                .order_by(AdminMessage.created_at.desc())\
                .all()

            now = utcnow()
            announcements = AdminAnnouncement.query.filter(
                AdminAnnouncement.target_tier.in_(('all', subscription.tier)),
                db.or_(AdminAnnouncement.expires_at.is_(None), AdminAnnouncement.expires_at > now),
                AdminAnnouncement.id.notin_(
                    db.select(DismissedAnnouncement.announcement_id).where(DismissedAnnouncement.user_id == user_id)
                ),
            ).order_by(AdminAnnouncement.created_at.desc()).all()

            return success_response(
                {
                    'messages': [_message_dict(m) for m in messages],
                    'announcements': [_announcement_dict(a) for a in announcements],
                    'unread_count': sum(1 for m in messages if not m.is_read),
                },
                "Inbox retrieved"
            )

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error fetching inbox: {str(e)}")
            return error_response("Failed to fetch inbox", 500)


class InboxMessageReadResource(Resource):

    @auth_required
    def post(self, message_id):
        try:
            user_id = current_user_id()
            message = db.session.get(AdminMessage, message_id)
            if not message or message.recipient_id != user_id:
                raise NotFound("Message not found")

            message.is_read = True
            db.session.commit()
            return success_response(_message_dict(message), "Message marked as read")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error marking inbox message read: {str(e)}")
            return error_response("Failed to mark message as read", 500)


class InboxAnnouncementDismissResource(Resource):

    @auth_required
    def post(self, announcement_id):
        """Hide an announcement from the caller's inbox"""
        try:
            user_id = current_user_id()
            if db.session.get(AdminAnnouncement, announcement_id) is None:
                raise NotFound("Announcement not found")

            existing = DismissedAnnouncement.query.filter_by(
                user_id=user_id, announcement_id=announcement_id
            ).first()
            if existing:
                return success_response({'announcement_id': str(announcement_id)}, "Announcement already dismissed")

            db.session.add(DismissedAnnouncement(user_id=user_id, announcement_id=announcement_id))
            db.session.commit()
            logger.info(f"User {user_id} dismissed announcement {announcement_id}")

            return success_response({'announcement_id': str(announcement_id)}, "Announcement dismissed", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error dismissing announcement: {str(e)}")
            return error_response("Failed to dismiss announcement", 500)
