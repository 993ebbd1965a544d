import logging
from middleware.auth import auth_required, current_user_id
from middleware.premium import active_account_required
from flask_restful import Resource
from flask import request, Response
from models import db
from utils import quota, realtime
from utils.errors import ServiceError
from utils.messaging import send_message, get_conversation, get_history, mark_read, unread_counts
from utils.response import success_response, error_response, service_error_response
from utils.validation import get_json_body, parse_uuid, parse_datetime

logger = logging.getLogger(__name__)


class MessageResource(Resource):
    """Send a message in a match"""

    @auth_required
    @active_account_required
    def post(self):
        """
        Body: {"match_id": "...", "content": "..."}

        Spends one message from a free user's daily quota.
        """
        try:
            user_id = current_user_id()
            data = get_json_body(request)
            match_id = parse_uuid(data.get('match_id'), 'match_id')

            message, subscription = send_message(user_id, match_id, data.get('content'))
            db.session.commit()

            payload = message.to_payload()
            realtime.publish_message(payload)

            return success_response(
                {
                    'message': payload,
                    'messages_remaining': quota.quota_summary(subscription)['message'],
                },
                "Message sent successfully",
                201
            )

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error sending message: {str(e)}")
            return error_response("Failed to send message", 500)


class MatchMessagesResource(Resource):
    """Message history of a match"""

    @auth_required
    def get(self, match_id):
        """
        Query params:
            after: ISO timestamp, only newer messages
            limit: page size (default 50, max 100)
        """
        try:
            user_id = current_user_id()
            after = parse_datetime(request.args.get('after'), 'after')
            limit = max(1, min(request.args.get('limit', type=int, default=50), 100))

            messages = [msg.to_payload() for msg in get_history(match_id, user_id, after=after, limit=limit)]
            return success_response(messages, f"Retrieved {len(messages)} messages")

        except ServiceError as e:
            return service_error_response(e)
        except Exception as e:
            logger.error(f"Error fetching messages for match {match_id}: {str(e)}")
            return error_response("Failed to fetch messages", 500)


class MarkMessagesReadResource(Resource):

    @auth_required
    def post(self, match_id):
        """Mark the other participant's messages as read"""
        try:
            user_id = current_user_id()
            updated = mark_read(match_id, user_id)
            db.session.commit()
            return success_response({'marked_read': updated}, f"Marked {updated} messages as read")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error marking messages read: {str(e)}")
            return error_response("Failed to mark messages as read", 500)


class UnreadMessagesResource(Resource):

    @auth_required
    def get(self):
        try:
            user_id = current_user_id()
            match_id = request.args.get('match_id')
            if match_id:
                match_id = parse_uuid(match_id, 'match_id')

            return success_response(unread_counts(user_id, match_id), "Unread counts retrieved")

        except ServiceError as e:
            return service_error_response(e)
        except Exception as e:
            logger.error(f"Error fetching unread counts: {str(e)}")
            return error_response("Failed to fetch unread counts", 500)


class MessageStreamResource(Resource):
    """Live message feed as Server-Sent Events"""

    @auth_required
    def get(self, match_id):
        pubsub = None
        try:
            user_id = current_user_id()
            get_conversation(match_id, user_id)

            # Subscribe before reading history so no insert falls in between
            pubsub = realtime.subscribe(match_id)
            if pubsub is None:
                return error_response("Live updates are unavailable", 503)

            history = [msg.to_payload() for msg in get_history(match_id, user_id, limit=100)]

            return Response(
                realtime.stream_messages(pubsub, history),
                mimetype='text/event-stream',
                headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
            )

        except ServiceError as e:
            if pubsub is not None:
                pubsub.close()
            return service_error_response(e)
        except Exception as e:
            if pubsub is not None:
                pubsub.close()
            logger.error(f"Error opening message stream for match {match_id}: {str(e)}")
            return error_response("Failed to open message stream", 500)
