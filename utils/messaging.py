import logging
from typing import List, Optional, Tuple

from sqlalchemy import func

from models import db, Match, Message, Profile, Subscription, utcnow
from utils import quota
from utils.errors import ValidationError, NotFound, PermissionDenied
from utils.matching import is_blocked_between

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def get_conversation(match_id, user_id) -> Match:
    match = db.session.get(Match, match_id)
    if match is None:
        raise NotFound("Match not found")
    if not match.has_participant(user_id):
        raise PermissionDenied("You are not part of this match")
    return match


def send_message(sender_id: str, match_id, content) -> Tuple[Message, Subscription]:
    """
    Insert a chat message and spend one message from the sender's quota.

    Does not commit. The quota decrement and the insert share a transaction.

    Raises:
        ValidationError: empty or oversized content
        NotFound: unknown match
        PermissionDenied: not a participant, inactive match, or blocked
        QuotaExceeded: free daily messages used up
    """
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Message content is required")
    content = content.strip()
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")

    match = get_conversation(match_id, sender_id)
    if not match.is_active:
        raise PermissionDenied("This match is no longer active")
    if is_blocked_between(sender_id, match.other_user_id(sender_id)):
        raise PermissionDenied("You can no longer message this user")

    subscription = quota.consume('message', sender_id)

    message = Message(match_id=match.id, sender_id=sender_id, content=content, is_read=False, created_at=utcnow())
    db.session.add(message)
    db.session.flush()

    match.last_message_at = message.created_at
    sender = Profile.query.filter_by(user_id=sender_id).first()
    if sender is not None:
        sender.last_active = message.created_at

    logger.info(f"Message {message.id} sent by {sender_id} in match {match.id}")
    return message, subscription


def get_history(match_id, user_id: str, after=None, limit: int = 50) -> List[Message]:
    """Messages of a match in chronological order, optionally only those after a timestamp"""
    match = get_conversation(match_id, user_id)
    query = Message.query.filter(Message.match_id == match.id)
    if after is not None:
        query = query.filter(Message.created_at > after)
        return query.order_by(Message.created_at.asc(), Message.id.asc()).limit(limit).all()

    # Latest page, returned oldest first
    latest = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    return list(reversed(latest))


def mark_read(match_id, user_id: str) -> int:
    match = get_conversation(match_id, user_id)
    updated = Message.query.filter(
        Message.match_id == match.id,
        Message.sender_id != user_id,
        Message.is_read.is_(False),
    ).update({'is_read': True}, synchronize_session=False)
    return updated


def unread_counts(user_id: str, match_id: Optional[object] = None) -> dict:
    """Unread messages from the other side, per match and in total"""
    query = db.session.query(Message.match_id, func.count(Message.id)).join(
        Match, Match.id == Message.match_id
    ).filter(
        Message.sender_id != user_id,
        Message.is_read.is_(False),
        Match.is_active.is_(True),
        (Match.user_id_1 == user_id) | (Match.user_id_2 == user_id),
    )
    if match_id is not None:
        query = query.filter(Message.match_id == match_id)

    per_match = {str(mid): count for mid, count in query.group_by(Message.match_id).all()}
    return {'total': sum(per_match.values()), 'by_match': per_match}
