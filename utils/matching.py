import hashlib
import logging
from collections import namedtuple
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_, text
from sqlalchemy.exc import IntegrityError

from models import db, Profile, Swipe, Match, Message, BlockedUser, utcnow
from models.swipes import SWIPE_DIRECTIONS, LIKE_DIRECTIONS
from utils import quota
from utils.errors import ValidationError, NotFound, Conflict

logger = logging.getLogger(__name__)

SwipeResult = namedtuple('SwipeResult', ['swipe', 'match', 'is_match'])


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """Order two user IDs the way Match stores them"""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def blocked_user_ids(user_id: str) -> set:
    """Users hidden from user_id because either side blocked the other"""
    rows = BlockedUser.query.filter(
        or_(BlockedUser.blocker_id == user_id, BlockedUser.blocked_id == user_id)
    ).all()
    hidden = set()
    for row in rows:
        hidden.add(row.blocked_id if row.blocker_id == user_id else row.blocker_id)
    return hidden


def is_blocked_between(user_a: str, user_b: str) -> bool:
    return BlockedUser.query.filter(
        or_(
            and_(BlockedUser.blocker_id == user_a, BlockedUser.blocked_id == user_b),
            and_(BlockedUser.blocker_id == user_b, BlockedUser.blocked_id == user_a),
        )
    ).first() is not None


def _years_ago(years: int, today: date) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return today.replace(year=today.year - years, day=28)


def get_discover_profiles(user_id: str, limit: int = 10) -> List[Profile]:
    """
    Candidate profiles for the swipe deck.

    Excludes the viewer, anyone already swiped, anyone blocked in either
    direction, and profiles that are hidden, incomplete or suspended. Honors the
    viewer's looking_for genders and age range.
    """
    viewer = Profile.query.filter_by(user_id=user_id).first()

    swiped_ids = set(db.session.scalars(db.select(Swipe.swiped_id).where(Swipe.swiper_id == user_id)))
    exclude_ids = swiped_ids | blocked_user_ids(user_id) | {user_id}

    query = Profile.query.filter(
        Profile.is_visible.is_(True),
        Profile.is_profile_complete.is_(True),
        Profile.is_suspended.is_(False),
        Profile.user_id.notin_(list(exclude_ids)),
    )

    if viewer is not None:
        if viewer.looking_for:
            query = query.filter(Profile.gender.in_(viewer.looking_for))
        today = date.today()
        if viewer.min_age:
            query = query.filter(Profile.date_of_birth <= _years_ago(viewer.min_age, today))
        if viewer.max_age:
            query = query.filter(Profile.date_of_birth > _years_ago(viewer.max_age + 1, today))

    return query.order_by(Profile.last_active.desc().nullslast()).limit(limit).all()


def _lock_pair(user_a: str, user_b: str):
    """Serialize swipes between one pair for the rest of the transaction (Postgres only)"""
    if db.session.get_bind().dialect.name != 'postgresql':
        return
    key = ':'.join(canonical_pair(user_a, user_b))
    lock_id = int.from_bytes(hashlib.sha256(key.encode('utf-8')).digest()[:8], 'big', signed=True)
    db.session.execute(text('SELECT pg_advisory_xact_lock(:lock_id)'), {'lock_id': lock_id})


def find_match(user_a: str, user_b: str) -> Optional[Match]:
    user_id_1, user_id_2 = canonical_pair(user_a, user_b)
    return Match.query.filter_by(user_id_1=user_id_1, user_id_2=user_id_2).first()


def _get_or_create_match(user_a: str, user_b: str) -> Match:
    existing = find_match(user_a, user_b)
    if existing is not None:
        return existing

    user_id_1, user_id_2 = canonical_pair(user_a, user_b)
    try:
        with db.session.begin_nested():
            match = Match(user_id_1=user_id_1, user_id_2=user_id_2, is_active=True)
            db.session.add(match)
        logger.info(f"Match created between {user_id_1} and {user_id_2}")
        return match
    except IntegrityError:
        # Another transaction created it first
        logger.info(f"Match between {user_id_1} and {user_id_2} already created concurrently")
        return find_match(user_a, user_b)


def record_swipe(actor_id: str, target_id: str, direction: str) -> SwipeResult:
    """
    Record a swipe and detect a mutual like in the same transaction.

    A Match row is created here, and only here, when the target has already
    liked the actor. The swipe quota is spent in the same transaction, so a
    failed insert never costs a swipe.

    Raises:
        ValidationError: bad direction or self-swipe
        NotFound: target is not discoverable
        Conflict: actor already swiped on target
        QuotaExceeded: free tier daily swipes used up
    """
    if direction not in SWIPE_DIRECTIONS:
        raise ValidationError(f"Invalid direction. Must be one of: {', '.join(SWIPE_DIRECTIONS)}")
    if not target_id:
        raise ValidationError("target_user_id is required")
    if actor_id == target_id:
        raise ValidationError("Cannot swipe on yourself")

    target = Profile.query.filter_by(user_id=target_id).first()
    if target is None or not target.is_discoverable or is_blocked_between(actor_id, target_id):
        raise NotFound("Profile not found")

    _lock_pair(actor_id, target_id)

    if Swipe.query.filter_by(swiper_id=actor_id, swiped_id=target_id).first() is not None:
        raise Conflict("You already swiped on this profile")

    quota.consume('swipe', actor_id)

    swipe = Swipe(swiper_id=actor_id, swiped_id=target_id, direction=direction)
    db.session.add(swipe)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("You already swiped on this profile")

    match = None
    if direction in LIKE_DIRECTIONS:
        reciprocal = Swipe.query.filter(
            Swipe.swiper_id == target_id,
            Swipe.swiped_id == actor_id,
            Swipe.direction.in_(LIKE_DIRECTIONS),
        ).first()
        if reciprocal is not None:
            match = _get_or_create_match(actor_id, target_id)

    actor = Profile.query.filter_by(user_id=actor_id).first()
    if actor is not None:
        actor.last_active = utcnow()

    logger.info(f"Swipe recorded: {actor_id} -> {target_id} ({direction}), match={match is not None}")
    return SwipeResult(swipe=swipe, match=match, is_match=match is not None)


def get_active_matches(user_id: str) -> List[Match]:
    return Match.query.filter(
        or_(Match.user_id_1 == user_id, Match.user_id_2 == user_id),
        Match.is_active.is_(True),
    ).order_by(
        Match.last_message_at.is_(None),
        Match.last_message_at.desc(),
        Match.created_at.desc(),
    ).all()


def get_participant_match(match_id, user_id: str, require_active: bool = True) -> Match:
    """
    Raises:
        NotFound: no such match, or user_id is not in it
        Conflict: match was deactivated (unmatch or block)
    """
    match = db.session.get(Match, match_id)
    if match is None or not match.has_participant(user_id):
        raise NotFound("Match not found")
    if require_active and not match.is_active:
        raise Conflict("This match is no longer active")
    return match


def deactivate_match(user_a: str, user_b: str) -> Optional[Match]:
    match = find_match(user_a, user_b)
    if match is not None and match.is_active:
        match.is_active = False
        logger.info(f"Match {match.id} deactivated")
    return match


def last_message(match_id) -> Optional[Message]:
    return Message.query.filter_by(match_id=match_id).order_by(Message.created_at.desc()).first()


def get_received_likes(user_id: str) -> List[Profile]:
    """Profiles that liked user_id and that user_id has not answered yet"""
    answered = db.select(Swipe.swiped_id).where(Swipe.swiper_id == user_id)
    liker_ids = db.select(Swipe.swiper_id).where(
        Swipe.swiped_id == user_id,
        Swipe.direction.in_(LIKE_DIRECTIONS),
        Swipe.swiper_id.notin_(answered),
    )
    hidden = blocked_user_ids(user_id)
    profiles = Profile.query.filter(
        Profile.user_id.in_(liker_ids),
        Profile.is_visible.is_(True),
        Profile.is_suspended.is_(False),
    ).all()
    return [profile for profile in profiles if profile.user_id not in hidden]
