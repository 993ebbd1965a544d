import logging
from middleware.auth import auth_required, current_user_id
from middleware.premium import tier_required, active_account_required
from flask_restful import Resource
from flask import request
from models import db, Profile, Subscription
from models.subscription import PAID_TIERS
from utils import quota
from utils.cache import CacheManager, build_discover_cache_key, CACHE_TTL_SHORT
from utils.errors import ServiceError
from utils.matching import (
    get_discover_profiles,
    record_swipe,
    get_active_matches,
    get_participant_match,
    get_received_likes,
    last_message,
)
from utils.response import success_response, error_response, service_error_response
from utils.validation import get_json_body

logger = logging.getLogger(__name__)


def _match_dict(match, user_id):
    other_id = match.other_user_id(user_id)
    other = Profile.query.filter_by(user_id=other_id).first()
    latest = last_message(match.id)
    return {
        'id': str(match.id),
        'is_active': match.is_active,
        'created_at': match.created_at.isoformat() if match.created_at else None,
        'last_message_at': match.last_message_at.isoformat() if match.last_message_at else None,
        'user': other.public_dict() if other else {'user_id': other_id},
        'last_message': latest.to_payload() if latest else None,
    }


class DiscoverResource(Resource):
    """Swipe deck for the current user"""

    @auth_required
    def get(self):
        try:
            user_id = current_user_id()
            limit = request.args.get('limit', type=int, default=10)
            limit = max(1, min(limit, 50))

            cache_key = build_discover_cache_key(user_id, limit)
            cached = CacheManager.get(cache_key)
            if cached is not None:
                logger.info(f"Discover cache hit for user {user_id}")
                return success_response(cached, "Profiles retrieved (cached)")

            profiles = [profile.public_dict() for profile in get_discover_profiles(user_id, limit)]
            CacheManager.set(cache_key, profiles, ttl=CACHE_TTL_SHORT)

            return success_response(profiles, f"Found {len(profiles)} profiles")

        except Exception as e:
            logger.error(f"Error discovering profiles: {str(e)}")
            return error_response("Failed to load profiles", 500)


class SwipeResource(Resource):
    """Record a swipe (pass, like, super_like)"""

    @auth_required
    @active_account_required
    def post(self):
        """
        Body: {"target_user_id": "...", "direction": "like"}

        Returns whether the swipe produced a match.
        """
        try:
            user_id = current_user_id()
            data = get_json_body(request)

            result = record_swipe(user_id, data.get('target_user_id'), data.get('direction'))
            db.session.commit()

            CacheManager.invalidate_user_cache(user_id)

            subscription = Subscription.query.filter_by(user_id=user_id).first()
            response_data = {
                'recorded': True,
                'direction': result.swipe.direction,
                'is_match': result.is_match,
                'match': _match_dict(result.match, user_id) if result.match else None,
                'swipes_remaining': quota.quota_summary(subscription)['swipe'],
            }

            message = "It's a match!" if result.is_match else "Swipe recorded"
            return success_response(response_data, message, 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error recording swipe: {str(e)}")
            return error_response("Failed to record swipe", 500)


class UserMatchesResource(Resource):
    """Active matches of the current user"""

    @auth_required
    def get(self):
        try:
            user_id = current_user_id()
            matches = [_match_dict(match, user_id) for match in get_active_matches(user_id)]
            return success_response(matches, f"Found {len(matches)} matches")

        except Exception as e:
            logger.error(f"Error fetching matches: {str(e)}")
            return error_response("Failed to fetch matches", 500)


class MatchDetailResource(Resource):

    @auth_required
    def get(self, match_id):
        """Participant-only match detail"""
        try:
            user_id = current_user_id()
            match = get_participant_match(match_id, user_id, require_active=False)
            return success_response(_match_dict(match, user_id), "Match retrieved")

        except ServiceError as e:
            return service_error_response(e)
        except Exception as e:
            logger.error(f"Error fetching match {match_id}: {str(e)}")
            return error_response("Failed to fetch match", 500)

    @auth_required
    def delete(self, match_id):
        """Unmatch"""
        try:
            user_id = current_user_id()
            match = get_participant_match(match_id, user_id)
            match.is_active = False
            db.session.commit()

            CacheManager.invalidate_user_cache(match.user_id_1, match.user_id_2)
            logger.info(f"User {user_id} unmatched match {match_id}")

            return success_response({'id': str(match.id), 'is_active': False}, "Unmatched successfully")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error unmatching {match_id}: {str(e)}")
            return error_response("Failed to unmatch", 500)


class ReceivedLikesResource(Resource):
    """Who liked me (paid tiers)"""

    @auth_required
    @tier_required(*PAID_TIERS)
    def get(self):
        try:
            user_id = current_user_id()
            profiles = [profile.public_dict() for profile in get_received_likes(user_id)]
            return success_response(profiles, f"Found {len(profiles)} likes")

        except Exception as e:
            logger.error(f"Error fetching likes: {str(e)}")
            return error_response("Failed to fetch likes", 500)
