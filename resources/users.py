import logging
from middleware.auth import auth_required, current_user_id
from middleware.premium import active_account_required
from flask_restful import Resource
from flask import request
from models import db, User, Profile, ProfilePhoto
from models.profiles import GENDERS
from utils import quota
from utils.cache import CacheManager, invalidate_discovery_everywhere
from utils.errors import ServiceError, ValidationError, NotFound, Conflict
from utils.matching import is_blocked_between
from utils.response import success_response, error_response, service_error_response
from utils.storage import upload_profile_photo, delete_object
from utils.validation import get_json_body, parse_date, age_on
from utils.verification import submit_verification

logger = logging.getLogger(__name__)

MIN_AGE = 18
MAX_PHOTOS = 6
TEXT_FIELDS = {'display_name': 100, 'bio': 1000, 'city': 100, 'job_title': 100}


def _own_profile_dict(profile):
    data = profile.public_dict()
    data.update({
        'id': str(profile.id),
        'date_of_birth': profile.date_of_birth.isoformat(),
        'looking_for': profile.looking_for or [],
        'min_age': profile.min_age,
        'max_age': profile.max_age,
        'is_visible': profile.is_visible,
        'is_profile_complete': profile.is_profile_complete,
        'is_suspended': profile.is_suspended,
        'verification_status': profile.verification_status,
        'photos': [_photo_dict(photo) for photo in profile.photos],
    })
    return data


def _photo_dict(photo):
    return {
        'id': str(photo.id),
        'photo_url': photo.photo_url,
        'display_order': photo.display_order,
        'is_primary': photo.is_primary,
    }


def _validate_gender(value, field='gender'):
    if value not in GENDERS:
        raise ValidationError(f"Invalid {field}. Must be one of: {', '.join(GENDERS)}")
    return value


def _validate_dob(value):
    dob = parse_date(value, 'date_of_birth')
    if age_on(dob) < MIN_AGE:
        raise ValidationError(f"You must be at least {MIN_AGE} years old")
    return dob


def _validate_age_range(min_age, max_age):
    for value in (min_age, max_age):
        if value is not None and (not isinstance(value, int) or not MIN_AGE <= value <= 100):
            raise ValidationError(f"Age preferences must be whole numbers between {MIN_AGE} and 100")
    if min_age is not None and max_age is not None and min_age > max_age:
        raise ValidationError("min_age cannot be greater than max_age")


def _apply_profile_fields(profile, data):
    """Copy editable profile fields from a request body, validating each"""
    for field, max_length in TEXT_FIELDS.items():
        if field in data:
            value = data[field]
            if value is not None and (not isinstance(value, str) or len(value) > max_length):
                raise ValidationError(f"{field} must be text of at most {max_length} characters")
            if field == 'display_name' and not (value or '').strip():
                raise ValidationError("display_name cannot be empty")
            setattr(profile, field, value.strip() if isinstance(value, str) else value)

    if 'gender' in data:
        profile.gender = _validate_gender(data['gender'])
    if 'date_of_birth' in data:
        profile.date_of_birth = _validate_dob(data['date_of_birth'])
    if 'looking_for' in data:
        looking_for = data['looking_for'] or []
        if not isinstance(looking_for, list):
            raise ValidationError("looking_for must be a list of genders")
        for gender in looking_for:
            _validate_gender(gender, 'looking_for')
        profile.looking_for = sorted(set(looking_for))
    if 'height_cm' in data:
        height = data['height_cm']
        if height is not None and (not isinstance(height, int) or not 100 <= height <= 250):
            raise ValidationError("height_cm must be between 100 and 250")
        profile.height_cm = height
    if 'min_age' in data or 'max_age' in data:
        min_age = data.get('min_age', profile.min_age)
        max_age = data.get('max_age', profile.max_age)
        _validate_age_range(min_age, max_age)
        profile.min_age = min_age
        profile.max_age = max_age
    if 'is_visible' in data:
        if not isinstance(data['is_visible'], bool):
            raise ValidationError("is_visible must be true or false")
        profile.is_visible = data['is_visible']


class CurrentUserResource(Resource):
    """Resource for current authenticated user's profile"""

    @auth_required
    def get(self):
        """Get current user with profile and subscription"""
        try:
            user_id = current_user_id()

            user = db.session.get(User, user_id)
            if not user:
                logger.warning(f"User {user_id} not found")
                return error_response("User not found", 404)

            profile = Profile.query.filter_by(user_id=user_id).first()
            subscription = quota.load_entitlements(user_id)
            db.session.commit()

            user_data = user.to_dict()
            user_data['is_admin'] = user.is_admin
            user_data['profile'] = _own_profile_dict(profile) if profile else None
            user_data['subscription'] = {
                'tier': subscription.tier,
                'is_active': subscription.is_active,
                'remaining': quota.quota_summary(subscription),
            }

            return success_response(user_data, "User profile retrieved successfully")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error fetching user profile: {str(e)}")
            return error_response("Failed to fetch profile", 500)

    @auth_required
    @active_account_required
    def put(self):
        """Update current user's profile"""
        try:
            user_id = current_user_id()
            data = get_json_body(request)

            user = db.session.get(User, user_id)
            if not user:
                return error_response("User not found", 404)

            profile = Profile.query.filter_by(user_id=user_id).first()
            if not profile:
                return error_response("Profile not found. Complete onboarding first", 404)

            if 'name' in data:
                name = data['name']
                if name is not None and (not isinstance(name, str) or len(name) > 150):
                    raise ValidationError("name must be text of at most 150 characters")
                user.name = name.strip() if isinstance(name, str) else name

            was_visible = profile.is_visible
            _apply_profile_fields(profile, data)

            db.session.commit()
            logger.info(f"Updated profile for user {user_id}")

            if was_visible != profile.is_visible:
                invalidate_discovery_everywhere()
            else:
                CacheManager.invalidate_user_cache(user_id)

            return success_response(_own_profile_dict(profile), "Profile updated successfully")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating profile: {str(e)}")
            return error_response("Failed to update profile", 500)

    def patch(self):
        """Partially update current user's profile"""
        # PATCH uses the same logic as PUT for partial updates
        return self.put()

    @auth_required
    def delete(self):
        """Hide the profile; rows are kept so matches and reports stay intact"""
        try:
            user_id = current_user_id()
            profile = Profile.query.filter_by(user_id=user_id).first()
            if not profile:
                return error_response("Profile not found", 404)

            profile.is_visible = False
            db.session.commit()
            invalidate_discovery_everywhere()
            logger.info(f"Profile hidden for user {user_id}")

            return success_response({'is_visible': False}, "Profile deleted")

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting profile: {str(e)}")
            return error_response("Failed to delete profile", 500)


class OnboardingResource(Resource):
    """Create the caller's profile"""

    @auth_required
    def post(self):
        try:
            user_id = current_user_id()
            data = get_json_body(request)

            if not db.session.get(User, user_id):
                return error_response("User not found", 404)
            if Profile.query.filter_by(user_id=user_id).first():
                raise Conflict("Profile already exists")

            missing = [field for field in ('display_name', 'date_of_birth', 'gender') if not data.get(field)]
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}")

            profile = Profile(
                user_id=user_id,
                display_name=data['display_name'],
                date_of_birth=_validate_dob(data['date_of_birth']),
                gender=_validate_gender(data['gender']),
            )
            _apply_profile_fields(profile, data)
            profile.is_profile_complete = True
            db.session.add(profile)
            quota.get_or_create_subscription(user_id)
            db.session.commit()

            invalidate_discovery_everywhere()
            logger.info(f"Profile created for user {user_id}")

            return success_response(_own_profile_dict(profile), "Profile created successfully", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating profile: {str(e)}")
            return error_response("Failed to create profile", 500)


class UserProfileResource(Resource):
    """Resource for viewing other users' profiles"""

    @auth_required
    def get(self, user_id):
        """Get another user's public profile"""
        try:
            viewer_id = current_user_id()

            if user_id == viewer_id:
                return error_response("Use /users/me for your own profile", 400)

            profile = Profile.query.filter_by(user_id=user_id).first()
            if (not profile or not profile.is_visible or profile.is_suspended
                    or is_blocked_between(viewer_id, user_id)):
                return error_response("Profile not found", 404)

            return success_response(profile.public_dict(), "User profile retrieved")

        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {str(e)}")
            return error_response("Failed to fetch profile", 500)


class ProfilePhotosResource(Resource):

    @auth_required
    @active_account_required
    def post(self):
        """Upload a photo (multipart field 'photo')"""
        try:
            user_id = current_user_id()
            profile = Profile.query.filter_by(user_id=user_id).first()
            if not profile:
                raise NotFound("Profile not found. Complete onboarding first")

            upload = request.files.get('photo')
            if upload is None:
                raise ValidationError("A 'photo' file is required")
            if len(profile.photos) >= MAX_PHOTOS:
                raise ValidationError(f"You can upload at most {MAX_PHOTOS} photos")

            path, url = upload_profile_photo(user_id, upload.read(), upload.mimetype)

            photo = ProfilePhoto(
                profile_id=profile.id,
                photo_url=url,
                storage_path=path,
                display_order=len(profile.photos),
                is_primary=not profile.photos,
            )
            db.session.add(photo)
            db.session.commit()
            CacheManager.invalidate_user_cache(user_id)

            return success_response(_photo_dict(photo), "Photo uploaded", 201)

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error uploading photo: {str(e)}")
            return error_response("Failed to upload photo", 500)


class ProfilePhotoResource(Resource):

    @auth_required
    def delete(self, photo_id):
        try:
            user_id = current_user_id()
            profile = Profile.query.filter_by(user_id=user_id).first()
            photo = db.session.get(ProfilePhoto, photo_id)
            if not profile or not photo or photo.profile_id != profile.id:
                raise NotFound("Photo not found")

            storage_path = photo.storage_path
            was_primary = photo.is_primary
            profile.photos.remove(photo)

            for order, remaining in enumerate(profile.photos):
                remaining.display_order = order
            if was_primary and profile.photos:
                profile.photos[0].is_primary = True

            db.session.commit()
            delete_object(storage_path)

            return success_response({'deleted': str(photo_id)}, "Photo deleted")

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting photo: {str(e)}")
            return error_response("Failed to delete photo", 500)


class VerificationResource(Resource):
    """Face verification by selfie"""

    @auth_required
    @active_account_required
    def post(self):
        try:
            user_id = current_user_id()
            data = get_json_body(request)

            profile = Profile.query.filter_by(user_id=user_id).first()
            if not profile:
                raise NotFound("Profile not found. Complete onboarding first")
            if profile.verification_status == 'approved':
                raise Conflict("Profile is already verified")

            result = submit_verification(profile, data.get('selfie_base64'))
            db.session.commit()

            return success_response(
                {
                    'status': result.status,
                    'verification_status': profile.verification_status,
                    'is_verified': profile.is_verified,
                    'confidence': result.confidence,
                    'reason': result.reason,
                },
                "Verification submitted"
            )

        except ServiceError as e:
            db.session.rollback()
            return service_error_response(e)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error submitting verification: {str(e)}")
            return error_response("Failed to submit verification", 500)
