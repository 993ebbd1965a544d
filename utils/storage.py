import logging
import secrets

import requests
from flask import current_app

from utils.errors import GatewayError, ServiceError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_PHOTO_TYPES = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
}
MAX_PHOTO_BYTES = 5 * 1024 * 1024


def _storage_settings():
    config = current_app.config
    if not config.get('SUPABASE_URL') or not config.get('SUPABASE_SERVICE_ROLE_KEY'):
        logger.error("Object storage is not configured")
        raise ServiceError("Photo storage unavailable", 503)
    return config['SUPABASE_URL'].rstrip('/'), config['SUPABASE_SERVICE_ROLE_KEY'], config['STORAGE_BUCKET']


def upload_profile_photo(user_id: str, data: bytes, content_type: str):
    """
    Store a photo under <user_id>/<random>.<ext>.

    Returns:
        (storage_path, public_url)
    """
    extension = ALLOWED_PHOTO_TYPES.get(content_type)
    if extension is None:
        raise ValidationError("Photo must be a JPEG, PNG or WebP image")
    if not data:
        raise ValidationError("Photo is empty")
    if len(data) > MAX_PHOTO_BYTES:
        raise ValidationError("Photo must be 5MB or smaller")

    base_url, service_key, bucket = _storage_settings()
    path = f"{user_id}/{secrets.token_hex(12)}.{extension}"

    try:
        response = requests.post(
            f"{base_url}/storage/v1/object/{bucket}/{path}",
            data=data,
            headers={
                'Authorization': f'Bearer {service_key}',
                'Content-Type': content_type,
                'x-upsert': 'false',
            },
            timeout=current_app.config['HTTP_TIMEOUT'],
        )
    except requests.RequestException as e:
        logger.error(f"Photo upload request failed for user {user_id}: {e}")
        raise GatewayError("Photo storage unreachable")

    if response.status_code not in (200, 201):
        logger.error(f"Photo upload failed ({response.status_code}): {response.text}")
        raise GatewayError("Failed to upload photo")

    logger.info(f"Uploaded photo {path}")
    return path, f"{base_url}/storage/v1/object/public/{bucket}/{path}"


def delete_object(path: str) -> bool:
    """Best-effort removal; the database row is the source of truth"""
    config = current_app.config
    if not path or not config.get('SUPABASE_URL') or not config.get('SUPABASE_SERVICE_ROLE_KEY'):
        return False
    base_url, service_key, bucket = _storage_settings()
    try:
        response = requests.delete(
            f"{base_url}/storage/v1/object/{bucket}",
            json={'prefixes': [path]},
            headers={'Authorization': f'Bearer {service_key}'},
            timeout=current_app.config['HTTP_TIMEOUT'],
        )
    except requests.RequestException as e:
        logger.warning(f"Photo delete request failed for {path}: {e}")
        return False
    if response.status_code != 200:
        logger.warning(f"Photo delete failed for {path} ({response.status_code})")
        return False
    return True
