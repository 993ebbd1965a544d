import base64
import binascii
import json
import logging
import re
from collections import namedtuple
from typing import Optional, Tuple

import google.generativeai as genai
import requests
from flask import current_app

from models import Profile, utcnow
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_SELFIE_BYTES = 5 * 1024 * 1024
DECISIONS = ('verified', 'rejected', 'pending')

_DATA_URL = re.compile(r'^data:image/(jpeg|jpg|png|webp);base64,(.+)$', re.DOTALL)

VerificationResult = namedtuple('VerificationResult', ['status', 'confidence', 'reason'])

SELFIE_PROMPT = """You verify dating profile selfies.
Check that the image is a real, live photo of one person's face: not a screenshot,
not a photo of a screen or printout, not a drawing, not a celebrity image.
Answer with JSON only: {"status": "verified" | "rejected" | "pending", "confidence": 0-100, "reason": "..."}
Use "pending" when you are not sure."""

COMPARE_PROMPT = """You verify dating profile selfies.
The first image is a new selfie. The second image is the profile's main photo.
Decide whether the selfie is a real, live photo AND shows the same person as the profile photo.
Answer with JSON only: {"status": "verified" | "rejected" | "pending", "confidence": 0-100, "reason": "..."}
Use "pending" when you are not sure."""


def decode_selfie(data_url) -> Tuple[str, bytes]:
    """
    Split a base64 data URL into (mime_type, raw bytes).

    Raises:
        ValidationError: wrong format, unsupported type, or over 5MB
    """
    if not isinstance(data_url, str):
        raise ValidationError("selfie_base64 is required")
    found = _DATA_URL.match(data_url.strip())
    if not found:
        raise ValidationError("Selfie must be a JPEG, PNG or WebP data URL")

    image_type, encoded = found.groups()
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Selfie is not valid base64")

    if len(raw) > MAX_SELFIE_BYTES:
        raise ValidationError("Selfie must be 5MB or smaller")

    mime_type = 'image/jpeg' if image_type == 'jpg' else f'image/{image_type}'
    return mime_type, raw


def parse_verdict(text: Optional[str]) -> VerificationResult:
    """Read the model's JSON answer; anything unusable means pending"""
    if not text:
        return VerificationResult('pending', 0, 'Empty AI response')

    cleaned = text.strip()
    if cleaned.startswith('```'):
        cleaned = re.sub(r'^```(?:json)?', '', cleaned).rstrip('`').strip()

    start, end = cleaned.find('{'), cleaned.rfind('}')
    if start == -1 or end <= start:
        return VerificationResult('pending', 0, 'Unparseable AI response')

    try:
        data = json.loads(cleaned[start:end + 1])
    except ValueError:
        return VerificationResult('pending', 0, 'Unparseable AI response')

    status = data.get('status')
    if status not in DECISIONS:
        status = 'pending'
    try:
        confidence = int(data.get('confidence') or 0)
    except (TypeError, ValueError):
        confidence = 0
    return VerificationResult(status, confidence, str(data.get('reason') or ''))


def _fetch_reference_photo(url: str):
    try:
        response = requests.get(url, timeout=current_app.config['HTTP_TIMEOUT'])
    except requests.RequestException as e:
        logger.warning(f"Could not fetch reference photo: {e}")
        return None
    if response.status_code != 200:
        logger.warning(f"Reference photo fetch returned {response.status_code}")
        return None
    mime_type = response.headers.get('content-type', 'image/jpeg').split(';')[0]
    return {'mime_type': mime_type, 'data': response.content}


def analyze_selfie(mime_type: str, image: bytes, reference_photo_url: Optional[str] = None) -> VerificationResult:
    api_key = current_app.config.get('GEMINI_API_KEY')
    if not api_key:
        logger.warning("GEMINI_API_KEY not configured; selfie goes to manual review")
        return VerificationResult('pending', 0, 'AI verification unavailable')

    parts = [SELFIE_PROMPT, {'mime_type': mime_type, 'data': image}]
    if reference_photo_url:
        reference = _fetch_reference_photo(reference_photo_url)
        if reference is not None:
            parts = [COMPARE_PROMPT, {'mime_type': mime_type, 'data': image}, reference]

    try:
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(current_app.config['GEMINI_MODEL'])
        response = model.generate_content(parts)
        text = response.text
    except Exception as e:
        logger.error(f"Gemini selfie analysis failed: {str(e)}")
        return VerificationResult('pending', 0, 'AI verification unavailable')

    return parse_verdict(text)


def submit_verification(profile: Profile, selfie_data_url) -> VerificationResult:
    """
    Run AI face verification and record the outcome on the profile.
    Pending results are queued for an admin (verification_status = submitted).
    """
    mime_type, image = decode_selfie(selfie_data_url)
    primary = profile.primary_photo
    result = analyze_selfie(mime_type, image, primary.photo_url if primary else None)

    now = utcnow()
    profile.verification_submitted_at = now
    if result.status == 'verified':
        profile.is_verified = True
        profile.verification_status = 'approved'
        profile.verification_reviewed_at = now
        profile.verification_reviewed_by = 'ai'
    elif result.status == 'rejected':
        profile.is_verified = False
        profile.verification_status = 'rejected'
        profile.verification_reviewed_at = now
        profile.verification_reviewed_by = 'ai'
    else:
        profile.is_verified = False
        profile.verification_status = 'submitted'
        profile.verification_reviewed_at = None
        profile.verification_reviewed_by = None

    logger.info(f"Verification for user {profile.user_id}: {result.status} ({result.confidence})")
    return result
