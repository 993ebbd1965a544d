import base64
import json
import time
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import jwt
import pytest
from svix.webhooks import Webhook

from app import create_app
from models import db, User, UserRole, Profile, Swipe, Match
from models.profiles import GENDERS
from utils import quota
from utils.matching import canonical_pair

JWT_SECRET = 'test-jwt-secret-that-is-long-enough-for-hs256-signing-0123456789'
PAYSTACK_SECRET = 'sk_test_0123456789abcdef'
IDENTITY_SECRET = 'whsec_' + base64.b64encode(b'identity-webhook-test-secret').decode()


def years_old(years):
    """A date of birth that makes someone exactly `years` old today or earlier this year"""
    return date(date.today().year - years, 1, 1)


def make_token(user_id, email=None, expires_in=3600, secret=JWT_SECRET, audience='authenticated', **claims):
    now = int(time.time())
    payload = {'sub': user_id, 'aud': audience, 'iat': now, 'exp': now + expires_in}
    if email:
        payload['email'] = email
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm='HS256')


def gateway_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = json.dumps(payload or {})
    return response


def signed_identity_headers(body: str):
    msg_id = 'msg_test_0001'
    now = datetime.now(timezone.utc)
    return {
        'svix-id': msg_id,
        'svix-timestamp': str(int(now.timestamp())),
        'svix-signature': Webhook(IDENTITY_SECRET).sign(msg_id, now, body),
        'Content-Type': 'application/json',
    }


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'AUTH_JWT_SECRET': JWT_SECRET,
        'AUTH_JWKS_URL': None,
        'AUTH_JWT_AUDIENCE': 'authenticated',
        'PAYSTACK_SECRET_KEY': PAYSTACK_SECRET,
        'PAYSTACK_BASE_URL': 'https://api.paystack.test',
        'IDENTITY_WEBHOOK_SECRET': IDENTITY_SECRET,
        'SUPABASE_URL': 'https://identity.test',
        'SUPABASE_SERVICE_ROLE_KEY': 'service-role-key',
        'RESEND_API_KEY': None,
        'GEMINI_API_KEY': None,
        'REDIS_URL': '',
        'FRONTEND_URL': 'http://frontend.test',
        'FREE_DAILY_SWIPES': 20,
        'FREE_DAILY_MESSAGES': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_header():
    def _auth_header(user_id, **kwargs):
        return {'Authorization': f"Bearer {make_token(user_id, **kwargs)}"}
    return _auth_header


@pytest.fixture
def make_user(app):
    def _make_user(user_id, gender='female', looking_for=None, age=28, tier='free',
                   with_profile=True, admin=False, **profile_fields):
        user = User(id=user_id, name=user_id.title(), email=f"{user_id}@example.com")
        db.session.add(user)
        db.session.flush()

        if with_profile:
            db.session.add(Profile(
                user_id=user_id,
                display_name=user_id.title(),
                date_of_birth=years_old(age),
                gender=gender,
                looking_for=looking_for if looking_for is not None else list(GENDERS),
                is_profile_complete=True,
                **profile_fields
            ))
        if admin:
            db.session.add(UserRole(user_id=user_id, role='admin'))

        quota.get_or_create_subscription(user_id)
        if tier != 'free':
            quota.apply_paid_tier(user_id, tier, 30)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_match(app):
    def _make_match(user_a, user_b, is_active=True):
        db.session.add(Swipe(swiper_id=user_a, swiped_id=user_b, direction='like'))
        db.session.add(Swipe(swiper_id=user_b, swiped_id=user_a, direction='like'))
        user_id_1, user_id_2 = canonical_pair(user_a, user_b)
        match = Match(user_id_1=user_id_1, user_id_2=user_id_2, is_active=is_active)
        db.session.add(match)
        db.session.commit()
        return match
    return _make_match
