import os
from dotenv import load_dotenv

load_dotenv()


def _database_url():
    url = os.getenv('DATABASE_URL', 'sqlite:///bexmatch.db')
    # Heroku-style URLs still use the legacy scheme
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity provider (JWT verification + admin API)
    AUTH_JWT_SECRET = os.getenv('AUTH_JWT_SECRET')
    AUTH_JWT_AUDIENCE = os.getenv('AUTH_JWT_AUDIENCE', 'authenticated')
    AUTH_JWKS_URL = os.getenv('AUTH_JWKS_URL')
    IDENTITY_WEBHOOK_SECRET = os.getenv('IDENTITY_WEBHOOK_SECRET', '')
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY', '')
    STORAGE_BUCKET = os.getenv('STORAGE_BUCKET', 'profile-photos')

    # Paystack
    PAYSTACK_SECRET_KEY = os.getenv('PAYSTACK_SECRET_KEY', '')
    PAYSTACK_BASE_URL = os.getenv('PAYSTACK_BASE_URL', 'https://api.paystack.co')
    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')

    # Email (Resend)
    RESEND_API_KEY = os.getenv('RESEND_API_KEY')
    RESEND_FROM_EMAIL = os.getenv('RESEND_FROM_EMAIL', 'BexMatch <noreply@bexmatch.app>')

    # Face verification (Gemini)
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY')
    GEMINI_MODEL = os.getenv('GEMINI_MODEL', 'gemini-2.0-flash')

    # Redis for caching and the live message feed; empty disables both
    REDIS_URL = os.getenv('REDIS_URL', '')

    # Free tier daily quotas
    FREE_DAILY_SWIPES = int(os.getenv('FREE_DAILY_SWIPES', 20))
    FREE_DAILY_MESSAGES = int(os.getenv('FREE_DAILY_MESSAGES', 5))

    HTTP_TIMEOUT = int(os.getenv('HTTP_TIMEOUT', 15))
