import logging

import requests
from flask import current_app

from utils.errors import GatewayError, ServiceError

logger = logging.getLogger(__name__)


class IdentityAdminClient:
    """Service-role calls against the identity provider's admin API"""

    def __init__(self, base_url: str, service_key: str, timeout: int = 15):
        self.base_url = base_url.rstrip('/')
        self.service_key = service_key
        self.timeout = timeout

    def _headers(self):
        return {
            'apikey': self.service_key,
            'Authorization': f'Bearer {self.service_key}',
            'Content-Type': 'application/json',
        }

    def update_password(self, user_id: str, new_password: str):
        try:
            response = requests.put(
                f'{self.base_url}/auth/v1/admin/users/{user_id}',
                json={'password': new_password},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Identity admin request failed for user {user_id}: {e}")
            raise GatewayError("Identity service unreachable")

        if response.status_code != 200:
            logger.error(f"Identity admin password update failed ({response.status_code}): {response.text}")
            raise GatewayError("Failed to update password")

        logger.info(f"Password updated for user {user_id}")


def get_identity_client() -> IdentityAdminClient:
    config = current_app.config
    if not config.get('SUPABASE_URL') or not config.get('SUPABASE_SERVICE_ROLE_KEY'):
        logger.error("SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing")
        raise ServiceError("Server misconfigured", 503)
    return IdentityAdminClient(
        base_url=config['SUPABASE_URL'],
        service_key=config['SUPABASE_SERVICE_ROLE_KEY'],
        timeout=config['HTTP_TIMEOUT'],
    )
