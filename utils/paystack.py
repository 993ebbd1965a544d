import hashlib
import hmac
import logging

import requests
from flask import current_app

from utils.errors import GatewayError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'x-paystack-signature'


class PaystackClient:
    """Thin wrapper over the two Paystack transaction endpoints we use"""

    def __init__(self, secret_key: str, base_url: str = 'https://api.paystack.co', timeout: int = 15):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

    def _unwrap(self, response, action):
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code != 200 or not payload.get('status'):
            message = payload.get('message') or f"Paystack {action} failed"
            logger.error(f"Paystack {action} error ({response.status_code}): {response.text}")
            raise GatewayError(message, details={'gateway_status': response.status_code})
        return payload.get('data') or {}

    def initialize_transaction(self, email, amount, reference, currency, callback_url=None, metadata=None):
        """POST /transaction/initialize; returns data with authorization_url and access_code"""
        body = {
            'email': email,
            'amount': amount,
            'reference': reference,
            'currency': currency,
            'metadata': metadata or {},
        }
        if callback_url:
            body['callback_url'] = callback_url

        try:
            response = requests.post(
                f'{self.base_url}/transaction/initialize',
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Paystack initialize request failed: {e}")
            raise GatewayError("Payment gateway unreachable")
        return self._unwrap(response, 'initialize')

    def verify_transaction(self, reference):
        """GET /transaction/verify/:reference; returns the transaction data"""
        try:
            response = requests.get(
                f'{self.base_url}/transaction/verify/{reference}',
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Paystack verify request failed: {e}")
            raise GatewayError("Payment gateway unreachable")
        return self._unwrap(response, 'verify')


def get_paystack_client() -> PaystackClient:
    config = current_app.config
    return PaystackClient(
        secret_key=config['PAYSTACK_SECRET_KEY'],
        base_url=config['PAYSTACK_BASE_URL'],
        timeout=config['HTTP_TIMEOUT'],
    )


def compute_signature(raw_body: bytes, secret_key: str) -> str:
    return hmac.new(
        key=secret_key.encode('utf-8'),
        msg=raw_body,
        digestmod=hashlib.sha512,
    ).hexdigest()


def verify_signature(raw_body: bytes, signature, secret_key: str) -> bool:
    """HMAC-SHA512 of the raw request body, compared in constant time"""
    if not signature or not secret_key:
        return False
    expected = compute_signature(raw_body, secret_key).encode('ascii')
    return hmac.compare_digest(expected, signature.encode('utf-8', 'surrogateescape'))
