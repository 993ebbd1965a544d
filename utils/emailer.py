import logging
import requests
from typing import Optional

from flask import current_app

logger = logging.getLogger(__name__)

RESEND_API_BASE = "https://api.resend.com"


def send_email(to: str, subject: str, html: str, *, from_email: Optional[str] = None) -> bool:
    """
    Send an email via the Resend API.

    Reads RESEND_API_KEY and RESEND_FROM_EMAIL from app config. Returns False
    (and logs) instead of raising, so a mail outage never fails the request
    that triggered it.
    """
    api_key = current_app.config.get("RESEND_API_KEY")
    if not api_key:
        logger.warning("RESEND_API_KEY not set; skipping email send to %s", to)
        return False

    sender = from_email or current_app.config.get("RESEND_FROM_EMAIL")

    try:
        resp = requests.post(
            f"{RESEND_API_BASE}/emails",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json={
                "from": sender,
                "to": [to],
                "subject": subject,
                "html": html,
            },
            timeout=current_app.config.get("HTTP_TIMEOUT", 15),
        )
    except requests.RequestException as e:
        logger.error("Resend email request failed for %s: %s", to, e)
        return False

    if resp.status_code not in (200, 201):
        logger.error("Resend email failed (%s): %s", resp.status_code, resp.text)
        return False

    logger.info("Resend email queued for %s: %s", to, subject)
    return True
