"""Verification of signed delivery callbacks from the delay dispatch service."""
import base64
import hashlib
import logging
from typing import Optional

from jose import JWTError, jwt

from reminder_app.config import Settings

logger = logging.getLogger(__name__)

ISSUER = "Upstash"


def body_digest(body: bytes) -> str:
    """base64url(sha256(body)) without padding, as carried in the `body` claim."""
    return base64.urlsafe_b64encode(hashlib.sha256(body).digest()).decode().rstrip("=")


def _verify_with_key(body: bytes, signature: str, key: str, destination: Optional[str]) -> bool:
    try:
        claims = jwt.decode(
            signature,
            key,
            algorithms=["HS256"],
            issuer=ISSUER,
            options={"verify_aud": False},
        )
    except JWTError as e:
        logger.debug(f"Callback signature rejected: {e}")
        return False
    # `sub` names the URL the message was published to
    if destination and claims.get("sub") != destination:
        logger.debug(f"Callback signature rejected: signed for {claims.get('sub')!r}, expected {destination!r}")
        return False
    return (claims.get("body") or "").rstrip("=") == body_digest(body)


def verify_signature(body: bytes, signature: Optional[str], settings: Settings) -> bool:
    """
    Check an Upstash-Signature header against the current, then the next signing key.

    When the service knows its own callback URL, the token must have been
    issued for that URL. Returns True when verification is not configured.
    """
    if not settings.qstash_current_signing_key:
        return True
    if not signature:
        return False
    for key in (settings.qstash_current_signing_key, settings.qstash_next_signing_key):
        if key and _verify_with_key(body, signature, key, settings.callback_url):
            return True
    return False
