"""
Unverified JWT payload decoding for display fields.

Nothing here checks signatures. The claims are only used to label accounts
(email, ChatGPT account ID) and must never be used to authorize anything.
"""
import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .constants import AUTH_CLAIM_PATH, CHATGPT_ACCOUNT_ID_CLAIM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserInfo:
    """Display information taken from an id_token"""
    email: str
    account_id: Optional[str] = None


def decode_jwt_payload(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode JWT payload without verification.

    Args:
        token: JWT string (header.payload.signature)

    Returns:
        Decoded payload as dictionary, or None if invalid
    """
    if not token:
        return None

    parts = token.split(".")
    if len(parts) < 2:
        logger.debug(f"Invalid JWT format: expected at least 2 parts, got {len(parts)}")
        return None

    # JWT uses base64url without padding
    payload = parts[1] + "=" * (-len(parts[1]) % 4)

    try:
        decoded = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        logger.debug(f"Error decoding JWT payload: {e}")
        return None

    if not isinstance(decoded, dict):
        return None
    return decoded


def parse_user_info(id_token: str) -> Optional[UserInfo]:
    """
    Extract email and ChatGPT account ID from an id_token.

    Returns:
        UserInfo, or None when the token has no email claim
    """
    claims = decode_jwt_payload(id_token)
    if not claims:
        return None

    email = claims.get("email")
    if not isinstance(email, str) or not email:
        return None

    account_id = None
    auth_claims = claims.get(AUTH_CLAIM_PATH)
    if isinstance(auth_claims, dict):
        value = auth_claims.get(CHATGPT_ACCOUNT_ID_CLAIM)
        if isinstance(value, str) and value:
            account_id = value

    return UserInfo(email=email, account_id=account_id)
