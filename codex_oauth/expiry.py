"""
Token expiry lookup and merging of refreshed tokens into stored records
"""
import copy
import datetime
import logging
import re
from typing import Any, Dict, Optional

from .constants import DEFAULT_EXPIRES_IN
from .token_exchange import TokenResponse

logger = logging.getLogger(__name__)

# Refresh when less than this many seconds remain
DEFAULT_REFRESH_MARGIN = 600

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTIONAL_SECONDS = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def format_timestamp(moment: datetime.datetime) -> str:
    """RFC 3339 UTC timestamp with a Z suffix"""
    return (
        moment.astimezone(datetime.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def _six_digit_fraction(match: "re.Match") -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """
    Parse an expiry value.

    Accepts integer/float epoch seconds or an RFC 3339 string. Naive
    timestamps are taken as UTC.

    Returns:
        Aware datetime, or None if the value cannot be interpreted
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.datetime.fromtimestamp(float(value), datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTIONAL_SECONDS.sub(_six_digit_fraction, text, count=1)
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.timezone.utc)
        return parsed.astimezone(datetime.timezone.utc)

    return None


def _token_container(auth_json: Dict[str, Any]) -> Dict[str, Any]:
    """Sub-object that carries the token set: tokens when present, else the top level"""
    tokens = auth_json.get("tokens")
    return tokens if isinstance(tokens, dict) else auth_json


def _expiry_holder(auth_json: Dict[str, Any]) -> Dict[str, Any]:
    """Sub-object the expiry is read from: a readable tokens.expires_at, else a top-level one"""
    tokens = auth_json.get("tokens")
    if isinstance(tokens, dict) and parse_timestamp(tokens.get("expires_at")) is not None:
        return tokens
    if "expires_at" in auth_json:
        return auth_json
    return _token_container(auth_json)


def token_expiry(auth_json: Any) -> Optional[datetime.datetime]:
    """
    Locate the access token expiry in a stored token record.

    Looks at tokens.expires_at first and falls back to a top-level
    expires_at.
    """
    if not isinstance(auth_json, dict):
        return None
    return parse_timestamp(_expiry_holder(auth_json).get("expires_at"))


def is_expiring_soon(
    auth_json: Any,
    now: Optional[datetime.datetime] = None,
    margin: float = DEFAULT_REFRESH_MARGIN,
) -> bool:
    """True if the record expires in less than margin seconds.

    Records without a readable expiry are never considered expiring.
    """
    expiry = token_expiry(auth_json)
    if expiry is None:
        return False
    now = now or utc_now()
    return (expiry - now).total_seconds() < margin


def merge_refreshed_tokens(
    auth_json: Dict[str, Any],
    tokens: TokenResponse,
    now: Optional[datetime.datetime] = None,
) -> Dict[str, Any]:
    """
    Merge a refresh result into a copy of the stored token record.

    Only the token fields, the expiry and last_refresh change; every other
    field and the nesting shape are kept. Token fields go into the tokens
    sub-object when there is one. The expiry is written back to the field it
    was read from, in the encoding it was stored in (epoch seconds stay
    numeric).

    Returns:
        Updated copy of auth_json
    """
    now = now or utc_now()
    merged = copy.deepcopy(auth_json) if isinstance(auth_json, dict) else {}
    holder = _expiry_holder(merged)
    target = _token_container(merged)

    expires_in = tokens.expires_in if tokens.expires_in is not None else DEFAULT_EXPIRES_IN
    expires_at = now + datetime.timedelta(seconds=expires_in)

    target["access_token"] = tokens.access_token
    if tokens.refresh_token:
        target["refresh_token"] = tokens.refresh_token
    if tokens.id_token:
        target["id_token"] = tokens.id_token
    target["expires_in"] = expires_in

    if isinstance(holder.get("expires_at"), str):
        holder["expires_at"] = format_timestamp(expires_at)
    else:
        holder["expires_at"] = int(expires_at.timestamp())

    merged["last_refresh"] = format_timestamp(now)
    return merged
