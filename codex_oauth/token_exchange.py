"""
Codex OAuth token exchange and refresh
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

import settings
from .constants import CLIENT_ID, SCOPE, TOKEN_URL
from .errors import MalformedResponse, NetworkError, ProviderRejected

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenResponse:
    """OAuth token response"""
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_in: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenResponse":
        """
        Build from a decoded token endpoint body.

        Raises:
            MalformedResponse: If required fields are missing or mistyped
        """
        if not isinstance(payload, dict):
            raise MalformedResponse("Token response is not a JSON object")

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MalformedResponse("Token response missing 'access_token'")

        for field in ("refresh_token", "id_token"):
            value = payload.get(field)
            if value is not None and not isinstance(value, str):
                raise MalformedResponse(f"Token response field '{field}' is not a string")

        expires_in = payload.get("expires_in")
        if expires_in is not None:
            if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
                raise MalformedResponse("Token response field 'expires_in' is not a number")
            expires_in = int(expires_in)

        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            id_token=payload.get("id_token") or None,
            expires_in=expires_in,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping absent fields"""
        data: Dict[str, Any] = {"access_token": self.access_token}
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        if self.id_token:
            data["id_token"] = self.id_token
        if self.expires_in is not None:
            data["expires_in"] = self.expires_in
        return data


def _default_timeout() -> httpx.Timeout:
    return httpx.Timeout(settings.REQUEST_TIMEOUT, connect=settings.CONNECT_TIMEOUT)


async def _post_token_request(
    data: Dict[str, str],
    action: str,
    client: Optional[httpx.AsyncClient] = None,
) -> TokenResponse:
    """POST a form-encoded grant to the token endpoint and parse the result"""
    body = urlencode(data)
    headers = {
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "application/json",
    }

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=_default_timeout()) as own_client:
                response = await own_client.post(TOKEN_URL, content=body, headers=headers)
        else:
            response = await client.post(TOKEN_URL, content=body, headers=headers)
    except httpx.TimeoutException as e:
        logger.error(f"{action} timed out: {e}")
        raise NetworkError(f"{action} timed out: {e}") from e
    except httpx.HTTPError as e:
        logger.error(f"{action} request failed: {e}")
        raise NetworkError(f"{action} request failed: {e}") from e

    logger.debug(f"{action} response status: {response.status_code}")

    if not response.is_success:
        logger.error(f"{action} failed with status {response.status_code}: {response.text}")
        raise ProviderRejected(response.text, status_code=response.status_code)

    try:
        payload = response.json()
    except ValueError as e:
        logger.error(f"Failed to parse {action.lower()} response: {e}")
        raise MalformedResponse(f"Failed to parse {action.lower()} response: {e}") from e

    return TokenResponse.from_payload(payload)


async def exchange_code(
    code: str,
    redirect_uri: str,
    code_verifier: str,
    client: Optional[httpx.AsyncClient] = None,
) -> TokenResponse:
    """
    Exchange authorization code for tokens.

    Args:
        code: Authorization code from callback
        redirect_uri: Redirect URI used in the authorization request
        code_verifier: PKCE code verifier of the pending login
        client: Optional HTTP client (a short-lived one is created otherwise)

    Returns:
        TokenResponse

    Raises:
        NetworkError: Transport failure
        ProviderRejected: Non-success HTTP status
        MalformedResponse: Unparsable body
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": CLIENT_ID,
        "code_verifier": code_verifier,
    }

    logger.info(f"Exchanging authorization code for tokens at {TOKEN_URL}")
    tokens = await _post_token_request(data, "Token exchange", client)
    logger.info("Successfully exchanged authorization code for tokens")
    return tokens


async def refresh_access_token(
    refresh_token: str,
    client: Optional[httpx.AsyncClient] = None,
) -> TokenResponse:
    """
    Refresh access token using refresh token.

    Args:
        refresh_token: OAuth refresh token
        client: Optional HTTP client

    Returns:
        TokenResponse (refresh_token may be absent if the provider kept it)

    Raises:
        NetworkError, ProviderRejected, MalformedResponse
    """
    data = {
        "grant_type": "refresh_token",
        "client_id": CLIENT_ID,
        "refresh_token": refresh_token,
        "scope": SCOPE,
    }

    return await _post_token_request(data, "Token refresh", client)
