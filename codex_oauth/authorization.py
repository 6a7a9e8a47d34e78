"""
Authorization URL construction for the Codex OAuth flow
"""
from typing import Iterable, List, Tuple, Union

from .constants import (
    AUTHORIZE_URL,
    OAUTH_CALLBACK_PATH,
    ORIGINATOR,
)


def redirect_uri_for_port(port: int) -> str:
    """Loopback redirect URI registered with the provider for this port"""
    return f"http://localhost:{port}{OAUTH_CALLBACK_PATH}"


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: Union[str, Iterable[str]],
    code_challenge: str,
    state: str,
    originator: str = ORIGINATOR,
    authorize_url: str = AUTHORIZE_URL,
) -> str:
    """
    Build the provider authorization URL.

    Parameters are joined verbatim rather than percent-encoded: the provider's
    own clients send the redirect URI and the space separated scope list raw,
    and the flow is only accepted when the request matches that form. PKCE
    challenge and state are base64url so they never need escaping.

    Args:
        client_id: OAuth client identifier
        redirect_uri: Loopback redirect URI
        scopes: Space separated scope string or iterable of scopes
        code_challenge: PKCE S256 challenge
        state: Anti-CSRF state token
        originator: Provider flow-variant originator flag
        authorize_url: Authorization endpoint

    Returns:
        str: Fully formed authorization URL
    """
    scope = scopes if isinstance(scopes, str) else " ".join(scopes)

    params: List[Tuple[str, str]] = [
        ("response_type", "code"),
        ("client_id", client_id),
        ("redirect_uri", redirect_uri),
        ("scope", scope),
        ("code_challenge", code_challenge),
        ("code_challenge_method", "S256"),
        # Codex flow variant flags (required for token exchange)
        ("id_token_add_organizations", "true"),
        ("codex_cli_simplified_flow", "true"),
        ("state", state),
        ("originator", originator),
    ]

    query = "&".join(f"{key}={value}" for key, value in params)
    return f"{authorize_url}?{query}"
