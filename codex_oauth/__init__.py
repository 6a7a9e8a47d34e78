"""
Codex OAuth login and silent token refresh
"""
from .constants import (
    CLIENT_ID,
    AUTHORIZE_URL,
    TOKEN_URL,
    SCOPE,
    DEFAULT_CALLBACK_PORT,
    OAUTH_CALLBACK_PATH,
)
from .errors import (
    OAuthError,
    NetworkError,
    ProviderRejected,
    MalformedResponse,
    CallbackError,
    StateMismatch,
    MissingParameters,
    LoginExpiredOrNotStarted,
    PortBindFailure,
    CallbackTimeout,
)
from .pkce import PkceCodes, generate_pkce, generate_state
from .authorization import build_authorization_url, redirect_uri_for_port
from .token_exchange import TokenResponse, exchange_code, refresh_access_token
from .jwt_utils import UserInfo, decode_jwt_payload, parse_user_info
from .callback_server import ListenerState, OAuthCallbackServer, start_callback_server
from .pending_login import PendingLogin, PendingLoginRegistry
from .notifications import ACCOUNTS_UPDATED, OAUTH_CALLBACK_RECEIVED, EventBus, NotificationSink
from .login import LoginFlow
from .expiry import is_expiring_soon, merge_refreshed_tokens, token_expiry
from .scheduler import RefreshScheduler

__all__ = [
    # Constants
    "CLIENT_ID",
    "AUTHORIZE_URL",
    "TOKEN_URL",
    "SCOPE",
    "DEFAULT_CALLBACK_PORT",
    "OAUTH_CALLBACK_PATH",
    # Errors
    "OAuthError",
    "NetworkError",
    "ProviderRejected",
    "MalformedResponse",
    "CallbackError",
    "StateMismatch",
    "MissingParameters",
    "LoginExpiredOrNotStarted",
    "PortBindFailure",
    "CallbackTimeout",
    # PKCE / Authorization
    "PkceCodes",
    "generate_pkce",
    "generate_state",
    "build_authorization_url",
    "redirect_uri_for_port",
    # Token Exchange
    "TokenResponse",
    "exchange_code",
    "refresh_access_token",
    # JWT Utilities
    "UserInfo",
    "decode_jwt_payload",
    "parse_user_info",
    # Callback Server
    "ListenerState",
    "OAuthCallbackServer",
    "start_callback_server",
    # Login
    "PendingLogin",
    "PendingLoginRegistry",
    "LoginFlow",
    # Notifications
    "ACCOUNTS_UPDATED",
    "OAUTH_CALLBACK_RECEIVED",
    "EventBus",
    "NotificationSink",
    # Refresh
    "is_expiring_soon",
    "merge_refreshed_tokens",
    "token_expiry",
    "RefreshScheduler",
]
