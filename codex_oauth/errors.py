"""
Error taxonomy for the login and refresh flows
"""
from typing import Optional


class OAuthError(Exception):
    """Base class for all login/refresh failures"""


class NetworkError(OAuthError):
    """Transport-level failure reaching the provider (retryable)"""


class ProviderRejected(OAuthError):
    """Provider answered with a non-success status"""

    def __init__(self, body: str, status_code: Optional[int] = None):
        self.body = body
        self.status_code = status_code
        if status_code is not None:
            message = f"Provider rejected the request ({status_code}): {body}"
        else:
            message = f"Provider rejected the request: {body}"
        super().__init__(message)


class MalformedResponse(OAuthError):
    """Provider response could not be parsed into a token set"""


class CallbackError(OAuthError):
    """The loopback callback failed validation; the login must be restarted"""


class StateMismatch(CallbackError):
    """Callback state does not match the state of the pending login"""


class MissingParameters(CallbackError):
    """Callback is missing the code or state parameter"""


class LoginExpiredOrNotStarted(OAuthError):
    """Completion attempted with no pending login"""

    def __init__(self, message: str = "Login flow expired or was never started"):
        super().__init__(message)


class PortBindFailure(OAuthError):
    """Loopback callback port could not be bound"""


class CallbackTimeout(OAuthError):
    """No callback arrived within the allowed time"""
