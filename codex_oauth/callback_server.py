"""
Single-use loopback HTTP listener for the OAuth redirect
"""
import asyncio
import enum
import logging
from typing import Optional

from aiohttp import web

from .constants import DEFAULT_CALLBACK_PORT, OAUTH_CALLBACK_PATH
from .errors import (
    CallbackError,
    CallbackTimeout,
    MissingParameters,
    OAuthError,
    PortBindFailure,
    ProviderRejected,
    StateMismatch,
)

logger = logging.getLogger(__name__)

SUCCESS_PAGE = """<html>
    <head><meta charset="utf-8"><title>Login successful</title></head>
    <body>
        <h1>Authentication Successful!</h1>
        <p>Your account is connected. You can close this window and return to the app.</p>
        <script>
            setTimeout(function() {
                window.close();
            }, 3000);
        </script>
    </body>
</html>
"""

FAILURE_PAGE = """<html>
    <head><meta charset="utf-8"><title>Login failed</title></head>
    <body>
        <h1>Authentication Failed</h1>
        <p>{reason}</p>
        <p>Start the login again from the app. You can close this window.</p>
    </body>
</html>
"""


class ListenerState(enum.Enum):
    LISTENING = "listening"
    AWAITING_REQUEST = "awaiting_request"
    VALIDATED = "validated"
    REJECTED = "rejected"
    CLOSED = "closed"


class OAuthCallbackServer:
    """Local HTTP server that accepts exactly one OAuth callback.

    The first request to the callback path is validated against the expected
    state. A valid one answers 200 and surfaces the authorization code; an
    invalid one answers 400 and fails the attempt. Later requests get 410.
    """

    def __init__(
        self,
        expected_state: str,
        port: int = DEFAULT_CALLBACK_PORT,
        host: str = "127.0.0.1",
    ):
        self.expected_state = expected_state
        self.port = port
        self.host = host
        self.state = ListenerState.LISTENING
        self.code: Optional[str] = None
        self.error: Optional[OAuthError] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._event = asyncio.Event()

        self.app.router.add_get(OAUTH_CALLBACK_PATH, self._handle_callback)

    async def _respond(self, request: web.Request, response: web.Response) -> web.Response:
        # Flush before waking the waiter so stop() never cuts the page off
        response.force_close()
        await response.prepare(request)
        await response.write_eof()
        self._event.set()
        return response

    def _reject(self, error: CallbackError) -> web.Response:
        self.state = ListenerState.REJECTED
        self.error = error
        return web.Response(
            text=FAILURE_PAGE.format(reason=error),
            content_type="text/html",
            status=400,
        )

    def _validate(self, request: web.Request) -> web.Response:
        code = request.query.get("code")
        state = request.query.get("state")
        error = request.query.get("error")

        if error:
            description = request.query.get("error_description", "")
            logger.error(f"OAuth error in callback: {error} {description}".rstrip())
            self.state = ListenerState.REJECTED
            self.error = ProviderRejected(f"{error}: {description}" if description else error)
            return web.Response(
                text=FAILURE_PAGE.format(reason=f"Provider returned an error: {error}"),
                content_type="text/html",
                status=400,
            )

        if not state:
            return self._reject(MissingParameters("Callback is missing the state parameter"))

        if state != self.expected_state:
            logger.warning("State mismatch in OAuth callback")
            return self._reject(StateMismatch("State parameter does not match the pending login"))

        if not code:
            return self._reject(MissingParameters("Callback is missing the code parameter"))

        self.state = ListenerState.VALIDATED
        self.code = code
        logger.info("OAuth callback validated")
        return web.Response(text=SUCCESS_PAGE, content_type="text/html")

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle OAuth callback request"""
        if self.state is not ListenerState.AWAITING_REQUEST:
            return web.Response(text="Callback already handled", status=410)

        return await self._respond(request, self._validate(request))

    async def start(self) -> None:
        """
        Bind the listener.

        Raises:
            PortBindFailure: If the port cannot be bound
        """
        self.runner = web.AppRunner(self.app, access_log=None)
        await self.runner.setup()

        site = web.TCPSite(self.runner, host=self.host, port=self.port)
        try:
            await site.start()
        except OSError as e:
            await self.runner.cleanup()
            self.runner = None
            self.state = ListenerState.CLOSED
            raise PortBindFailure(f"Cannot bind local port {self.port}: {e}") from e

        self.state = ListenerState.AWAITING_REQUEST
        logger.info(f"OAuth callback server listening on port {self.port}")

    async def wait_for_callback(self, timeout: Optional[float] = 300) -> str:
        """
        Wait for the OAuth callback.

        Args:
            timeout: Maximum time to wait in seconds, None to wait forever

        Returns:
            The authorization code

        Raises:
            CallbackTimeout: If nothing arrived in time
            StateMismatch, MissingParameters, ProviderRejected: On a rejected callback
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"OAuth callback timeout after {timeout} seconds")
            raise CallbackTimeout(f"No OAuth callback received within {timeout} seconds")

        if self.error is not None:
            raise self.error
        return self.code

    async def stop(self) -> None:
        """Stop the callback server"""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        self.state = ListenerState.CLOSED


async def start_callback_server(
    expected_state: str,
    port: int = DEFAULT_CALLBACK_PORT,
    host: str = "127.0.0.1",
) -> OAuthCallbackServer:
    """
    Start OAuth callback server.

    Args:
        expected_state: Expected state parameter for CSRF protection
        port: Port to bind
        host: Interface to bind

    Returns:
        OAuthCallbackServer instance
    """
    server = OAuthCallbackServer(expected_state, port=port, host=host)
    await server.start()
    return server
