"""
Login API: start a browser login, then complete it with the captured code
"""
import asyncio
import logging
import webbrowser
from typing import Callable, Optional

import httpx

from .authorization import build_authorization_url, redirect_uri_for_port
from .callback_server import OAuthCallbackServer
from .constants import CLIENT_ID, DEFAULT_CALLBACK_PORT, SCOPE
from .errors import CallbackError, CallbackTimeout, LoginExpiredOrNotStarted
from .notifications import OAUTH_CALLBACK_RECEIVED, NotificationSink, safe_emit
from .pending_login import PendingLoginRegistry
from .pkce import generate_pkce, generate_state
from .port_guard import evict_port_owner
from .token_exchange import TokenResponse, exchange_code

logger = logging.getLogger(__name__)


class LoginFlow:
    """
    Drives the authorization-code-with-PKCE login.

    ``start_login`` evicts whatever holds the callback port (unless
    ``evict_port`` is False), binds the loopback listener, records the
    pending login and returns the authorization URL. When the callback
    arrives the code is emitted as ``oauth-callback-received`` and made
    available through ``wait_for_code``. ``complete_login`` consumes the
    pending login and exchanges the code.

    Only one login is in flight at a time; starting another closes the
    previous listener and replaces its pending entry.
    """

    def __init__(
        self,
        registry: Optional[PendingLoginRegistry] = None,
        notifier: Optional[NotificationSink] = None,
        port: int = DEFAULT_CALLBACK_PORT,
        host: str = "127.0.0.1",
        callback_timeout: Optional[float] = 300,
        evict_port: bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.registry = registry or PendingLoginRegistry()
        self.notifier = notifier
        self.port = port
        self.host = host
        self.callback_timeout = callback_timeout
        self.evict_port = evict_port
        self.http_client = http_client
        self._server: Optional[OAuthCallbackServer] = None
        self._watcher: Optional[asyncio.Task] = None
        self._code: Optional[asyncio.Future] = None

    async def start_login(self) -> str:
        """
        Begin a login.

        Returns:
            Authorization URL to open in the browser

        Raises:
            PortBindFailure: If the callback port cannot be bound
        """
        await self._close_listener()
        # A failed bind below must not leave the previous verifier completable
        self.registry.clear()

        if self.evict_port:
            await evict_port_owner(self.port)

        pkce = generate_pkce()
        state = generate_state()

        server = OAuthCallbackServer(state, port=self.port, host=self.host)
        await server.start()

        url = build_authorization_url(
            CLIENT_ID,
            redirect_uri_for_port(self.port),
            SCOPE,
            pkce.challenge,
            state,
        )

        self.registry.start(pkce, state, self.port)
        self._server = server
        self._code = asyncio.get_running_loop().create_future()
        self._watcher = asyncio.create_task(self._watch_callback(server, state, self._code))

        logger.info("Login started, waiting for browser authorization")
        return url

    async def _watch_callback(
        self,
        server: OAuthCallbackServer,
        state: str,
        result: asyncio.Future,
    ) -> None:
        try:
            code = await server.wait_for_callback(timeout=self.callback_timeout)
        except (CallbackError, CallbackTimeout) as e:
            # The attempt is dead; drop its pending entry unless a newer login replaced it
            if self.registry.peek_state() == state:
                self.registry.clear()
            if not result.done():
                result.set_exception(e)
        except Exception as e:
            if not result.done():
                result.set_exception(e)
        else:
            if not result.done():
                result.set_result(code)
            safe_emit(self.notifier, OAUTH_CALLBACK_RECEIVED, code)
        finally:
            await server.stop()

    async def _close_listener(self) -> None:
        if self._code is not None and not self._code.done():
            self._code.set_exception(LoginExpiredOrNotStarted("Login replaced by a newer login"))
            # Nobody may be waiting on it; avoid "exception never retrieved" noise
            self._code.exception()
        if self._watcher is not None:
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass
            self._watcher = None
        if self._server is not None:
            await self._server.stop()
            self._server = None

    async def wait_for_code(self, timeout: Optional[float] = None) -> str:
        """
        Wait for the current login's callback.

        Args:
            timeout: Seconds to wait, None to rely on the listener's own timeout.
                Running out leaves the login pending.

        Raises:
            LoginExpiredOrNotStarted: If no login was started
            CallbackTimeout, StateMismatch, MissingParameters, ProviderRejected
        """
        if self._code is None:
            raise LoginExpiredOrNotStarted()
        try:
            return await asyncio.wait_for(asyncio.shield(self._code), timeout)
        except asyncio.TimeoutError:
            raise CallbackTimeout(f"No OAuth callback received within {timeout} seconds") from None

    async def complete_login(self, code: str) -> TokenResponse:
        """
        Exchange the captured code using the pending login's verifier.

        Raises:
            LoginExpiredOrNotStarted: If nothing is pending (or it was already completed)
            NetworkError, ProviderRejected, MalformedResponse
        """
        pending = self.registry.take()
        code_verifier = pending.pkce.verifier
        redirect_uri = redirect_uri_for_port(pending.port)

        return await exchange_code(code, redirect_uri, code_verifier, client=self.http_client)

    async def login(
        self,
        open_browser: bool = True,
        on_url: Optional[Callable[[str], None]] = None,
    ) -> TokenResponse:
        """Run a complete login: start, open the browser, wait, exchange"""
        url = await self.start_login()
        if on_url is not None:
            on_url(url)
        if open_browser and not webbrowser.open(url):
            logger.warning("Could not open browser automatically")

        try:
            code = await self.wait_for_code()
        finally:
            await self._close_listener()
        return await self.complete_login(code)

    async def close(self) -> None:
        """Cancel any in-flight login and release the port"""
        await self._close_listener()
        self.registry.clear()
