"""
Background silent refresh of every stored account's access token
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TYPE_CHECKING

from .errors import OAuthError
from .expiry import (
    DEFAULT_REFRESH_MARGIN,
    format_timestamp,
    is_expiring_soon,
    merge_refreshed_tokens,
    utc_now,
)
from .notifications import ACCOUNTS_UPDATED, NotificationSink, safe_emit
from .token_exchange import TokenResponse, refresh_access_token

if TYPE_CHECKING:
    from accounts.models import Account
    from accounts.store import AccountStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 30 * 60

RefreshFunc = Callable[[str], Awaitable[TokenResponse]]


class RefreshScheduler:
    """
    Periodically scans all accounts and silently refreshes tokens that are
    about to expire.

    The store lock is taken once for the snapshot at the start of a scan and
    once per account for the write after its refresh; both resync the store
    with the file first so changes made by other processes are kept.
    Network calls always happen with the lock released.
    """

    def __init__(
        self,
        store: "AccountStoreProtocol",
        notifier: Optional[NotificationSink] = None,
        interval: float = DEFAULT_REFRESH_INTERVAL,
        margin: float = DEFAULT_REFRESH_MARGIN,
        refresh: RefreshFunc = refresh_access_token,
    ):
        self.store = store
        self.notifier = notifier
        self.interval = interval
        self.margin = margin
        self._refresh = refresh
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Starts the background refresh task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
            logger.info(f"Background token refresher started. Check interval: {self.interval} seconds.")
        return self._task

    async def stop(self) -> None:
        """Stops the background refresh task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Background token refresher stopped.")

    async def run_forever(self) -> None:
        """Scan, sleep, repeat. Only ends when cancelled."""
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Token refresh scan failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    def _snapshot(self) -> List["Account"]:
        with self.store.lock:
            self.store.sync()
            return self.store.list()

    async def run_once(self) -> int:
        """
        Run a single scan.

        Returns:
            Number of accounts refreshed
        """
        logger.info("Checking token expiry for all accounts...")
        accounts = await asyncio.to_thread(self._snapshot)
        now = utc_now()

        due = [
            account
            for account in accounts
            if account.refresh_token and is_expiring_soon(account.auth_json, now, self.margin)
        ]

        if not due:
            logger.info("All tokens are healthy, nothing to refresh")
            return 0

        results = await asyncio.gather(*(self.refresh_account(account) for account in due))
        refreshed = sum(1 for ok in results if ok)

        if refreshed:
            logger.info(f"Refreshed tokens for {refreshed} account(s) this scan")
            safe_emit(self.notifier, ACCOUNTS_UPDATED, refreshed)
        return refreshed

    def _write_back(self, account: "Account", tokens: TokenResponse) -> bool:
        now = utc_now()
        with self.store.lock:
            self.store.sync()
            stored = self.store.get_mut(account.id)
            if stored is None:
                logger.warning(f"Account {account.name} was removed during refresh, dropping result")
                return False

            stored.auth_json = merge_refreshed_tokens(stored.auth_json, tokens, now)
            if tokens.refresh_token:
                stored.refresh_token = tokens.refresh_token
            stored.last_refresh = format_timestamp(now)
            self.store.save()
        return True

    async def refresh_account(self, account: "Account") -> bool:
        """
        Refresh one account and write the result back to the store.

        Errors are logged, never raised, so one account cannot stop the scan.

        Returns:
            True if the account was refreshed and saved
        """
        logger.info(f"Token for account {account.name} expires soon, refreshing...")

        try:
            tokens = await self._refresh(account.refresh_token)
        except OAuthError as e:
            logger.error(f"Token refresh failed for account {account.name}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error refreshing account {account.name}: {e}", exc_info=True)
            return False

        # File I/O and the cross-process lock stay off the event loop thread
        try:
            saved = await asyncio.to_thread(self._write_back, account, tokens)
        except Exception as e:
            logger.error(f"Refreshed account {account.name} but failed to save accounts: {e}", exc_info=True)
            return False

        if saved:
            logger.info(f"Token refreshed for account {account.name}")
        return saved
