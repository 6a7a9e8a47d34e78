"""
Single-slot registry for the login currently in flight
"""
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .errors import LoginExpiredOrNotStarted
from .pkce import PkceCodes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingLogin:
    """PKCE codes, expected state and callback port of one login attempt"""
    pkce: PkceCodes
    state: str
    port: int


class PendingLoginRegistry:
    """Holds at most one pending login.

    Starting a login replaces whatever was pending; completing one takes the
    entry out so it can be consumed exactly once. Methods never block on I/O,
    so callers copy what they need and release before awaiting.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[PendingLogin] = None

    def start(self, pkce: PkceCodes, state: str, port: int) -> PendingLogin:
        pending = PendingLogin(pkce=pkce, state=state, port=port)
        with self._lock:
            if self._pending is not None:
                logger.debug("Discarding previous pending login")
            self._pending = pending
        return pending

    def take(self) -> PendingLogin:
        """Remove and return the pending login.

        Raises:
            LoginExpiredOrNotStarted: If nothing is pending
        """
        with self._lock:
            pending, self._pending = self._pending, None
        if pending is None:
            raise LoginExpiredOrNotStarted()
        return pending

    def peek_state(self) -> Optional[str]:
        with self._lock:
            return self._pending.state if self._pending else None

    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def clear(self) -> None:
        with self._lock:
            self._pending = None
