"""
Fire-and-forget notifications consumed by UI layers
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

ACCOUNTS_UPDATED = "accounts-updated"
OAUTH_CALLBACK_RECEIVED = "oauth-callback-received"

Listener = Callable[[Any], None]


class NotificationSink(Protocol):
    def emit(self, event: str, payload: Any = None) -> None:
        ...


class NullSink:
    """Sink that drops every notification"""

    def emit(self, event: str, payload: Any = None) -> None:
        logger.debug(f"Dropping notification {event}")


class EventBus:
    """In-process sink dispatching events to subscribed callables.

    Subscriber failures are logged and never reach the emitter.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, event: str, listener: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, []))

        for listener in listeners:
            try:
                listener(payload)
            except Exception as e:
                logger.warning(f"Notification listener for {event} failed: {e}")


def safe_emit(sink: Optional[NotificationSink], event: str, payload: Any = None) -> None:
    """Emit without letting sink failures affect the caller"""
    if sink is None:
        return
    try:
        sink.emit(event, payload)
    except Exception as e:
        logger.warning(f"Failed to deliver {event} notification: {e}")
