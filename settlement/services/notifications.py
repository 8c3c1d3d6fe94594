"""
Terminal-transition notifications.

Collaborators subscribe a handler; the engine calls every handler after the
transition has been committed. Delivery is best effort: a failing handler is
logged and never affects the transaction or the other handlers.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalTransition:
    request_id: int
    request_type: str
    requester_id: int
    before_status: str
    after_status: str
    actor_id: Optional[int]
    occurred_at: datetime


Handler = Callable[[TerminalTransition], None]

_handlers: List[Handler] = []
_lock = threading.Lock()


def subscribe(handler: Handler) -> None:
    with _lock:
        if handler not in _handlers:
            _handlers.append(handler)


def unsubscribe(handler: Handler) -> None:
    with _lock:
        if handler in _handlers:
            _handlers.remove(handler)


def clear_subscribers() -> None:
    with _lock:
        _handlers.clear()


def emit(event: TerminalTransition) -> None:
    with _lock:
        handlers = list(_handlers)
    for handler in handlers:
        try:
            handler(event)
        except Exception:
            logger.exception(
                "Notification handler %r failed for request_id=%s (%s -> %s)",
                handler, event.request_id, event.before_status, event.after_status,
            )
