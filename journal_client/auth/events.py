"""
Session events emitted by the HTTP pipeline.

The transport layer never navigates or shows dialogs itself; it emits typed
events and the hosting application decides what to do with them.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Type, Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionExpired:
    """Renewal failed and the user should be sent to the login page."""
    reason: str
    request_path: str
    login_path: str


@dataclass(frozen=True)
class ServiceUnavailable:
    """The backend reported an infrastructure outage."""
    message: str
    request_path: str
    is_login: bool


class EventHub:
    """Per-client registry of event callbacks."""

    def __init__(self):
        self._subscribers: Dict[Type, List[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: Type, callback: Callable[[Any], None]) -> None:
        """
        Register a callback for an event type.

        Args:
            event_type: Event class, e.g. ``SessionExpired``
            callback: Function called with the event instance
        """
        self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: Type, callback: Callable[[Any], None]) -> None:
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: Any) -> None:
        """Notify subscribers; a failing callback does not stop the others."""
        for callback in list(self._subscribers.get(type(event), [])):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in {type(event).__name__} callback: {e}")
