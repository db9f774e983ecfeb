"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Margay, a product of Garudex Labs

Leaf-inserted notifications for external observers.

Every successful insertion produces one LeafInserted record. Observers are
plain callables; they run synchronously after the tree has committed its new
state, and an observer that raises is logged and skipped so it can never
affect the tree or the observers registered after it.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List

from margay.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LeafInserted:
    """
    Notification emitted for each inserted leaf.

    Attributes:
        leaf: The inserted leaf digest
        leaf_index: Index assigned to the leaf
        timestamp: UTC time of the insertion
    """
    leaf: bytes
    leaf_index: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "leaf": self.leaf.hex(),
            "leaf_index": self.leaf_index,
            "timestamp": self.timestamp.isoformat(),
        }


LeafObserver = Callable[[LeafInserted], None]


class LeafEventDispatcher:
    """Ordered registry of leaf observers."""

    def __init__(self):
        self._observers: List[LeafObserver] = []
        self._lock = threading.Lock()

    def subscribe(self, observer: LeafObserver) -> None:
        """
        Register an observer. Registering the same observer twice is a no-op.

        Raises:
            TypeError: If observer is not callable
        """
        if not callable(observer):
            raise TypeError(f"Observer must be callable, got {type(observer).__name__}")
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def unsubscribe(self, observer: LeafObserver) -> None:
        """Remove an observer if registered."""
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def dispatch(self, event: LeafInserted) -> None:
        """
        Deliver ``event`` to every observer in registration order.

        Delivery is best-effort: observer exceptions are logged, not raised.
        """
        with self._lock:
            observers = list(self._observers)

        for observer in observers:
            try:
                observer(event)
            except Exception as e:
                logger.error(
                    f"Leaf observer {observer!r} failed for leaf index {event.leaf_index}: {e}",
                    exc_info=True,
                )

    def dispatch_all(self, events: Iterable[LeafInserted]) -> None:
        """Deliver several events in order."""
        for event in events:
            self.dispatch(event)
