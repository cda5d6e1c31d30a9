"""Change notification for task collections."""

import logging
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

# callback(action, task_or_none, current_tasks)
Observer = Callable[[str, Optional[object], list], None]


class ObserverRegistry:
    """Identity-keyed table of listeners.

    Delivery is best effort: an exception raised by one listener is logged
    and does not stop the others or reach the code that triggered the change.
    """

    def __init__(self) -> None:
        self._observers: list[Observer] = []

    def subscribe(self, callback: Observer) -> None:
        """Register a listener. Registering the same object twice is a no-op."""
        if not callable(callback):
            raise TypeError("observer must be callable")
        if any(existing is callback for existing in self._observers):
            return
        self._observers.append(callback)

    def unsubscribe(self, callback: Observer) -> None:
        """Remove a listener by identity. Unknown listeners are ignored."""
        self._observers = [obs for obs in self._observers if obs is not callback]

    def notify(self, action: str, task: Optional[object], tasks: Sequence[object]) -> None:
        """Invoke every listener with (action, task, snapshot of tasks)."""
        # Copy so listeners may unsubscribe while being notified
        for callback in list(self._observers):
            try:
                callback(action, task, list(tasks))
            except Exception:
                logger.exception("Error in observer callback for action=%s", action)

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, callback: object) -> bool:
        return any(existing is callback for existing in self._observers)
