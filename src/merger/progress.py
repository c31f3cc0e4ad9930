# ========================
# src/merger/progress.py
# ========================

"""
Progress Tracking

A monotonic percentage owned by one merge operation. Several stages
(parser, accumulator, statistics) advance it; observers may read it from any
thread at any time.
"""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[float], None]


class ProgressTracker:
    """
    Thread-safe, never-decreasing progress value in [0, 100].
    """

    def __init__(self, observers: List[ProgressObserver] = None):
        self._lock = threading.Lock()
        self._value = 0.0
        self._observers = list(observers or [])

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def subscribe(self, observer: ProgressObserver) -> None:
        with self._lock:
            self._observers.append(observer)

    def advance_to(self, target: float) -> float:
        """
        Move progress forward to ``target``. Lower targets are ignored.

        Args:
            target (float): Desired percentage

        Returns:
            float: Progress value after the update
        """
        with self._lock:
            changed = self._set(target)
            value = self._value
            observers = list(self._observers)

        if changed:
            for observer in observers:
                observer(value)
        return value

    def increment(self, delta: float, ceiling: float = 100.0) -> float:
        """Advance by ``delta`` without passing ``ceiling``."""
        with self._lock:
            changed = self._set(min(self._value + delta, ceiling))
            value = self._value
            observers = list(self._observers)

        if changed:
            for observer in observers:
                observer(value)
        return value

    def complete(self) -> float:
        logger.debug("Progress complete")
        return self.advance_to(100.0)

    def _set(self, target: float) -> bool:
        target = min(max(target, 0.0), 100.0)
        if target <= self._value:
            return False
        self._value = target
        return True
