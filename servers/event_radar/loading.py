"""Shared loading state for in-flight searches.

A LoadingTracker is created by whoever owns the search surface and passed
to the pipeline and to any consumer that renders progress. Listeners get a
snapshot of active loads on every change.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class LoadingEvent:
    """One active load."""

    id: str
    message: Optional[str] = None


Listener = Callable[[dict[str, LoadingEvent]], None]


class LoadingTracker:
    """Observable set of active loads with explicit subscription lifecycle."""

    def __init__(self):
        self._active: dict[str, LoadingEvent] = {}
        self._listeners: list[Listener] = []
        self._closed = False

    def start(self, load_id: str, message: Optional[str] = None) -> None:
        """Mark a load as active and notify listeners."""
        self._active[load_id] = LoadingEvent(id=load_id, message=message)
        self._notify()

    def stop(self, load_id: str) -> None:
        """Mark a load as finished and notify listeners."""
        if self._active.pop(load_id, None) is not None:
            self._notify()

    @contextmanager
    def track(self, load_id: str, message: Optional[str] = None) -> Iterator[None]:
        """Keep a load active for the duration of the block."""
        self.start(load_id, message)
        try:
            yield
        finally:
            self.stop(load_id)

    @property
    def is_loading(self) -> bool:
        return bool(self._active)

    def snapshot(self) -> dict[str, LoadingEvent]:
        """Copy of the active loads."""
        return dict(self._active)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        if self._closed:
            raise RuntimeError("LoadingTracker is closed")
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Drop all listeners and active loads. Further subscribes fail."""
        self._listeners.clear()
        self._active.clear()
        self._closed = True

    def _notify(self) -> None:
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning("loading_listener_failed", error=str(e))
