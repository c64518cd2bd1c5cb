"""Most-recent-value pose streams.

A ``PoseStream`` holds at most one sample.  ``send()`` overwrites it and
calls every subscriber synchronously on the sender's thread; there is no
queue and no backpressure.  Subscribing replays the current sample, if any.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from pointforge.core.transform import Transform

logger = logging.getLogger(__name__)

PoseCallback = Callable[[Transform], None]


class Subscription:
    """Handle returned by ``PoseStream.subscribe``; ``cancel()`` is idempotent."""

    def __init__(self, stream: Optional[PoseStream] = None, callback: Optional[PoseCallback] = None):
        self._stream = stream
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._stream is not None

    def cancel(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None and self._callback is not None:
            stream._remove(self._callback)
        self._callback = None

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()


class PoseStream:
    """Latest-value channel of ``Transform`` samples.

    Delivery is serialized per stream and every callback receives the
    sample that is current when it is called, so a send made during
    delivery (reentrant or from another thread) is never overtaken by an
    older one.
    """

    def __init__(self, initial: Optional[Transform] = None, name: str = ""):
        self.name = name
        self._lock = threading.RLock()
        self._value = initial
        self._callbacks: list[PoseCallback] = []

    @property
    def value(self) -> Optional[Transform]:
        return self._value

    def send(self, pose: Transform) -> None:
        """Store ``pose`` as the latest sample and notify subscribers."""
        if not isinstance(pose, Transform):
            raise TypeError(f"PoseStream {self.name!r} expects Transform, got {type(pose).__name__}")
        with self._lock:
            self._value = pose
            for callback in list(self._callbacks):
                callback(self._value)

    def subscribe(self, callback: PoseCallback) -> Subscription:
        with self._lock:
            self._callbacks.append(callback)
            logger.debug("Subscribed to pose stream %r", self.name)
            if self._value is not None:
                callback(self._value)
        return Subscription(self, callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def _remove(self, callback: PoseCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)
