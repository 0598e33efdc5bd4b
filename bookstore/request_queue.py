"""A bounded, thread-safe FIFO of client requests waiting for a worker."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from bookstore.http_request import HttpRequest


class QueueShutdown(RuntimeError):
    """Raised when the queue has been shut down and cannot serve the call."""


class QueueEmpty(LookupError):
    """Raised when an item is asked for and the queue holds none."""


@dataclass
class ClientRequest:
    """A parsed request together with the client connection it came from."""

    client: Any = None
    request: HttpRequest = field(default_factory=HttpRequest)


@dataclass(frozen=True)
class QueueStatistics:
    """A consistent snapshot of the queue's counters."""

    size: int
    produced: int
    consumed: int


def _describe_item(item: Any) -> str:
    target = getattr(item, "request", item)
    describe = getattr(target, "describe", None)
    return describe() if callable(describe) else f"{item!r}\n"


class RequestQueue:
    """Bounded FIFO queue; producers block while it is full, consumers while it is empty."""

    def __init__(self, max_size: int = 20) -> None:
        if max_size < 1:
            raise ValueError("queue size must be at least 1")
        self.max_size = max_size
        self._items: deque[Any] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._produced = 0
        self._consumed = 0
        self._shutdown = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown

    def put(self, item: Any, timeout: float | None = None) -> None:
        """Append ``item``, waiting for room.

        Raises QueueShutdown if the queue is (or becomes) shut down and
        TimeoutError if no room appears within ``timeout`` seconds.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._not_full:
            while len(self._items) >= self.max_size and not self._shutdown:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise TimeoutError("no room in the queue")
                self._not_full.wait(remaining)
            if self._shutdown:
                raise QueueShutdown("queue is shut down")
            self._items.append(item)
            self._produced += 1
            self._not_empty.notify()

    def get(self, timeout: float | None = None) -> Any:
        """Remove and return the oldest item, waiting for one.

        Items still queued are handed out after shutdown; once the queue is
        both shut down and empty, QueueShutdown is raised. QueueEmpty is
        raised if nothing arrives within ``timeout`` seconds.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._not_empty:
            while not self._items and not self._shutdown:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise QueueEmpty("no item arrived in time")
                self._not_empty.wait(remaining)
            if not self._items:
                raise QueueShutdown("queue is shut down and empty")
            item = self._items.popleft()
            self._consumed += 1
            self._not_full.notify()
            return item

    def peek(self) -> Any:
        """The oldest item, left in place; QueueEmpty if there is none."""
        with self._lock:
            if not self._items:
                raise QueueEmpty("queue is empty, nothing to peek")
            return self._items[0]

    def peek_rear(self) -> Any:
        """The newest item, left in place; QueueEmpty if there is none."""
        with self._lock:
            if not self._items:
                raise QueueEmpty("queue is empty, nothing to peek at the rear")
            return self._items[-1]

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def is_full(self) -> bool:
        with self._lock:
            return len(self._items) >= self.max_size

    def clear(self) -> list[Any]:
        """Remove every queued item, counting each as consumed; return them in order."""
        with self._lock:
            removed = list(self._items)
            self._items.clear()
            self._consumed += len(removed)
            self._not_full.notify_all()
            return removed

    def shutdown(self) -> None:
        """Refuse further items and wake every waiting producer and consumer."""
        with self._lock:
            self._shutdown = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def statistics(self) -> QueueStatistics:
        with self._lock:
            return QueueStatistics(len(self._items), self._produced, self._consumed)

    def describe(self) -> str:
        """Human-readable dump of every queued item."""
        with self._lock:
            items = list(self._items)
        if not items:
            return "Coda vuota\n"
        parts = ["Coda: "]
        parts.extend(_describe_item(item) for item in items)
        parts.append(f"(dimensione: {len(items)})\n")
        return "".join(parts)

    def __enter__(self) -> "RequestQueue":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()