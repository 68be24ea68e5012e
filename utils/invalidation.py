"""Cache invalidation fan-out.

Write operations publish the query keys whose cached views became stale;
connected clients receive them over ``/ws/invalidations`` and refetch only
what changed. A low-frequency reconcile tick (see ``routers/events.py``)
remains as a safety net for writes made outside this process.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Iterable

logger = logging.getLogger(__name__)

ROOM_CONNECTIONS = "room-connections"
TURAR_MEDICAL = "turar-medical"
PROJECTOR_EQUIPMENT = "projector-equipment"
DEPARTMENT_MAPPINGS = "department-mappings"
MAPPED_DEPARTMENTS = "mapped-departments"
DEPARTMENTS = "departments"
EQUIPMENT = "equipment"
USERS = "users"

LINK_KEYS = (ROOM_CONNECTIONS, TURAR_MEDICAL, PROJECTOR_EQUIPMENT)

Listener = Callable[[tuple[str, ...]], None]


class Subscription:
    """Async iterator over batches of invalidated keys for one client."""

    def __init__(self, hub: "InvalidationHub") -> None:
        self._hub = hub
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[tuple[str, ...]] = asyncio.Queue()
        self._remove = hub.add_listener(self._push)
        self.closed = False

    def _push(self, keys: tuple[str, ...]) -> None:
        # publish() may run in a worker thread
        self._loop.call_soon_threadsafe(self._queue.put_nowait, keys)

    async def get(self) -> tuple[str, ...]:
        return await self._queue.get()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> tuple[str, ...]:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._remove()


class InvalidationHub:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def subscribe(self) -> Subscription:
        """Create a subscription bound to the running event loop."""
        return Subscription(self)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def publish(self, *keys: str | Iterable[str]) -> tuple[str, ...]:
        flat: list[str] = []
        for key in keys:
            items = [key] if isinstance(key, str) else list(key)
            for item in items:
                if item and item not in flat:
                    flat.append(item)
        batch = tuple(flat)
        if not batch:
            return batch

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(batch)
            except RuntimeError:
                # event loop of a disconnected client is already closed
                logger.debug("Dropping listener with closed loop")
                with self._lock:
                    if listener in self._listeners:
                        self._listeners.remove(listener)
        logger.debug("Invalidated %s for %d listener(s)", ", ".join(batch), len(listeners))
        return batch


hub = InvalidationHub()
