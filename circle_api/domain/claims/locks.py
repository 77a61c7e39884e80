"""Per-resource serialization of claim check-then-write sequences"""

import threading
from contextlib import contextmanager


class ResourceLockRegistry:
    """Hands out one lock per resource id.

    The registry lock only guards lock creation; holding one resource's lock
    never blocks work on another resource.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, resource_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(resource_id)
            if lock is None:
                lock = self._locks[resource_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, resource_id: str):
        lock = self.lock_for(resource_id)
        with lock:
            yield


resource_locks = ResourceLockRegistry()


def get_resource_locks() -> ResourceLockRegistry:
    """Dependency injection for the process-wide lock registry"""
    return resource_locks
