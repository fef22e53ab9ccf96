import threading
from uuid import UUID


class EntityLocks:
    """Lazily created mutex per record id; different records never contend."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[UUID, threading.Lock] = {}

    def for_id(self, entity_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(entity_id)
            if lock is None:
                lock = self._locks[entity_id] = threading.Lock()
            return lock
