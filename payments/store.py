import threading
from contextlib import contextmanager
from typing import Dict, Generic, List, Optional, TypeVar

from .models import Order

T = TypeVar("T")


class InMemoryStore(Generic[T]):
    """Process-local key/value store.

    ``locked(key)`` serialises read-modify-write sequences on one record;
    plain reads and inserts only take the short store-wide lock.
    """

    def __init__(self):
        self._records: Dict[str, T] = {}
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}

    def put(self, key: str, record: T) -> None:
        with self._lock:
            self._records[key] = record

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            return self._records.get(key)

    def values(self) -> List[T]:
        with self._lock:
            return list(self._records.values())

    def __len__(self):
        with self._lock:
            return len(self._records)

    @contextmanager
    def locked(self, key: str):
        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())
        with key_lock:
            yield


class OrderStore(InMemoryStore[Order]):
    """Orders by order id, with a secondary index on the gateway request id."""

    def __init__(self):
        super().__init__()
        self._by_request_id: Dict[str, str] = {}

    def put(self, key: str, record: Order) -> None:
        with self._lock:
            self._records[key] = record
            if record.gateway_request_id:
                self._by_request_id[record.gateway_request_id] = key

    def find_by_gateway_request_id(self, request_id: str) -> Optional[Order]:
        with self._lock:
            key = self._by_request_id.get(request_id)
            return self._records.get(key) if key else None
