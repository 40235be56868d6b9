import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Set

logger = logging.getLogger(__name__)


class InFlightOrders:
    """Set of order IDs that currently have a coordinator run"""

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: Set[str] = set()

    def try_add(self, order_id: str) -> bool:
        """Atomic insert-if-absent. False means someone already owns the order"""
        with self._lock:
            if order_id in self._orders:
                return False
            self._orders.add(order_id)
            return True

    def discard(self, order_id: str):
        with self._lock:
            self._orders.discard(order_id)

    def __contains__(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._orders

    @contextmanager
    def claim(self, order_id: str) -> Iterator[bool]:
        acquired = self.try_add(order_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.discard(order_id)
