"""
Per-invoice mutual exclusion.

Operations on different invoices run in parallel; operations on the same
invoice are serialized. The version check in the store remains the last
line of defense, so a lock that times out degrades to a ConcurrencyConflict
rather than a lost update.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol
from uuid import UUID

from redis.exceptions import LockError

from clients.valkey_client import ValkeyClient
from core.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)


class InvoiceLocks(Protocol):
    def hold(self, invoice_id: UUID) -> Iterator[None]:
        """Context manager holding the lock for one invoice."""
        ...


class LocalInvoiceLocks:
    """
    Thread locks keyed by invoice ID. Serializes within one process.

    An entry lives only while some thread holds or waits for it, so the
    registry stays as small as the number of invoices in flight.
    """

    def __init__(self, acquire_timeout_seconds: float = 10.0):
        self._acquire_timeout = acquire_timeout_seconds
        self._locks: dict[UUID, threading.Lock] = {}
        self._users: dict[UUID, int] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, invoice_id: UUID) -> threading.Lock:
        with self._registry_lock:
            if invoice_id not in self._locks:
                self._locks[invoice_id] = threading.Lock()
            self._users[invoice_id] = self._users.get(invoice_id, 0) + 1
            return self._locks[invoice_id]

    def _checkin(self, invoice_id: UUID) -> None:
        with self._registry_lock:
            self._users[invoice_id] -= 1
            if self._users[invoice_id] == 0:
                del self._users[invoice_id]
                del self._locks[invoice_id]

    @contextmanager
    def hold(self, invoice_id: UUID) -> Iterator[None]:
        lock = self._checkout(invoice_id)
        try:
            if not lock.acquire(timeout=self._acquire_timeout):
                raise ConcurrencyConflict(invoice_id)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(invoice_id)


class ValkeyInvoiceLocks:
    """Valkey-backed locks. Serializes across processes and hosts."""

    KEY_PREFIX = "invoice-lock:"

    def __init__(
        self,
        valkey: ValkeyClient,
        timeout_seconds: float = 30.0,
        blocking_timeout_seconds: float = 10.0,
    ):
        self.valkey = valkey
        self.timeout_seconds = timeout_seconds
        self.blocking_timeout_seconds = blocking_timeout_seconds

    @contextmanager
    def hold(self, invoice_id: UUID) -> Iterator[None]:
        lock = self.valkey.lock(
            f"{self.KEY_PREFIX}{invoice_id}",
            timeout_seconds=self.timeout_seconds,
            blocking_timeout_seconds=self.blocking_timeout_seconds,
        )
        if not lock.acquire():
            raise ConcurrencyConflict(invoice_id)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # Expired while held; the store's version check catches any overlap
                logger.warning("Lock for invoice %s expired before release", invoice_id)
