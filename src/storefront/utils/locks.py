"""Keyed in-process locks.

Serializes work on a shared resource (a product's stock counter, a promo
code's redemption count, an order's payment state) across the request
threads of one process. Keys follow ``<kind>:<id>``. Multiple keys are
always acquired in sorted order so two callers can never deadlock.

A ``cart:`` key is held for a whole checkout and taken before any other
key, never while one is held.
"""

import threading
import weakref
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.exceptions import ConflictError

logger = structlog.get_logger(__name__)

LOCK_TIMEOUT_SECONDS = 10.0


class _KeyedLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.Lock()


_locks: "weakref.WeakValueDictionary[str, _KeyedLock]" = weakref.WeakValueDictionary()
_registry_guard = threading.Lock()


def product_key(product_id) -> str:
    return f"product:{product_id}"


def promo_key(code) -> str:
    return f"promo:{str(code).upper()}"


def order_key(order_id) -> str:
    return f"order:{order_id}"


def cart_key(customer_id=None, session_id=None) -> str:
    return f"cart:customer:{customer_id}" if customer_id else f"cart:session:{session_id}"


def _lock_for(key: str) -> _KeyedLock:
    with _registry_guard:
        entry = _locks.get(key)
        if entry is None:
            entry = _KeyedLock()
            _locks[key] = entry
        return entry


@contextmanager
def hold(*keys, timeout: float = LOCK_TIMEOUT_SECONDS):
    """Hold every lock in ``keys`` for the duration of the block.

    Raises ``ConflictError`` if a lock cannot be obtained within ``timeout``.
    """
    ordered = sorted({str(k) for k in keys if k})
    entries = [(key, _lock_for(key)) for key in ordered]
    acquired = []
    try:
        for key, entry in entries:
            if not entry.lock.acquire(timeout=timeout):
                logger.warning("Lock wait timed out", key=key, timeout=timeout)
                raise ConflictError({"lock": [f"Resource {key} is busy, retry later"]})
            acquired.append(entry)
        yield ordered
    finally:
        for entry in reversed(acquired):
            entry.lock.release()


def optimistic_retry():
    """Retry a unit of work that lost an optimistic version check to another process."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(ExpectedVersionError),
    )


@optimistic_retry()
def process_locked(command, *keys):
    """Process ``command`` synchronously while holding ``keys``.

    The lock spans the whole unit of work, so the commit is covered too.
    """
    with hold(*keys):
        return current_domain.process(command, asynchronous=False)
