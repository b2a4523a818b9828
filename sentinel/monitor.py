"""Monitor scheduler: owns tracked products and runs due price checks."""

import copy
import logging
import sqlite3
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeout
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta

from sentinel.activity import ActivityLog
from sentinel.comparator import creation_event, is_deal, update_and_evaluate
from sentinel.config import get_check_interval, get_extraction_timeout
from sentinel.errors import (
    ExtractionError,
    InvalidPriceError,
    ProductNotFoundError,
    StorageError,
)
from sentinel.models import (
    CrossingEvent,
    PricePoint,
    ProductStatus,
    Severity,
    TrackedProduct,
    utcnow,
)

logger = logging.getLogger(__name__)


def _short(name: str, limit: int = 30) -> str:
    return name if len(name) <= limit else name[: limit - 1] + "…"


def _index(products: list[TrackedProduct], product_id: str) -> int:
    for i, p in enumerate(products):
        if p.id == product_id:
            return i
    raise ProductNotFoundError(product_id)


def _new_id(products: list[TrackedProduct]) -> str:
    existing = {p.id for p in products}
    while True:
        candidate = uuid.uuid4().hex
        if candidate not in existing:
            return candidate


class Monitor:
    """
    Decides which products are due, checks them and applies the results.

    The stored snapshot is the source of truth: every mutation re-reads it
    inside a store transaction, applies the change and writes it back, so a
    CLI process and a running scheduler sharing one database do not lose
    each other's updates. Within a process, mutations are serialized by a
    lock. Extraction calls run outside the lock on their own daemon thread
    with an upper time bound, and at most one check per product is in
    flight at any time: a manual refresh that arrives while a check for the
    same product is running is treated as already satisfied and skipped.
    """

    def __init__(
        self,
        gateway,
        dispatcher,
        store=None,
        activity: ActivityLog | None = None,
        clock: Callable[[], datetime] = utcnow,
        interval: timedelta | None = None,
        call_timeout: float | None = None,
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.store = store
        self.activity = activity or ActivityLog(clock=clock)
        self.clock = clock
        self.interval = interval or get_check_interval()
        self.call_timeout = call_timeout or get_extraction_timeout()

        self._products: list[TrackedProduct] = []
        self._in_flight: set[str] = set()
        self._lock = threading.RLock()
        self._closed = False

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Restore the persisted collection and announce readiness."""
        self._sync()
        logger.info("Restored %d tracked products", len(self._products))
        self.activity.record("Price sentinel online", Severity.SUCCESS)
        self.activity.record(
            f"Checking each product every {int(self.interval.total_seconds() // 60)} min",
            Severity.INFO,
        )

    def shutdown(self) -> None:
        """Refuse further extraction calls. Abandoned calls change nothing."""
        self._closed = True

    # ── Read side ──────────────────────────────────────────────────────────────

    def products(self) -> list[TrackedProduct]:
        """Snapshot of all products, newest first."""
        with self._lock:
            return copy.deepcopy(self._products)

    def get(self, product_id: str) -> TrackedProduct:
        with self._lock:
            return copy.deepcopy(self._products[_index(self._products, product_id)])

    def search(self, query: str) -> list[TrackedProduct]:
        """Products whose name contains query (case-insensitive)."""
        needle = query.lower()
        return [p for p in self.products() if needle in p.name.lower()]

    def due(self, now: datetime) -> list[TrackedProduct]:
        with self._lock:
            return [
                copy.deepcopy(p)
                for p in self._products
                if p.is_due(now) and p.id not in self._in_flight
            ]

    # ── Scheduled checks ───────────────────────────────────────────────────────

    def tick(self, now: datetime | None = None) -> int:
        """
        Check every active product whose next_check has passed.

        Products are processed one after another. Failures are logged and
        leave next_check untouched so the product is retried on the next
        tick. Returns the number of products whose price was updated.
        """
        now = now or self.clock()
        self._sync()
        due = self.due(now)
        if not due:
            return 0

        logger.debug("Tick at %s: %d product(s) due", now.isoformat(), len(due))
        updated = 0
        for product in due:
            if not self._claim(product.id):
                continue
            try:
                self.activity.record(f"Auto-check: {_short(product.name)}", Severity.INFO)
                try:
                    price = self._fetch_price(product)
                except InvalidPriceError:
                    self.activity.record(
                        f"No price found for {_short(product.name)}, retrying next tick",
                        Severity.WARN,
                    )
                    continue
                except ExtractionError as e:
                    logger.warning("Check failed for %s: %s", product.id, e)
                    self.activity.record(
                        f"Check failed for {_short(product.name)}, retrying next tick",
                        Severity.WARN,
                    )
                    continue

                try:
                    if self._apply_price(product.id, price, now) is not None:
                        updated += 1
                except StorageError:
                    continue
            finally:
                self._release(product.id)
        return updated

    # ── User actions ───────────────────────────────────────────────────────────

    def refresh_now(self, product_id: str) -> TrackedProduct | None:
        """
        Check one product immediately, ignoring next_check and status.

        Returns the updated product, or None if a check for it was already
        in flight. Extraction and storage failures are raised to the caller.
        """
        self._sync()
        product = self.get(product_id)
        if not self._claim(product_id):
            self.activity.record("Refresh skipped: check already running", Severity.INFO)
            return None
        try:
            try:
                price = self._fetch_price(product)
            except ExtractionError:
                self.activity.record(f"Manual refresh failed: {_short(product.name)}", Severity.WARN)
                raise

            updated = self._apply_price(product_id, price, self.clock())
            if updated is None:
                raise ProductNotFoundError(product_id)
            return copy.deepcopy(updated)
        finally:
            self._release(product_id)

    def add_product(self, url: str, target_price: float) -> TrackedProduct:
        """
        Start tracking a product.

        Extraction failures propagate so no partial product is created. A
        product that is already a deal when added fires the alert at once.
        """
        url = (url or "").strip()
        if not url:
            raise ValueError("url is required")
        if target_price is None or target_price <= 0:
            raise ValueError("target_price must be positive")

        self.activity.record("Extracting product data…", Severity.INFO)
        try:
            data = self._call(self.gateway.extract_full, url)
            if data.price <= 0:
                raise InvalidPriceError(data.price)
        except ExtractionError as e:
            logger.warning("Could not add %s: %s", url, e)
            self.activity.record("Extraction failure", Severity.WARN)
            raise

        now = self.clock()
        with self._mutation() as products:
            product = TrackedProduct(
                id=_new_id(products),
                url=url,
                name=data.name,
                image_url=data.image_url,
                currency=data.currency,
                platform=data.platform,
                current_price=data.price,
                target_price=target_price,
                last_updated=now,
                last_checked=now,
                next_check=now + self.interval,
                is_deal=is_deal(data.price, target_price),
                status=ProductStatus.ACTIVE,
                history=[PricePoint(timestamp=now, price=data.price)],
            )
            products.insert(0, product)

        self.activity.record(f"Now tracking: {_short(product.name)}", Severity.SUCCESS)
        event = creation_event(product)
        if event is not None:
            self._handle_crossing(event)
        return copy.deepcopy(product)

    def remove_product(self, product_id: str) -> bool:
        """Stop tracking a product. Removing an unknown id is a no-op."""
        try:
            with self._mutation() as products:
                del products[_index(products, product_id)]
        except ProductNotFoundError:
            return False
        self.activity.record(f"Stopped tracking {product_id[:6]}", Severity.WARN)
        return True

    def set_status(self, product_id: str, status: ProductStatus) -> TrackedProduct:
        """Pause, resume or archive a product."""
        status = ProductStatus(status)
        with self._mutation() as products:
            index = _index(products, product_id)
            product = replace(products[index], status=status)
            products[index] = product
        self.activity.record(f"{_short(product.name)} is now {status.value}", Severity.INFO)
        return copy.deepcopy(product)

    def set_target_price(self, product_id: str, target_price: float) -> TrackedProduct:
        """Change the target. is_deal is re-derived without firing an alert."""
        if target_price is None or target_price <= 0:
            raise ValueError("target_price must be positive")
        with self._mutation() as products:
            index = _index(products, product_id)
            current = products[index]
            product = replace(
                current,
                target_price=target_price,
                is_deal=is_deal(current.current_price, target_price),
            )
            products[index] = product
        self.activity.record(
            f"Target for {_short(product.name)} set to {product.currency}{target_price:,.2f}",
            Severity.INFO,
        )
        return copy.deepcopy(product)

    # ── Internals ──────────────────────────────────────────────────────────────

    def _call(self, fn, *args):
        """
        Run a gateway call with the engine-imposed timeout.

        Each call gets its own daemon thread, so a hung call never delays
        later ones; on timeout the thread is abandoned and its result ignored.
        """
        if self._closed:
            raise ExtractionError("Monitor is shut down")

        future: Future = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(fn(*args))
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=run, name="extract", daemon=True).start()
        try:
            return future.result(timeout=self.call_timeout)
        except FuturesTimeout as e:
            raise ExtractionError(
                f"Extraction call timed out after {self.call_timeout:g}s"
            ) from e
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Extraction call failed: {e}") from e

    def _fetch_price(self, product: TrackedProduct) -> float:
        quote = self._call(self.gateway.extract_price, product.name, product.url)
        if quote.price <= 0:
            raise InvalidPriceError(quote.price)
        return quote.price

    def _apply_price(self, product_id: str, price: float, now: datetime) -> TrackedProduct | None:
        """Evaluate and commit the new price, then log and alert."""
        try:
            with self._mutation() as products:
                index = _index(products, product_id)
                previous = products[index]
                updated, event = update_and_evaluate(previous, price, now, self.interval)
                products[index] = updated
        except ProductNotFoundError:
            logger.info("Product %s removed during check; discarding result", product_id)
            return None

        changed = price != previous.current_price
        self.activity.record(
            f"Price {'updated' if changed else 'confirmed'}: "
            f"{_short(updated.name)} {updated.currency}{price:,.2f}",
            Severity.SUCCESS if changed else Severity.INFO,
        )
        if event is not None:
            self._handle_crossing(event)
        return updated

    def _handle_crossing(self, event: CrossingEvent) -> None:
        try:
            self.dispatcher.notify(event.product_name, event.price, event.currency, event.image_url)
        except Exception as e:
            logger.error("Notification dispatch failed: %s", e, exc_info=True)
        self.activity.record(
            f"Target reached: {_short(event.product_name)} at {event.currency}{event.price:,.2f}",
            Severity.ALERT,
        )

    @contextmanager
    def _mutation(self):
        """
        Yield the latest collection for in-place edits and commit it on exit.

        The in-memory copy is replaced only after the snapshot is written, so
        a failed write leaves both unchanged. Write failures raise StorageError.
        """
        with self._lock:
            if self.store is None:
                products = list(self._products)
                yield products
                self._products = products
                return
            try:
                with self.store.transaction() as products:
                    yield products
            except (sqlite3.Error, OSError) as e:
                logger.error("Snapshot save failed: %s", e, exc_info=True)
                self.activity.record("Snapshot save failed", Severity.WARN)
                raise StorageError(f"Snapshot save failed: {e}") from e
            self._products = products

    def _sync(self) -> None:
        """Pick up changes other processes committed to the snapshot."""
        if self.store is None:
            return
        with self._lock:
            try:
                self._products = self.store.load()
            except (sqlite3.Error, OSError) as e:
                logger.warning("Snapshot reload failed, keeping cached products: %s", e)

    def _claim(self, product_id: str) -> bool:
        with self._lock:
            if product_id in self._in_flight:
                return False
            self._in_flight.add(product_id)
            return True

    def _release(self, product_id: str) -> None:
        with self._lock:
            self._in_flight.discard(product_id)
