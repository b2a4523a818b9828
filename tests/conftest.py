import copy
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest

from sentinel.activity import ActivityLog
from sentinel.errors import ExtractionError
from sentinel.models import ExtractionResult, Platform, PriceQuote
from sentinel.monitor import Monitor

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
INTERVAL = timedelta(hours=1)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now += delta
        return self.now


class FakeGateway:
    """Scripted extraction service. Queued prices may be numbers or exceptions."""

    def __init__(self, full_price: float = 600.0, name: str = "Noise Cancelling Headphones"):
        self.full = ExtractionResult(
            name=name,
            price=full_price,
            currency="$",
            image_url="https://img.example.com/p.jpg",
            platform=Platform.AMAZON,
        )
        self.full_error: Exception | None = None
        self.prices: list = []
        self.price_calls: list[tuple[str, str]] = []

    def extract_full(self, url: str) -> ExtractionResult:
        if self.full_error is not None:
            raise self.full_error
        return self.full

    def extract_price(self, name: str, url: str) -> PriceQuote:
        self.price_calls.append((name, url))
        item = self.prices.pop(0)
        if isinstance(item, Exception):
            raise item
        return PriceQuote(price=item)


class BlockingGateway(FakeGateway):
    """extract_price waits until released, to hold a check in flight."""

    def __init__(self, price: float = 600.0, **kwargs):
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()
        self.price = price

    def extract_price(self, name: str, url: str) -> PriceQuote:
        self.price_calls.append((name, url))
        self.entered.set()
        if not self.release.wait(timeout=5):
            raise ExtractionError("never released")
        return PriceQuote(price=self.price)


class FakeDispatcher:
    def __init__(self):
        self.calls: list[tuple] = []

    def notify(self, product_name, price, currency, image_url) -> bool:
        self.calls.append((product_name, price, currency, image_url))
        return True


class FakeStore:
    """In-memory snapshot store. Set `fail` to an exception to make writes raise."""

    def __init__(self, products=None):
        self.saved: list[list] = []
        self.current = copy.deepcopy(products or [])
        self.fail: Exception | None = None

    def load(self):
        return copy.deepcopy(self.current)

    def save(self, products):
        if self.fail is not None:
            raise self.fail
        self.current = copy.deepcopy(products)
        self.saved.append([p.to_dict() for p in products])

    @contextmanager
    def transaction(self):
        products = self.load()
        yield products
        self.save(products)


class HangingGateway(FakeGateway):
    """Calls for URLs in `hung` block until released, then fail."""

    def __init__(self, hung: set[str], price: float = 550.0):
        super().__init__()
        self.hung = hung
        self.price = price
        self.release = threading.Event()
        self.lock = threading.Lock()

    def extract_price(self, name: str, url: str) -> PriceQuote:
        with self.lock:
            self.price_calls.append((name, url))
        if url in self.hung:
            self.release.wait(timeout=5)
            raise ExtractionError("hung")
        return PriceQuote(price=self.price)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def monitor(gateway, dispatcher, store, clock):
    m = Monitor(
        gateway=gateway,
        dispatcher=dispatcher,
        store=store,
        activity=ActivityLog(clock=clock),
        clock=clock,
        interval=INTERVAL,
        call_timeout=2,
    )
    yield m
    m.shutdown()
