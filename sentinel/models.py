"""Data models for price tracking."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlparse


class Platform(str, Enum):
    """E-commerce platform a product is listed on."""

    AMAZON = "Amazon"
    FLIPKART = "Flipkart"
    EBAY = "eBay"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str | None, url: str = "") -> "Platform":
        """Normalize a service-supplied platform name, falling back to the URL host."""
        if value:
            for platform in cls:
                if platform.value.lower() == str(value).strip().lower():
                    return platform
        host = urlparse(url).netloc.lower()
        if "amazon." in host or host.startswith("amzn."):
            return cls.AMAZON
        if "flipkart." in host:
            return cls.FLIPKART
        if "ebay." in host:
            return cls.EBAY
        return cls.OTHER


class ProductStatus(str, Enum):
    """Whether the scheduler considers a product at all."""

    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class Severity(str, Enum):
    """Activity log severity."""

    INFO = "info"
    SUCCESS = "success"
    WARN = "warn"
    ALERT = "alert"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime) -> str:
    return value.isoformat()


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class PricePoint:
    """One observed price."""

    timestamp: datetime
    price: float

    def to_dict(self) -> dict:
        return {"timestamp": _to_iso(self.timestamp), "price": self.price}

    @classmethod
    def from_dict(cls, data: dict) -> "PricePoint":
        return cls(timestamp=_from_iso(data["timestamp"]), price=float(data["price"]))


@dataclass
class TrackedProduct:
    """Product under surveillance with its full price history."""

    id: str
    url: str
    name: str
    image_url: str
    currency: str
    platform: Platform
    current_price: float
    target_price: float
    last_updated: datetime
    last_checked: datetime
    next_check: datetime
    is_deal: bool = False
    status: ProductStatus = ProductStatus.ACTIVE
    history: list[PricePoint] = field(default_factory=list)

    def is_due(self, now: datetime) -> bool:
        return self.status is ProductStatus.ACTIVE and now >= self.next_check

    def to_dict(self) -> dict:
        """JSON-compatible snapshot form."""
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "imageUrl": self.image_url,
            "currency": self.currency,
            "platform": self.platform.value,
            "currentPrice": self.current_price,
            "targetPrice": self.target_price,
            "history": [point.to_dict() for point in self.history],
            "lastUpdated": _to_iso(self.last_updated),
            "lastChecked": _to_iso(self.last_checked),
            "nextCheck": _to_iso(self.next_check),
            "isDeal": self.is_deal,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrackedProduct":
        """Rebuild a product from its snapshot form. Raises KeyError/ValueError on bad data."""
        history = [PricePoint.from_dict(p) for p in data["history"]]
        if not history:
            raise ValueError(f"product {data.get('id')!r} has an empty history")
        return cls(
            id=str(data["id"]),
            url=data["url"],
            name=data["name"],
            image_url=data.get("imageUrl", ""),
            currency=data.get("currency", ""),
            platform=Platform.parse(data.get("platform"), data["url"]),
            current_price=float(data["currentPrice"]),
            target_price=float(data["targetPrice"]),
            last_updated=_from_iso(data["lastUpdated"]),
            last_checked=_from_iso(data["lastChecked"]),
            next_check=_from_iso(data["nextCheck"]),
            is_deal=bool(data.get("isDeal", False)),
            status=ProductStatus(data.get("status", ProductStatus.ACTIVE.value)),
            history=history,
        )


@dataclass
class ExtractionResult:
    """Full product metadata returned by the extraction service."""

    name: str
    price: float
    currency: str
    image_url: str
    platform: Platform


@dataclass
class PriceQuote:
    """Light-weight current price lookup. A price of 0 means "not found"."""

    price: float


@dataclass(frozen=True)
class CrossingEvent:
    """A product's price moved from above target to at-or-below target."""

    product_id: str
    product_name: str
    price: float
    currency: str
    image_url: str
    target_price: float
    timestamp: datetime


@dataclass(frozen=True)
class ActivityLogEntry:
    """Operational event shown in the activity feed."""

    message: str
    timestamp: datetime
    severity: Severity
