"""HTTP client for the remote product extraction service."""

import logging
import re

import requests

from sentinel.config import get_extractor_api_key, get_extractor_url
from sentinel.errors import ExtractionError
from sentinel.models import ExtractionResult, Platform, PriceQuote

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


def _parse_price(value) -> float | None:
    """Extract numeric price from 1299.99, '1299.99', '$1,299.99' or '₹ 54,999'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r"([\d,]+\.?\d*)", str(value))
    if match:
        try:
            return float(match.group(1).replace(",", ""))
        except ValueError:
            return None
    return None


class ExtractionGateway:
    """
    Turns a product URL into metadata and re-queries live prices.

    The service exposes two JSON endpoints:

        POST {base}/extract  {"url": ...}            -> {name, price, currency, imageUrl, platform}
        POST {base}/price    {"name": ..., "url": ...} -> {price}
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or get_extractor_url()).rstrip("/")
        self.api_key = api_key if api_key is not None else get_extractor_api_key()
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        url = f"{self.base_url}{path}"
        try:
            logger.debug("Extractor request %s: %s", path, payload)
            resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            raise ExtractionError(f"Extraction service request failed: {e}") from e
        except ValueError as e:
            raise ExtractionError(f"Extraction service returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ExtractionError("Extraction service returned a non-object response")
        return data

    def extract_full(self, url: str) -> ExtractionResult:
        """Fetch name, price, currency, image and platform for a product URL."""
        data = self._post("/extract", {"url": url})

        name = (data.get("name") or "").strip()
        price = _parse_price(data.get("price"))
        if not name or price is None:
            logger.warning("Extractor response missing name/price for %s: %s", url, data)
            raise ExtractionError("Failed to extract product data. Please check the URL.")

        return ExtractionResult(
            name=name,
            price=price,
            currency=data.get("currency") or "",
            image_url=data.get("imageUrl") or "",
            platform=Platform.parse(data.get("platform"), url),
        )

    def extract_price(self, name: str, url: str) -> PriceQuote:
        """
        Look up the current price of a known product.

        Returns price 0 when the service could not determine a price.
        """
        data = self._post("/price", {"name": name, "url": url})
        price = _parse_price(data.get("price"))
        if price is None:
            logger.debug("Extractor returned no price for %s", name[:50])
            return PriceQuote(price=0.0)
        return PriceQuote(price=price)
