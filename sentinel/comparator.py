"""Price comparison, deal detection and history statistics."""

from dataclasses import replace
from datetime import datetime, timedelta

from sentinel.models import CrossingEvent, PricePoint, TrackedProduct


def is_deal(price: float, target_price: float) -> bool:
    """Return True if price is at or below the target threshold."""
    return price <= target_price


def update_and_evaluate(
    product: TrackedProduct,
    new_price: float,
    now: datetime,
    interval: timedelta,
) -> tuple[TrackedProduct, CrossingEvent | None]:
    """
    Apply an observed price to a product.

    Returns (updated_product, crossing_event). The input product is left
    untouched so the caller can swap the result in atomically. Every
    observation is appended to history, even when the price is unchanged.
    A crossing event is emitted only on a transition from not-a-deal to deal.
    """
    was_deal = product.is_deal
    is_now_deal = is_deal(new_price, product.target_price)

    event = None
    if is_now_deal and not was_deal:
        event = CrossingEvent(
            product_id=product.id,
            product_name=product.name,
            price=new_price,
            currency=product.currency,
            image_url=product.image_url,
            target_price=product.target_price,
            timestamp=now,
        )

    updated = replace(
        product,
        current_price=new_price,
        history=[*product.history, PricePoint(timestamp=now, price=new_price)],
        last_updated=now,
        last_checked=now,
        next_check=now + interval,
        is_deal=is_now_deal,
    )
    return updated, event


def creation_event(product: TrackedProduct) -> CrossingEvent | None:
    """A product that is a deal when first added counts as a crossing."""
    if not product.is_deal:
        return None
    return CrossingEvent(
        product_id=product.id,
        product_name=product.name,
        price=product.current_price,
        currency=product.currency,
        image_url=product.image_url,
        target_price=product.target_price,
        timestamp=product.last_updated,
    )


def initial_price(product: TrackedProduct) -> float:
    """Price recorded when the product was first added."""
    if product.history and product.history[0].price:
        return product.history[0].price
    return product.current_price


def total_change_pct(product: TrackedProduct) -> float:
    """Percent change of the current price against the initial price."""
    start = initial_price(product)
    if not start:
        return 0.0
    return (product.current_price - start) / start * 100


def lowest_price(product: TrackedProduct) -> float:
    """Lowest price ever observed."""
    if not product.history:
        return product.current_price
    return min(point.price for point in product.history)
