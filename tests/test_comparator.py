from datetime import timedelta

import pytest

from conftest import INTERVAL, T0
from sentinel.comparator import (
    creation_event,
    initial_price,
    is_deal,
    lowest_price,
    total_change_pct,
    update_and_evaluate,
)
from sentinel.models import Platform, PricePoint, TrackedProduct


def make_product(price=600.0, target=500.0, deal=None) -> TrackedProduct:
    return TrackedProduct(
        id="abc123",
        url="https://www.flipkart.com/item",
        name="Mechanical Keyboard",
        image_url="",
        currency="₹",
        platform=Platform.FLIPKART,
        current_price=price,
        target_price=target,
        last_updated=T0,
        last_checked=T0,
        next_check=T0 + INTERVAL,
        is_deal=price <= target if deal is None else deal,
        history=[PricePoint(T0, price)],
    )


@pytest.mark.parametrize("price, target, expected", [(99, 100, True), (100, 100, True), (101, 100, False)])
def test_is_deal_is_inclusive(price, target, expected):
    assert is_deal(price, target) is expected


def test_update_applies_price_and_schedules_next_check():
    product = make_product()
    now = T0 + timedelta(hours=2)

    updated, event = update_and_evaluate(product, 550, now, INTERVAL)

    assert event is None
    assert updated.current_price == 550
    assert updated.last_updated == now
    assert updated.last_checked == now
    assert updated.next_check == now + INTERVAL
    assert updated.history[-1] == PricePoint(now, 550)
    assert updated.is_deal is False


def test_update_does_not_touch_input():
    product = make_product()

    update_and_evaluate(product, 450, T0 + INTERVAL, INTERVAL)

    assert product.current_price == 600
    assert len(product.history) == 1
    assert product.is_deal is False


def test_crossing_into_deal_emits_event():
    now = T0 + INTERVAL
    updated, event = update_and_evaluate(make_product(), 450, now, INTERVAL)

    assert updated.is_deal is True
    assert event.product_id == "abc123"
    assert event.price == 450
    assert event.currency == "₹"
    assert event.timestamp == now


def test_staying_in_deal_emits_nothing():
    product = make_product(price=450)

    updated, event = update_and_evaluate(product, 400, T0 + INTERVAL, INTERVAL)

    assert updated.is_deal is True
    assert event is None


def test_unchanged_price_is_still_recorded():
    updated, _ = update_and_evaluate(make_product(), 600, T0 + INTERVAL, INTERVAL)

    assert [p.price for p in updated.history] == [600, 600]


def test_creation_event_only_for_deals():
    assert creation_event(make_product(price=600)) is None
    event = creation_event(make_product(price=480))
    assert event.price == 480
    assert event.timestamp == T0


def test_history_statistics():
    product = make_product(price=600)
    for n, price in enumerate([550, 420, 480], start=1):
        product, _ = update_and_evaluate(product, price, T0 + n * INTERVAL, INTERVAL)

    assert initial_price(product) == 600
    assert lowest_price(product) == 420
    assert total_change_pct(product) == pytest.approx(-20.0)
