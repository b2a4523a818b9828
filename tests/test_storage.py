import json

import pytest

from conftest import INTERVAL, T0
from sentinel.comparator import update_and_evaluate
from sentinel.errors import StorageCorruptionError
from sentinel.models import Platform, PricePoint, ProductStatus, TrackedProduct
from sentinel.storage import PRODUCTS_KEY, SnapshotStore, get_connection


def make_product(product_id="p1", price=999.0) -> TrackedProduct:
    return TrackedProduct(
        id=product_id,
        url="https://www.ebay.com/itm/1",
        name="Vintage Camera",
        image_url="https://img.example.com/cam.jpg",
        currency="$",
        platform=Platform.EBAY,
        current_price=price,
        target_price=800.0,
        last_updated=T0,
        last_checked=T0,
        next_check=T0 + INTERVAL,
        history=[PricePoint(T0, price)],
    )


@pytest.fixture
def snapshot_store(tmp_path):
    store = SnapshotStore(tmp_path / "nested" / "sentinel.db")
    store.init()
    return store


def write_raw(store: SnapshotStore, payload: str) -> None:
    with get_connection(store.db_path) as conn:
        conn.execute(
            "INSERT OR REPLACE INTO snapshots (key, payload) VALUES (?, ?)",
            (PRODUCTS_KEY, payload),
        )


def test_missing_snapshot_loads_empty(snapshot_store):
    assert snapshot_store.load() == []


def test_save_then_load_restores_products(snapshot_store):
    product, _ = update_and_evaluate(make_product(), 750, T0 + INTERVAL, INTERVAL)
    paused = make_product("p2")
    paused.status = ProductStatus.PAUSED

    snapshot_store.save([product, paused])
    loaded = snapshot_store.load()

    assert loaded == [product, paused]
    assert loaded[0].is_deal is True
    assert loaded[1].status is ProductStatus.PAUSED


def test_save_overwrites_previous_snapshot(snapshot_store):
    snapshot_store.save([make_product("a"), make_product("b")])
    snapshot_store.save([make_product("c")])

    assert [p.id for p in snapshot_store.load()] == ["c"]


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        json.dumps({"id": "x"}),
        json.dumps([{"id": "x"}]),
        json.dumps([{**make_product().to_dict(), "history": []}]),
    ],
)
def test_corrupt_snapshot_falls_back_to_empty(snapshot_store, payload):
    write_raw(snapshot_store, payload)

    assert snapshot_store.load() == []


def test_parse_raises_corruption_error(snapshot_store):
    with pytest.raises(StorageCorruptionError):
        snapshot_store.parse("[1, 2")


def test_duplicate_ids_are_dropped(snapshot_store):
    first = make_product("dup", 100)
    write_raw(snapshot_store, json.dumps([first.to_dict(), make_product("dup", 200).to_dict()]))

    assert snapshot_store.load() == [first]


def test_snapshot_uses_camel_case_keys(snapshot_store):
    snapshot_store.save([make_product()])
    with get_connection(snapshot_store.db_path) as conn:
        row = conn.execute("SELECT payload FROM snapshots WHERE key = ?", (PRODUCTS_KEY,)).fetchone()

    data = json.loads(row["payload"])[0]
    assert data["imageUrl"] == "https://img.example.com/cam.jpg"
    assert data["nextCheck"] == (T0 + INTERVAL).isoformat()
    assert data["history"] == [{"timestamp": T0.isoformat(), "price": 999.0}]


def test_transaction_rereads_and_writes_back(snapshot_store):
    snapshot_store.save([make_product("a")])
    other_writer = SnapshotStore(snapshot_store.db_path)
    other_writer.save([make_product("a"), make_product("b")])

    with snapshot_store.transaction() as products:
        assert [p.id for p in products] == ["a", "b"]
        products.append(make_product("c"))

    assert [p.id for p in snapshot_store.load()] == ["a", "b", "c"]


def test_transaction_writes_nothing_when_block_raises(snapshot_store):
    snapshot_store.save([make_product("a")])

    with pytest.raises(RuntimeError):
        with snapshot_store.transaction() as products:
            products.clear()
            raise RuntimeError("abort")

    assert [p.id for p in snapshot_store.load()] == ["a"]
