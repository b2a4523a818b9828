"""SQLite snapshot persistence for tracked products."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from sentinel.config import get_db_path
from sentinel.errors import StorageCorruptionError
from sentinel.models import TrackedProduct

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "tracked_products"


@contextmanager
def get_connection(db_path: Path | None = None):
    """Context manager for SQLite connection."""
    db_path = db_path or get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Create tables if they don't exist."""
    with get_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS snapshots (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                saved_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)


class SnapshotStore:
    """
    Load-all / save-all store: the whole collection lives under one key.

    Writers go through `transaction()`, which re-reads the stored snapshot
    under an exclusive SQLite write lock before handing it out, so two
    processes sharing the database never overwrite each other's changes.
    """

    def __init__(self, db_path: Path | None = None, key: str = PRODUCTS_KEY):
        self.db_path = db_path or get_db_path()
        self.key = key

    def init(self) -> None:
        init_db(self.db_path)

    def _read_payload(self, conn: sqlite3.Connection) -> str | None:
        row = conn.execute(
            "SELECT payload FROM snapshots WHERE key = ?",
            (self.key,),
        ).fetchone()
        return row["payload"] if row else None

    def _write_payload(self, conn: sqlite3.Connection, products: list[TrackedProduct]) -> None:
        payload = json.dumps([p.to_dict() for p in products])
        conn.execute(
            """
            INSERT INTO snapshots (key, payload, saved_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                payload = excluded.payload,
                saved_at = excluded.saved_at
            """,
            (self.key, payload),
        )

    def parse(self, payload: str) -> list[TrackedProduct]:
        """Decode a snapshot payload. Raises StorageCorruptionError when unparsable."""
        try:
            data = json.loads(payload)
            if not isinstance(data, list):
                raise ValueError("snapshot is not a JSON array")
            return [TrackedProduct.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError) as e:
            raise StorageCorruptionError(f"Snapshot {self.key!r} is unreadable: {e}") from e

    def _decode(self, payload: str | None) -> list[TrackedProduct]:
        """Missing snapshot -> empty; corrupt snapshot -> empty with a warning."""
        if payload is None:
            return []
        try:
            products = self.parse(payload)
        except StorageCorruptionError as e:
            logger.warning("%s; starting with an empty collection", e)
            return []

        seen: set[str] = set()
        unique: list[TrackedProduct] = []
        for product in products:
            if product.id in seen:
                logger.warning("Dropping duplicate product id %s from snapshot", product.id)
                continue
            seen.add(product.id)
            unique.append(product)
        return unique

    def load(self) -> list[TrackedProduct]:
        """Restore the collection."""
        with get_connection(self.db_path) as conn:
            return self._decode(self._read_payload(conn))

    def save(self, products: list[TrackedProduct]) -> None:
        """Rewrite the full snapshot."""
        with get_connection(self.db_path) as conn:
            self._write_payload(conn, products)
        logger.debug("Saved %d products to %s", len(products), self.db_path)

    @contextmanager
    def transaction(self):
        """
        Yield the current collection for in-place edits and rewrite it on exit.

        The write lock is held from the read to the write. If the block
        raises, nothing is written.
        """
        with get_connection(self.db_path) as conn:
            conn.execute("BEGIN IMMEDIATE")
            products = self._decode(self._read_payload(conn))
            yield products
            self._write_payload(conn, products)
        logger.debug("Saved %d products to %s", len(products), self.db_path)
