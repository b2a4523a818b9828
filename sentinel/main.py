"""Entry point and scheduler for Price Sentinel."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from sentinel.comparator import lowest_price, total_change_pct
from sentinel.config import get_tick_seconds, notifications_enabled
from sentinel.errors import SentinelError
from sentinel.fetchers.extractor import ExtractionGateway
from sentinel.models import ProductStatus
from sentinel.monitor import Monitor
from sentinel.notifiers.dispatcher import NotificationDispatcher
from sentinel.notifiers.email import email_configured
from sentinel.notifiers.telegram import telegram_configured
from sentinel.storage import SnapshotStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def build_monitor() -> Monitor:
    """Wire the monitor from environment settings and restore saved products."""
    store = SnapshotStore()
    store.init()

    enabled = notifications_enabled() and (telegram_configured() or email_configured())
    if not enabled:
        logger.warning("No notification channel configured — alerts will only be logged")

    monitor = Monitor(
        gateway=ExtractionGateway(),
        dispatcher=NotificationDispatcher(enabled=enabled),
        store=store,
    )
    monitor.start()
    return monitor


def run_tick(monitor: Monitor) -> None:
    """Scheduled job body. Never lets an error stop the scheduler."""
    try:
        updated = monitor.tick()
        if updated:
            logger.info("Tick complete: %d product(s) updated", updated)
    except Exception as e:
        logger.exception("Tick failed: %s", e)


def run_scheduler(monitor: Monitor) -> None:
    tick_seconds = get_tick_seconds()
    logger.info("🚀 Price Sentinel started: %d product(s) tracked", len(monitor.products()))
    logger.info("Scheduler: tick every %g s, per-product interval %s", tick_seconds, monitor.interval)

    run_tick(monitor)

    scheduler = BlockingScheduler()
    scheduler.add_job(
        run_tick,
        args=[monitor],
        trigger=IntervalTrigger(seconds=tick_seconds),
        id="price_tick",
        max_instances=1,          # Ticks never overlap
        coalesce=True,
        misfire_grace_time=int(tick_seconds),
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down")
    finally:
        monitor.shutdown()


def print_products(monitor: Monitor) -> None:
    products = monitor.products()
    if not products:
        print("No products tracked.")
        return
    for p in products:
        flag = "DEAL" if p.is_deal else "    "
        print(
            f"{flag} {p.id[:8]}  {p.name[:40]:<40}  "
            f"{p.currency}{p.current_price:,.2f} (target {p.currency}{p.target_price:,.2f}, "
            f"low {p.currency}{lowest_price(p):,.2f}, {total_change_pct(p):+.1f}%)  "
            f"[{p.status.value}] next {p.next_check:%Y-%m-%d %H:%M}"
        )


def resolve_id(monitor: Monitor, prefix: str) -> str:
    """Accept a full id or a unique prefix of one."""
    matches = [p.id for p in monitor.products() if p.id.startswith(prefix)]
    if len(matches) != 1:
        raise SystemExit(f"No unique product matches id {prefix!r}")
    return matches[0]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sentinel", description="Track product prices and alert on deals.")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="start the monitoring loop (default)")
    sub.add_parser("list", help="show tracked products")

    add = sub.add_parser("add", help="track a product URL")
    add.add_argument("url")
    add.add_argument("target_price", type=float)

    for name, help_text in (
        ("remove", "stop tracking a product"),
        ("refresh", "check a product's price now"),
        ("pause", "exclude a product from scheduled checks"),
        ("resume", "include a paused product again"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("id")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    monitor = build_monitor()
    command = args.command or "run"

    if command == "run":
        run_scheduler(monitor)
        return 0

    try:
        if command == "list":
            print_products(monitor)
        elif command == "add":
            product = monitor.add_product(args.url, args.target_price)
            print(f"Tracking {product.name} ({product.id[:8]}) at {product.currency}{product.current_price:,.2f}")
        elif command == "remove":
            monitor.remove_product(resolve_id(monitor, args.id))
        elif command == "refresh":
            product = monitor.refresh_now(resolve_id(monitor, args.id))
            if product is not None:
                print(f"{product.name}: {product.currency}{product.current_price:,.2f}")
        elif command == "pause":
            monitor.set_status(resolve_id(monitor, args.id), ProductStatus.PAUSED)
        elif command == "resume":
            monitor.set_status(resolve_id(monitor, args.id), ProductStatus.ACTIVE)
    except (SentinelError, ValueError) as e:
        logger.error("%s failed: %s", command, e)
        return 1
    finally:
        monitor.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
