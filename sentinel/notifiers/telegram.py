"""Telegram push notification."""

import html
import logging
import os

import requests

from sentinel.errors import NotificationError

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


def telegram_configured() -> bool:
    return bool(os.environ.get("TELEGRAM_BOT_TOKEN") and os.environ.get("TELEGRAM_CHAT_ID"))


def send_telegram_alert(product_name: str, price: float, currency: str, image_url: str) -> bool:
    """
    Send price alert via Telegram Bot API.

    Requires TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID. Returns False when not
    configured; raises NotificationError when delivery fails.
    """
    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    chat_id = os.environ.get("TELEGRAM_CHAT_ID")

    if not token or not chat_id:
        logger.debug("Telegram: TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not set")
        return False

    text = (
        f"🔔 <b>Target Price Reached</b>\n\n"
        f"<b>{html.escape(product_name[:80])}</b>\n\n"
        f"💰 dropped to {html.escape(currency)}{price:,.2f}"
    )
    if image_url:
        text += f"\n\n{html.escape(image_url)}"

    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": not image_url,
    }

    try:
        logger.debug("Telegram: sending alert for %s", product_name[:50])
        resp = requests.post(TELEGRAM_API.format(token=token), json=payload, timeout=10)
        logger.debug("Telegram response status: %d", resp.status_code)
        if resp.status_code != 200:
            logger.error("Telegram API error (status %d): %s", resp.status_code, resp.text)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise NotificationError(f"Telegram request failed: {e}") from e

    logger.info("Telegram: alert sent successfully")
    return True
