"""Fan a price alert out to every configured channel."""

import logging
from collections.abc import Callable, Sequence

from sentinel.errors import NotificationError
from sentinel.notifiers.email import send_email_alert
from sentinel.notifiers.telegram import send_telegram_alert

logger = logging.getLogger(__name__)

# (product_name, price, currency, image_url) -> delivered
Channel = Callable[[str, float, str, str], bool]

DEFAULT_CHANNELS: tuple[Channel, ...] = (send_telegram_alert, send_email_alert)


class NotificationDispatcher:
    """
    Best-effort alert delivery.

    `enabled` is the environment capability decided once at startup. Channel
    failures are logged and never reach the caller.
    """

    def __init__(self, channels: Sequence[Channel] = DEFAULT_CHANNELS, enabled: bool = True):
        self.channels = list(channels)
        self.enabled = enabled

    def notify(self, product_name: str, price: float, currency: str, image_url: str) -> bool:
        """Return True if at least one channel delivered the alert."""
        if not self.enabled:
            logger.debug("Notifications disabled; skipping alert for %s", product_name[:50])
            return False

        delivered = False
        for channel in self.channels:
            name = getattr(channel, "__name__", repr(channel))
            try:
                if channel(product_name, price, currency, image_url):
                    delivered = True
            except NotificationError as e:
                logger.warning("Notification channel %s failed: %s", name, e)
            except Exception as e:
                logger.error("Notification channel %s unexpected error: %s", name, e, exc_info=True)

        if not delivered:
            logger.info("Alert for %s not delivered on any channel", product_name[:50])
        return delivered
