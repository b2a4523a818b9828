"""Email notification via SMTP (Gmail)."""

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from sentinel.errors import NotificationError

logger = logging.getLogger(__name__)


def email_configured() -> bool:
    return bool(os.environ.get("SMTP_USER") and os.environ.get("SMTP_PASS"))


def send_email_alert(product_name: str, price: float, currency: str, image_url: str) -> bool:
    """
    Send price alert email.

    Uses SMTP_USER and SMTP_PASS (Gmail App Password).
    SMTP_TO defaults to SMTP_USER if not set.
    """
    user = os.environ.get("SMTP_USER")
    password = os.environ.get("SMTP_PASS")
    to_addr = os.environ.get("SMTP_TO", user)

    if not user or not password:
        logger.debug("Email: SMTP_USER or SMTP_PASS not set")
        return False

    subject = f"Price Alert: {product_name[:50]} at {currency}{price:,.2f}"
    body = f"""
Price Sentinel - Target Reached

Product: {product_name}
Current Price: {currency}{price:,.2f}
Image: {image_url or "n/a"}
"""

    msg = MIMEMultipart()
    msg["From"] = user
    msg["To"] = to_addr
    msg["Subject"] = subject
    msg.attach(MIMEText(body.strip(), "plain"))

    try:
        logger.debug("Email: sending alert to %s", to_addr)
        with smtplib.SMTP("smtp.gmail.com", 587, timeout=30) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(user, to_addr, msg.as_string())
    except smtplib.SMTPAuthenticationError as e:
        raise NotificationError(f"Email authentication failed: {e}") from e
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError(f"Email SMTP error: {e}") from e

    logger.info("Email: alert sent successfully")
    return True
