"""
WhatsApp notification sink.

Messages are relayed through a small HTTP bridge: POST {WHATSAPP_API_URL}/send
with JSON fields `phone` and `message`. Delivery is best effort; a failed send
is logged and never reaches the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from core.config import settings
from core.dates import as_utc, business_tz

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    pass


@dataclass
class WhatsAppNotifier:
    base_url: str
    enabled: bool = True
    timeout: float = 10.0

    def _post(self, phone: str, message: str) -> None:
        url = f"{self.base_url.rstrip('/')}/send"
        resp = requests.post(
            url,
            json={"phone": phone, "message": message},
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        if resp.status_code >= 400:
            raise NotificationError(f"WhatsApp relay failed ({resp.status_code}): {resp.text}")

    def send(self, phone: Optional[str], message: str) -> bool:
        """Returns True when the relay accepted the message."""
        if not self.enabled or not self.base_url:
            logger.info("WhatsApp disabled, dropping message to %s", phone)
            return False
        if not phone:
            logger.warning("No phone number, WhatsApp message not sent")
            return False
        try:
            self._post(phone, message)
        except (requests.RequestException, NotificationError) as e:
            logger.warning("WhatsApp send to %s failed: %s", phone, e)
            return False
        logger.info("WhatsApp message sent to %s", phone)
        return True


_notifier: Optional[WhatsAppNotifier] = None


def get_notifier() -> WhatsAppNotifier:
    global _notifier
    if _notifier is None:
        _notifier = WhatsAppNotifier(
            base_url=settings.whatsapp_api_url,
            enabled=settings.whatsapp_enabled,
            timeout=settings.whatsapp_timeout_seconds,
        )
    return _notifier


def delivery_deleted_message(
    *,
    customer_name: str,
    created_at,
    filled_bottles: int,
    empty_bottles: int,
    payment: int,
) -> str:
    when = as_utc(created_at).astimezone(business_tz()).strftime("%I:%M %p, %A %d %B %Y")
    return (
        f"NOTE: The delivery made at {when} has been deleted due to an invalid/wrong delivery entry.\n"
        "Short Delivery Details:\n"
        f"- Customer: {customer_name}\n"
        f"- Filled Bottles: {filled_bottles}\n"
        f"- Empty Bottles: {empty_bottles}\n"
        f"- Payment: {payment}\n"
        "\n"
        "Sorry for the inconvenience."
    )
