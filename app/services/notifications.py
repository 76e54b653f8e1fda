"""
Buyer notifications.

Delivery (WhatsApp, SMS) is an external service; this module only hands events
off and records the dispatch. Callers schedule notify() as a FastAPI background
task and never wait on it.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)

ORDER_RECEIVED = "order_received"
PAYMENT_VERIFIED = "payment_verified"
PAYMENT_REJECTED = "payment_rejected"

EVENTS = {ORDER_RECEIVED, PAYMENT_VERIFIED, PAYMENT_REJECTED}


def notify(event: str, recipients: list[str], payload: dict[str, Any] | None = None) -> bool:
    """Dispatch a notification. Returns False instead of raising when dispatch is not possible."""
    if event not in EVENTS:
        logger.warning("Unknown notification event %s, skipping", event)
        return False

    targets = [r for r in recipients if r]
    if not targets:
        logger.warning("Notification %s has no recipients, skipping", event)
        return False

    logger.info("Notification %s dispatched to %s: %s", event, ", ".join(targets), payload or {})
    return True
