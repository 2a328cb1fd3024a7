"""
Webhook system for sending order and payment event notifications.

Notifications are queued as background tasks after the triggering unit of
work has committed. Delivery failures are logged and never affect the
committed operation.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from fastapi import BackgroundTasks

from . import config

logger = logging.getLogger(__name__)


async def send_webhook(event_type: str, data: Dict[str, Any], urls: Optional[List[str]] = None) -> None:
    """
    Send webhook notifications to all registered URLs.

    Args:
        event_type: Type of event (e.g., "order.created", "payment.recorded")
        data: JSON-serializable event payload
        urls: Target URLs; defaults to config.WEBHOOK_URLS
    """
    urls = config.WEBHOOK_URLS if urls is None else urls
    if not urls:
        return

    payload = {
        "event": event_type,
        "data": data,
        "timestamp": datetime.utcnow().isoformat(),
    }

    async with httpx.AsyncClient(timeout=config.WEBHOOK_TIMEOUT) as client:
        # Send all webhooks concurrently
        results = await asyncio.gather(
            *(send_single_webhook(client, url, payload) for url in urls),
            return_exceptions=True,
        )

    for url, result in zip(urls, results):
        if isinstance(result, Exception):
            logger.warning(f"Webhook error for {url}: {result!r}")


async def send_single_webhook(client: httpx.AsyncClient, url: str, payload: Dict[str, Any]) -> bool:
    """
    Send a webhook to a single URL.

    Returns:
        True if the receiver accepted the notification
    """
    try:
        response = await client.post(url, json=payload)
    except httpx.HTTPError as e:
        logger.warning(f"Webhook error for {url}: {e}")
        return False

    if response.status_code >= 400:
        logger.warning(f"Webhook failed for {url}: HTTP {response.status_code}")
        return False
    return True


def notify(background_tasks: BackgroundTasks, event_type: str, data: Dict[str, Any]) -> None:
    """Queue a notification to run once the response has been sent."""
    background_tasks.add_task(send_webhook, event_type, data)


def notify_order_created(background_tasks: BackgroundTasks, order_data: Dict[str, Any]) -> None:
    notify(background_tasks, "order.created", order_data)


def notify_order_status_changed(
    background_tasks: BackgroundTasks, order_id: str, old_status: str, new_status: str
) -> None:
    """
    Notify that an order status changed.

    Args:
        background_tasks: Request background task queue
        order_id: Order ID
        old_status: Previous status
        new_status: New status
    """
    data = {
        "order_id": order_id,
        "old_status": old_status,
        "new_status": new_status,
    }
    event_type = "order.cancelled" if new_status == "cancelled" else "order.status_changed"
    notify(background_tasks, event_type, data)


def notify_shipping_updated(background_tasks: BackgroundTasks, shipping_data: Dict[str, Any]) -> None:
    notify(background_tasks, "order.shipping_updated", shipping_data)


def notify_payment_recorded(background_tasks: BackgroundTasks, payment_data: Dict[str, Any]) -> None:
    notify(background_tasks, "payment.recorded", payment_data)
