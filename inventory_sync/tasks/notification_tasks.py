import logging

from kombu.exceptions import OperationalError

from inventory_sync.tasks.celery_app import celery_app
from inventory_sync.broadcast.broadcaster import get_broadcaster

logger = logging.getLogger(__name__)


@celery_app.task(name="send_inventory_notification")
def send_inventory_notification(message: str) -> dict:
    """
    Broadcast a human-readable notification to every connected client.

    Notifications duplicate what the change events already say, in a
    different shape. Clients never rely on them for their product view,
    so the task is not retried.

    Args:
        message: Notification text

    Returns:
        Dictionary with the dispatched message
    """
    get_broadcaster().publish_notification(message)
    logger.info(f"Notification sent: {message}")

    return {
        "status": "sent",
        "message": message
    }


def dispatch_notification(message: str) -> None:
    """Queue a notification. A broker outage only costs the notification."""
    try:
        send_inventory_notification.delay(message)
    except OperationalError as e:
        logger.warning(f"Could not queue notification '{message}': {e}")
