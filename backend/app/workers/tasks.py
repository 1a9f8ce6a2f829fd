"""
Celery Tasks — outbound work that must not hold up an API request.

send_proposal_notification: posts a rendered proposal event to the
configured webhook, retrying transient failures.
"""
import logging

import httpx

from app import config
from app.workers.celery_app import celery_app

logger = logging.getLogger("wellness-celery")

MAX_NOTIFICATION_RETRIES = 3


@celery_app.task(bind=True, name="tasks.send_proposal_notification", max_retries=MAX_NOTIFICATION_RETRIES)
def send_proposal_notification(self, message: dict, webhook_url: str = ""):
    """Deliver one notification message. Returns the delivery status."""
    url = webhook_url or config.NOTIFICATION_WEBHOOK_URL
    proposal_id = message.get("proposal_id")
    if not url:
        logger.info("No notification webhook configured; dropping message", extra={"proposal_id": proposal_id})
        return {"status": "skipped", "proposal_id": proposal_id}

    try:
        with httpx.Client(timeout=10) as client:
            resp = client.post(url, json=message)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(
            f"Notification delivery failed (attempt {self.request.retries + 1}): {e}",
            extra={"proposal_id": proposal_id},
        )
        raise self.retry(exc=e, countdown=2 ** self.request.retries * 10)

    logger.info("Notification delivered", extra={"proposal_id": proposal_id})
    return {"status": "delivered", "proposal_id": proposal_id, "http_status": resp.status_code}
