"""
notifications.py — Team notifications for proposal activity.

Messages are rendered here and delivered by the Celery task
``tasks.send_proposal_notification``.  Routes call the notifier only after a
create or edit has been stored.
"""

import logging
from typing import Any, Dict, List, Optional

from kombu.exceptions import OperationalError

from app import config
from app.models.proposal_schema import Proposal

logger = logging.getLogger("wellness-notifications")


def render_notification(
    event: str,
    proposal: Proposal,
    changes: Optional[List[Dict[str, str]]] = None,
    short_link: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the webhook payload for ``event`` ("created" or "edited")."""
    total = proposal.summary.total_event_cost
    lines = [f"Proposal {event} for {proposal.client_name}: ${total:,.2f} ({proposal.status})"]
    for change in changes or []:
        lines.append(f"• {change['description']}")
    if short_link:
        lines.append(short_link)

    return {
        "event": f"proposal.{event}",
        "proposal_id": proposal.id,
        "version": proposal.version,
        "client_name": proposal.client_name,
        "status": proposal.status,
        "total_event_cost": total,
        "changes": changes or [],
        "link": short_link,
        "text": "\n".join(lines),
    }


class ProposalNotifier:
    def __init__(self, enabled: bool = config.NOTIFICATIONS_ENABLED, task=None):
        self.enabled = enabled
        self._task = task

    @property
    def task(self):
        if self._task is None:
            from app.workers.tasks import send_proposal_notification
            self._task = send_proposal_notification
        return self._task

    def notify(
        self,
        event: str,
        proposal: Proposal,
        changes: Optional[List[Dict[str, str]]] = None,
        short_link: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Enqueue a notification; returns the message, or None when disabled."""
        if not self.enabled:
            return None
        message = render_notification(event, proposal, changes, short_link)
        try:
            self.task.delay(message)
        except OperationalError as e:
            # The proposal is already stored; a broker outage only loses the ping
            logger.warning(f"Could not enqueue notification: {e}", extra={"proposal_id": proposal.id})
            return None
        return message
