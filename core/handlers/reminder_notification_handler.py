"""
Handler for ReminderIssued events.

Hands the reminder to the notification collaborator when automatic sending
is enabled. With automatic sending off the reminder stays recorded and waits
for someone to dispatch it by hand.
"""

import logging
from typing import Callable, Protocol
from uuid import UUID

from core.config import DunningConfig
from core.documents import DocumentPayload
from core.events import ReminderIssued
from core.models import ReminderNotice

logger = logging.getLogger(__name__)


class ReminderNotifier(Protocol):
    def send_reminder(self, to: str, notice: ReminderNotice, document: DocumentPayload) -> None:
        ...


def handle_reminder_issued(
    notifier: ReminderNotifier,
    config: DunningConfig,
    recipient_lookup: Callable[[UUID | None], str | None],
) -> Callable:
    """
    Factory that returns a ReminderIssued handler.

    Args:
        notifier: Delivers rendered reminders (e.g. EmailGatewayClient)
        config: Dunning config; automatic_sending gates delivery
        recipient_lookup: Maps a customer ID to an email address, None if unknown

    Returns:
        Handler callable that dispatches the reminder
    """

    def handler(event: ReminderIssued):
        notice = event.notice

        if not config.automatic_sending:
            logger.info(
                "Reminder %s for invoice %s awaiting manual dispatch",
                notice.level.name, notice.invoice_number,
            )
            return

        recipient = recipient_lookup(notice.customer_id)
        if recipient is None:
            logger.warning(
                "No recipient for invoice %s (customer %s), reminder not sent",
                notice.invoice_number, notice.customer_id,
            )
            return

        notifier.send_reminder(recipient, notice, event.document)

    return handler
