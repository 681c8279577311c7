# =============================================================================
# Notification Sender
# =============================================================================
# Turns application events into emails and hands them to the mailer.
#
# Email here is a best-effort side channel: a failed send must never break
# the workflow that triggered it. Every SMTP failure is logged and reported
# as a DeliveryStatus instead of being raised.
#
#   SENT     the relay accepted the message
#   SKIPPED  SMTP isn't configured, or the payload had nothing to send
#   FAILED   the send was attempted and failed
# =============================================================================

import logging
from enum import Enum
from typing import Any

from relaymail.notify.models import (
    NotificationPayloadError,
    ProjectMemberNotification,
    TaskNotification,
)
from relaymail.notify.templates import APP_NAME, RenderedEmail, render_member, render_task
from relaymail.smtp import SMTPConfigurationError, SMTPError, SMTPMailer

logger = logging.getLogger(__name__)


class DeliveryStatus(Enum):
    """Outcome of one notification."""
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class NotificationSender:
    """
    Sends notification emails without ever raising SMTP errors.

    Usage:
        >>> sender = NotificationSender(SMTPMailer(config))
        >>> status = await sender.notify_payload("task", payload)
        >>> if status is DeliveryStatus.FAILED:
        ...     ...  # logged already; carry on

    Attributes:
        mailer: The mailer used for every send.
        app_name: Product name shown in the emails.
    """

    # Payload kinds accepted by notify_payload()
    KINDS = ("task", "member")

    def __init__(self, mailer: SMTPMailer, app_name: str = APP_NAME) -> None:
        self.mailer = mailer
        self.app_name = app_name

    async def deliver(self, to: str, email: RenderedEmail) -> DeliveryStatus:
        """
        Send a rendered email, converting failures into a status.

        Args:
            to: Recipient address.
            email: Subject and body to send.

        Returns:
            SENT, SKIPPED (no SMTP config) or FAILED.
        """
        try:
            await self.mailer.send(to, email.subject, email.html_body)
        except SMTPConfigurationError as e:
            logger.info(f"Skipping email to {to}: {e}")
            return DeliveryStatus.SKIPPED
        except SMTPError as e:
            logger.warning(f"Notification email to {to} failed: {e}")
            if e.details:
                logger.debug(f"Failure details: {e.details}")
            return DeliveryStatus.FAILED

        return DeliveryStatus.SENT

    async def notify_task(self, notification: TaskNotification) -> DeliveryStatus:
        """Send the email for a task creation, assignment or unassignment."""
        logger.info(
            f"Sending task {notification.action.value} notification "
            f"for task {notification.task_id} to {notification.assignee_email}"
        )
        email = render_task(notification, self.app_name)
        return await self.deliver(notification.assignee_email, email)

    async def notify_member(self, notification: ProjectMemberNotification) -> DeliveryStatus:
        """Send the email for a project membership change."""
        logger.info(
            f"Sending project member {notification.action.value} notification "
            f"for {notification.project_name!r} to {notification.member_email}"
        )
        email = render_member(notification, self.app_name)
        return await self.deliver(notification.member_email, email)

    async def notify_payload(self, kind: str, payload: dict[str, Any]) -> DeliveryStatus:
        """
        Validate a raw JSON payload and send the matching notification.

        Invalid payloads are skipped rather than failed: there's nothing to
        send, and the caller's workflow should carry on.

        Args:
            kind: "task" or "member".
            payload: Decoded JSON object with camelCase keys.

        Raises:
            ValueError: If kind is not one of KINDS.
        """
        if kind not in self.KINDS:
            raise ValueError(f"Unknown notification kind: {kind!r}")

        try:
            if kind == "task":
                return await self.notify_task(TaskNotification.from_payload(payload))
            return await self.notify_member(ProjectMemberNotification.from_payload(payload))
        except NotificationPayloadError as e:
            logger.info(f"Skipping {kind} notification: {e}")
            return DeliveryStatus.SKIPPED
