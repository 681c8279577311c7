# =============================================================================
# Notify Module
# =============================================================================
# Best-effort notification emails for task and project events:
#   - Task created / assigned / unassigned
#   - Project member added / removed
#
# Failures are logged and reported as a DeliveryStatus, never raised.
# =============================================================================

from relaymail.notify.models import (
    MemberAction,
    NotificationPayloadError,
    ProjectMemberNotification,
    TaskAction,
    TaskNotification,
)
from relaymail.notify.sender import DeliveryStatus, NotificationSender
from relaymail.notify.templates import RenderedEmail, render_member, render_task

__all__ = [
    # Models
    "TaskNotification",
    "TaskAction",
    "ProjectMemberNotification",
    "MemberAction",
    "NotificationPayloadError",
    # Rendering
    "RenderedEmail",
    "render_task",
    "render_member",
    # Sending
    "NotificationSender",
    "DeliveryStatus",
]
