# =============================================================================
# Notification Templates
# =============================================================================
# Builds the subject and HTML body for each notification email.
#
# All values coming from the application (names, titles, project names) are
# HTML-escaped before being placed in the body. Subjects are plain text; the
# mailer folds away any line breaks.
# =============================================================================

from dataclasses import dataclass
from datetime import datetime
from html import escape

from relaymail.notify.models import (
    MemberAction,
    ProjectMemberNotification,
    TaskAction,
    TaskNotification,
)

# Product name used in sign-offs and call-to-action lines
APP_NAME = "AgencyFlow"


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and HTML body ready to hand to the mailer."""
    subject: str
    html_body: str


def format_due_date(value: str | None) -> str:
    """
    Format a due date for display.

    ISO 8601 dates (with or without a time) become YYYY-MM-DD. Anything
    unparseable is shown as given.
    """
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d")
    except (TypeError, ValueError):
        return str(value)


def _layout(heading: str, name: str, content: str, app_name: str) -> str:
    """Wrap notification content in the shared email layout."""
    greeting = escape(name) if name else "there"
    return f"""<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <h2 style="color: #0f172a;">{escape(heading)}</h2>
      <p>Hi {greeting},</p>
{content}
      <p style="margin-top: 30px;">
        Best regards,<br>
        <strong>{escape(app_name)} Team</strong>
      </p>
    </div>
  </body>
</html>
"""


def _task_card(notification: TaskNotification, with_details: bool) -> str:
    rows = [f'        <h3 style="margin-top: 0; color: #0f172a;">{escape(notification.task_title)}</h3>']
    if with_details:
        if notification.priority:
            rows.append(f"        <p><strong>Priority:</strong> {escape(notification.priority)}</p>")
        due = format_due_date(notification.due_date)
        if due:
            rows.append(f"        <p><strong>Due Date:</strong> {escape(due)}</p>")
    body = "\n".join(rows)
    return (
        '      <div style="background: #f8fafc; padding: 15px; border-radius: 8px; margin: 20px 0;">\n'
        f"{body}\n"
        "      </div>"
    )


# =============================================================================
# Task Notifications
# =============================================================================

def task_created(notification: TaskNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Email for a newly created task assigned to someone."""
    content = "\n".join([
        f"      <p>You have been assigned a new task in <strong>{escape(notification.project_name)}</strong>:</p>",
        _task_card(notification, with_details=True),
        f"      <p>Please log in to {escape(app_name)} to view the task details and start working on it.</p>",
    ])
    return RenderedEmail(
        subject=f"New Task Assigned: {notification.task_title}",
        html_body=_layout("New Task Assigned", notification.assignee_name, content, app_name),
    )


def task_assigned(notification: TaskNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Email for an existing task being assigned to someone."""
    content = "\n".join([
        f"      <p>You have been assigned to a task in <strong>{escape(notification.project_name)}</strong>:</p>",
        _task_card(notification, with_details=True),
        f"      <p>Please log in to {escape(app_name)} to view the task details and start working on it.</p>",
    ])
    return RenderedEmail(
        subject=f"Task Assigned: {notification.task_title}",
        html_body=_layout("Task Assigned to You", notification.assignee_name, content, app_name),
    )


def task_unassigned(notification: TaskNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Email for someone being taken off a task."""
    content = "\n".join([
        f"      <p>You have been unassigned from a task in <strong>{escape(notification.project_name)}</strong>:</p>",
        _task_card(notification, with_details=False),
        "      <p>You are no longer responsible for this task.</p>",
    ])
    return RenderedEmail(
        subject=f"Task Unassignment: {notification.task_title}",
        html_body=_layout("Task Unassignment", notification.assignee_name, content, app_name),
    )


# =============================================================================
# Project Membership Notifications
# =============================================================================

def member_added(notification: ProjectMemberNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Email welcoming someone to a project team."""
    project = escape(notification.project_name)
    content = "\n".join([
        f"      <p>You have been added to the project team for <strong>{project}</strong>.</p>",
        '      <div style="background: #f8fafc; padding: 15px; border-radius: 8px; margin: 20px 0;">',
        "        <p>You can now:</p>",
        "        <ul>",
        "          <li>View and manage project tasks</li>",
        "          <li>Collaborate with other team members</li>",
        "          <li>Track project progress</li>",
        "        </ul>",
        "      </div>",
        f"      <p>Please log in to {escape(app_name)} to access the project.</p>",
    ])
    return RenderedEmail(
        subject=f"Added to Project: {notification.project_name}",
        html_body=_layout("Welcome to the Project Team!", notification.member_name, content, app_name),
    )


def member_removed(notification: ProjectMemberNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Email telling someone they've left a project team."""
    project = escape(notification.project_name)
    content = "\n".join([
        f"      <p>You have been removed from the project team for <strong>{project}</strong>.</p>",
        "      <p>You will no longer have access to this project's tasks and information.</p>",
    ])
    return RenderedEmail(
        subject=f"Removed from Project: {notification.project_name}",
        html_body=_layout("Removed from Project", notification.member_name, content, app_name),
    )


def render_task(notification: TaskNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Pick the task template matching the notification's action."""
    builders = {
        TaskAction.CREATED: task_created,
        TaskAction.ASSIGNED: task_assigned,
        TaskAction.UNASSIGNED: task_unassigned,
    }
    return builders[notification.action](notification, app_name)


def render_member(notification: ProjectMemberNotification, app_name: str = APP_NAME) -> RenderedEmail:
    """Pick the membership template matching the notification's action."""
    if notification.action is MemberAction.ADDED:
        return member_added(notification, app_name)
    return member_removed(notification, app_name)
