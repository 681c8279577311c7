# =============================================================================
# Notification Models
# =============================================================================
# The events that trigger an email, as received from the web application.
#
# Payloads arrive as JSON with camelCase keys:
#   - Task events: taskId, taskTitle, assigneeEmail, assigneeName,
#     projectName, dueDate, priority, action
#   - Project membership events: memberEmail, memberName, projectName, action
# =============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TaskAction(Enum):
    """What happened to the task assignment."""
    CREATED = "created"         # New task created with this assignee
    ASSIGNED = "assigned"       # Existing task assigned
    UNASSIGNED = "unassigned"   # Assignee removed from task


class MemberAction(Enum):
    """What happened to the project membership."""
    ADDED = "added"
    REMOVED = "removed"


def _require(payload: dict[str, Any], *keys: str) -> None:
    missing = [key for key in keys if not str(payload.get(key) or "").strip()]
    if missing:
        raise NotificationPayloadError(f"Missing required fields: {', '.join(missing)}")


def _parse_action(enum_cls, value: Any):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        raise NotificationPayloadError(f"Unknown action: {value!r}") from e


@dataclass(frozen=True)
class TaskNotification:
    """
    A task was created for, assigned to, or taken away from someone.

    Attributes:
        task_id: Identifier of the task in the application.
        task_title: Title shown in the email.
        assignee_email: Who gets the email.
        assignee_name: Used in the greeting.
        project_name: Project the task belongs to.
        priority: Priority label (e.g., "high").
        due_date: Optional due date, ISO 8601 if possible.
        action: What happened.
    """
    task_id: str
    task_title: str
    assignee_email: str
    assignee_name: str = ""
    project_name: str = ""
    priority: str = ""
    due_date: str | None = None
    action: TaskAction = TaskAction.CREATED

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TaskNotification":
        """
        Build from a camelCase JSON payload.

        Payloads without an action describe a newly created task.

        Raises:
            NotificationPayloadError: If taskId or assigneeEmail is missing,
                                      or the action is unknown.
        """
        if not isinstance(payload, dict):
            raise NotificationPayloadError("Payload must be a JSON object")
        _require(payload, "taskId", "assigneeEmail")

        action = TaskAction.CREATED
        if payload.get("action"):
            action = _parse_action(TaskAction, payload["action"])

        return cls(
            task_id=str(payload["taskId"]),
            task_title=str(payload.get("taskTitle") or ""),
            assignee_email=str(payload["assigneeEmail"]).strip(),
            assignee_name=str(payload.get("assigneeName") or ""),
            project_name=str(payload.get("projectName") or ""),
            priority=str(payload.get("priority") or ""),
            due_date=str(payload["dueDate"]) if payload.get("dueDate") else None,
            action=action,
        )


@dataclass(frozen=True)
class ProjectMemberNotification:
    """
    Someone was added to or removed from a project team.

    Attributes:
        member_email: Who gets the email.
        member_name: Used in the greeting.
        project_name: The project in question.
        action: What happened.
    """
    member_email: str
    project_name: str = ""
    member_name: str = ""
    action: MemberAction = MemberAction.ADDED

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ProjectMemberNotification":
        """
        Build from a camelCase JSON payload.

        Raises:
            NotificationPayloadError: If memberEmail or action is missing
                                      or the action is unknown.
        """
        if not isinstance(payload, dict):
            raise NotificationPayloadError("Payload must be a JSON object")
        _require(payload, "memberEmail", "action")

        return cls(
            member_email=str(payload["memberEmail"]).strip(),
            project_name=str(payload.get("projectName") or ""),
            member_name=str(payload.get("memberName") or ""),
            action=_parse_action(MemberAction, payload["action"]),
        )


class NotificationPayloadError(ValueError):
    """Raised when a notification payload is missing data or malformed."""
    pass
