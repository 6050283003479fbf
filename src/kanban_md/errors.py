"""Classified errors shared by the CLI and the TUI."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_PRIORITY = "INVALID_PRIORITY"
    INVALID_CLASS = "INVALID_CLASS"
    INVALID_DATE = "INVALID_DATE"
    INVALID_TASK_ID = "INVALID_TASK_ID"
    INVALID_INPUT = "INVALID_INPUT"
    CLAIM_REQUIRED = "CLAIM_REQUIRED"
    TASK_CLAIMED = "TASK_CLAIMED"
    WIP_LIMIT_EXCEEDED = "WIP_LIMIT_EXCEEDED"
    CLASS_WIP_EXCEEDED = "CLASS_WIP_EXCEEDED"
    BOUNDARY_ERROR = "BOUNDARY_ERROR"
    SELF_REFERENCE = "SELF_REFERENCE"
    DEPENDENCY_NOT_FOUND = "DEPENDENCY_NOT_FOUND"
    BOARD_NOT_FOUND = "BOARD_NOT_FOUND"
    BOARD_EXISTS = "BOARD_EXISTS"
    NOTHING_TO_PICK = "NOTHING_TO_PICK"
    MALFORMED_TASK = "MALFORMED_TASK"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class KanbanError(Exception):
    """A user-facing error with a code and structured details."""

    exit_code = 1

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_envelope(self) -> dict[str, Any]:
        """Build the JSON error envelope."""
        return {"error": self.message, "code": self.code.value, "details": self.details}


class ConfigError(Exception):
    """Raised when config.yml cannot be read or fails validation."""


# --- Constructors ---


def task_not_found(task_id: int) -> KanbanError:
    return KanbanError(ErrorCode.TASK_NOT_FOUND, f"task not found: #{task_id}", {"id": task_id})


def invalid_status(status: str, allowed: list[str]) -> KanbanError:
    return KanbanError(
        ErrorCode.INVALID_STATUS,
        f"invalid status {status!r} (allowed: {', '.join(allowed)})",
        {"status": status, "allowed": allowed},
    )


def invalid_priority(priority: str, allowed: list[str]) -> KanbanError:
    return KanbanError(
        ErrorCode.INVALID_PRIORITY,
        f"invalid priority {priority!r} (allowed: {', '.join(allowed)})",
        {"priority": priority, "allowed": allowed},
    )


def invalid_class(class_name: str, allowed: list[str]) -> KanbanError:
    return KanbanError(
        ErrorCode.INVALID_CLASS,
        f"invalid class {class_name!r} (allowed: {', '.join(allowed)})",
        {"class": class_name, "allowed": allowed},
    )


def invalid_date(field: str, value: str) -> KanbanError:
    return KanbanError(
        ErrorCode.INVALID_DATE,
        f"invalid {field} date {value!r} (expected YYYY-MM-DD)",
        {"field": field, "input": value},
    )


def invalid_task_id(value: str) -> KanbanError:
    return KanbanError(
        ErrorCode.INVALID_TASK_ID,
        f"invalid task id {value!r}",
        {"input": value},
    )


def invalid_input(message: str, **details: Any) -> KanbanError:
    return KanbanError(ErrorCode.INVALID_INPUT, message, details)


def claim_required(status: str) -> KanbanError:
    return KanbanError(
        ErrorCode.CLAIM_REQUIRED,
        f"status {status!r} requires a claim (use --claim AGENT)",
        {"status": status},
    )


def task_claimed(task_id: int, claimed_by: str, remaining: str) -> KanbanError:
    message = f"task #{task_id} is claimed by {claimed_by}"
    if remaining:
        message += f" (expires in {remaining})"
    return KanbanError(
        ErrorCode.TASK_CLAIMED,
        message,
        {"id": task_id, "claimed_by": claimed_by, "remaining": remaining},
    )


def wip_limit_exceeded(status: str, limit: int, current: int) -> KanbanError:
    return KanbanError(
        ErrorCode.WIP_LIMIT_EXCEEDED,
        f'WIP limit reached for "{status}" ({current}/{limit})',
        {"status": status, "limit": limit, "current": current},
    )


def class_wip_exceeded(class_name: str, limit: int, current: int) -> KanbanError:
    return KanbanError(
        ErrorCode.CLASS_WIP_EXCEEDED,
        f'class WIP limit reached for "{class_name}" ({current}/{limit})',
        {"class": class_name, "limit": limit, "current": current},
    )


def boundary_error(task_id: int, status: str, direction: str) -> KanbanError:
    edge = "last" if direction == "next" else "first"
    return KanbanError(
        ErrorCode.BOUNDARY_ERROR,
        f"task #{task_id} is already at the {edge} status ({status})",
        {"id": task_id, "status": status, "direction": direction},
    )


def self_reference(task_id: int) -> KanbanError:
    return KanbanError(
        ErrorCode.SELF_REFERENCE,
        f"task #{task_id} cannot reference itself",
        {"id": task_id},
    )


def dependency_not_found(task_id: int) -> KanbanError:
    return KanbanError(
        ErrorCode.DEPENDENCY_NOT_FOUND,
        f"referenced task not found: #{task_id}",
        {"id": task_id},
    )


def board_not_found(start_dir: str) -> KanbanError:
    return KanbanError(
        ErrorCode.BOARD_NOT_FOUND,
        "no kanban board found (run 'kanban-md init' to create one)",
        {"dir": start_dir},
    )


def nothing_to_pick() -> KanbanError:
    return KanbanError(ErrorCode.NOTHING_TO_PICK, "no unblocked, unclaimed tasks found")


def malformed_task(file: str, reason: str) -> KanbanError:
    return KanbanError(
        ErrorCode.MALFORMED_TASK,
        f"malformed task file {file}: {reason}",
        {"file": file, "reason": reason},
    )
