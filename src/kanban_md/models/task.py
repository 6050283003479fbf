"""Task domain model."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..utils.datetime import from_iso, parse_date

REQUIRED_FIELDS = ("id", "title", "status", "priority", "created", "updated")


class Task(BaseModel):
    """Represents a single task file: YAML preamble plus markdown body."""

    model_config = ConfigDict(populate_by_name=True)

    # Task identification
    id: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)

    # Workflow
    status: str
    priority: str
    class_: str = Field(default="", alias="class")  # empty means the standard class
    assignee: str = ""
    tags: list[str] = Field(default_factory=list)
    due: date | None = None
    estimate: str = ""

    # Relations (by id, never by reference)
    parent: int | None = None
    depends_on: list[int] = Field(default_factory=list)

    blocked: bool = False
    block_reason: str = ""

    # Claim pair: both set or both empty
    claimed_by: str = ""
    claimed_at: datetime | None = None

    created: datetime
    updated: datetime
    started: datetime | None = None
    completed: datetime | None = None

    # Opaque, round-tripped only
    branch: str = ""
    worktree: str = ""

    # Content
    body: str = ""

    # Transient: path the task was read from
    file: Path | None = Field(default=None, exclude=True)

    @property
    def is_claimed(self) -> bool:
        """Whether claimed_by is set (regardless of expiry)."""
        return bool(self.claimed_by)

    def claim_expired(self, timeout: timedelta | None, now: datetime) -> bool:
        """Whether an existing claim is older than the timeout."""
        if not self.claimed_by or timeout is None or timeout <= timedelta(0):
            return False
        if self.claimed_at is None:
            return True
        return now - self.claimed_at > timeout

    def is_unclaimed(self, timeout: timedelta | None, now: datetime) -> bool:
        """Unclaimed, or claimed with a claim older than the timeout."""
        return not self.claimed_by or self.claim_expired(timeout, now)

    def claim_remaining(self, timeout: timedelta | None, now: datetime) -> timedelta | None:
        """Time left on the claim, or None when it never expires."""
        if timeout is None or timeout <= timedelta(0) or self.claimed_at is None:
            return None
        return max(timedelta(0), self.claimed_at + timeout - now)

    def claim(self, agent: str, now: datetime) -> None:
        """Set the claim pair."""
        self.claimed_by = agent
        self.claimed_at = now

    def release(self) -> None:
        """Clear the claim pair."""
        self.claimed_by = ""
        self.claimed_at = None

    def to_frontmatter(self) -> dict[str, Any]:
        """Convert to dict suitable for YAML front matter.

        Keys come out in canonical order; empty optional fields are omitted.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "priority": self.priority,
        }
        if self.class_:
            data["class"] = self.class_
        if self.assignee:
            data["assignee"] = self.assignee
        if self.tags:
            data["tags"] = list(self.tags)
        if self.due is not None:
            data["due"] = self.due
        data["created"] = self.created
        data["updated"] = self.updated
        if self.started is not None:
            data["started"] = self.started
        if self.completed is not None:
            data["completed"] = self.completed
        if self.parent is not None:
            data["parent"] = self.parent
        if self.depends_on:
            data["depends_on"] = list(self.depends_on)
        if self.blocked:
            data["blocked"] = True
        if self.block_reason:
            data["block_reason"] = self.block_reason
        if self.claimed_by:
            data["claimed_by"] = self.claimed_by
        if self.claimed_at is not None:
            data["claimed_at"] = self.claimed_at
        if self.estimate:
            data["estimate"] = self.estimate
        if self.branch:
            data["branch"] = self.branch
        if self.worktree:
            data["worktree"] = self.worktree
        return data

    @classmethod
    def from_frontmatter(
        cls,
        metadata: dict[str, Any],
        body: str,
        file: Path | None = None,
    ) -> Task:
        """Create Task from parsed front matter.

        Unknown keys are ignored.

        Raises:
            ValueError: If a required field is missing or a value is malformed.
        """
        for key in REQUIRED_FIELDS:
            if metadata.get(key) in (None, ""):
                raise ValueError(f"missing required field {key!r}")

        return cls(
            id=int(metadata["id"]),
            title=str(metadata["title"]),
            status=str(metadata["status"]),
            priority=str(metadata["priority"]),
            class_=str(metadata.get("class") or ""),
            assignee=str(metadata.get("assignee") or ""),
            tags=[str(tag) for tag in metadata.get("tags") or []],
            due=_parse_optional_date(metadata.get("due")),
            estimate=str(metadata.get("estimate") or ""),
            parent=_parse_optional_int(metadata.get("parent")),
            depends_on=[int(dep) for dep in metadata.get("depends_on") or []],
            # pydantic coerces "false", "no", "0" and rejects anything else
            blocked=metadata.get("blocked") or False,
            block_reason=str(metadata.get("block_reason") or ""),
            claimed_by=str(metadata.get("claimed_by") or ""),
            claimed_at=_parse_optional_datetime(metadata.get("claimed_at")),
            created=from_iso(metadata["created"]),
            updated=from_iso(metadata["updated"]),
            started=_parse_optional_datetime(metadata.get("started")),
            completed=_parse_optional_datetime(metadata.get("completed")),
            branch=str(metadata.get("branch") or ""),
            worktree=str(metadata.get("worktree") or ""),
            body=body,
            file=file,
        )

    def to_json(self) -> dict[str, Any]:
        """Serialize for JSON output (dates as strings, file omitted)."""
        return self.model_dump(mode="json", by_alias=True)


def _parse_optional_datetime(value: str | datetime | None) -> datetime | None:
    """Parse datetime from string or pass through."""
    if value is None or value == "":
        return None
    return from_iso(value)


def _parse_optional_date(value: str | date | None) -> date | None:
    if value is None or value == "":
        return None
    return parse_date(value)


def _parse_optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)
