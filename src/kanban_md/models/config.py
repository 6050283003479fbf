"""Configuration models for config.yml."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.datetime import parse_duration

ARCHIVED_STATUS = "archived"
CURRENT_VERSION = 2

DEFAULT_DIR = ".kanban"
CONFIG_FILE = "config.yml"
DEFAULT_TASKS_DIR = "tasks"

DEFAULT_STATUSES = ["backlog", "todo", "in-progress", "review", "done"]
DEFAULT_PRIORITIES = ["low", "medium", "high", "critical"]
DEFAULT_CLASS = "standard"
DEFAULT_CLAIM_TIMEOUT = "1h"
DEFAULT_TITLE_LINES = 2


def _check_unique(values: list[str], name: str) -> list[str]:
    """Validate a list has no empty or duplicate entries."""
    for value in values:
        if not value:
            raise ValueError(f"{name} cannot contain empty names")
    if len(values) != len(set(values)):
        raise ValueError(f"{name} must be unique")
    return values


class BoardInfo(BaseModel):
    """Board identity."""

    name: str = Field(..., min_length=1)
    description: str = ""


class ClassConfig(BaseModel):
    """A class of service.

    Classes are ordered by position in the config list (first = picked first).
    """

    name: str = Field(..., min_length=1)
    wip_limit: int = Field(default=0, ge=0, description="Max tasks of this class in flight (0 = none)")
    bypass_column_wip: bool = False
    require_claim_for: list[str] = Field(default_factory=list)


def default_classes() -> list[ClassConfig]:
    return [
        ClassConfig(name="expedite", wip_limit=1, bypass_column_wip=True),
        ClassConfig(name="fixed-date"),
        ClassConfig(name=DEFAULT_CLASS),
        ClassConfig(name="intangible"),
    ]


class DefaultsConfig(BaseModel):
    """Default values for new tasks."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "backlog"
    priority: str = "medium"
    class_: str = Field(default=DEFAULT_CLASS, alias="class")


class AgeThreshold(BaseModel):
    """Color a card's age label once the age reaches `after`."""

    after: str
    color: str

    @field_validator("after")
    @classmethod
    def validate_after(cls, v: str) -> str:
        """Validate the threshold is a parseable duration."""
        parse_duration(v)
        return v

    @property
    def after_delta(self) -> timedelta:
        return parse_duration(self.after)


def default_age_thresholds() -> list[AgeThreshold]:
    return [
        AgeThreshold(after="24h", color="yellow"),
        AgeThreshold(after="72h", color="red"),
    ]


class TUIConfig(BaseModel):
    """Display options for the interactive board."""

    title_lines: int = Field(default=DEFAULT_TITLE_LINES, ge=1, le=10)
    hide_empty_columns: bool = False
    age_thresholds: list[AgeThreshold] = Field(default_factory=default_age_thresholds)
    show_duration: list[str] | None = Field(
        default=None,
        description="Statuses whose cards show an age label (default: active statuses)",
    )


class BoardConfig(BaseModel):
    """Board configuration: statuses, priorities, classes, limits and defaults."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = CURRENT_VERSION
    board: BoardInfo
    tasks_dir: str = Field(default=DEFAULT_TASKS_DIR, min_length=1)
    statuses: list[str] = Field(default_factory=lambda: list(DEFAULT_STATUSES), min_length=2)
    priorities: list[str] = Field(default_factory=lambda: list(DEFAULT_PRIORITIES), min_length=1)
    classes: list[ClassConfig] = Field(default_factory=default_classes)
    wip_limits: dict[str, int] = Field(default_factory=dict)
    claim_timeout: str = DEFAULT_CLAIM_TIMEOUT
    require_claim_for: list[str] | None = None
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    next_id: int = Field(default=1, ge=1)
    tui: TUIConfig = Field(default_factory=TUIConfig)

    @model_validator(mode="before")
    @classmethod
    def migrate(cls, data: Any) -> Any:
        """Bring older config layouts up to the current version."""
        if not isinstance(data, dict):
            return data
        version = data.get("version") or 1
        if version > CURRENT_VERSION:
            raise ValueError(
                f"config version {version} is newer than supported ({CURRENT_VERSION})"
            )
        data = dict(data)
        data["version"] = CURRENT_VERSION
        return data

    @field_validator("statuses", mode="before")
    @classmethod
    def drop_reserved_status(cls, v: Any) -> Any:
        """'archived' is implicit; drop it if a file lists it explicitly."""
        if isinstance(v, list):
            return [s for s in v if s != ARCHIVED_STATUS]
        return v

    @field_validator("statuses")
    @classmethod
    def validate_statuses(cls, v: list[str]) -> list[str]:
        """Validate status names."""
        return _check_unique(v, "statuses")

    @field_validator("priorities")
    @classmethod
    def validate_priorities(cls, v: list[str]) -> list[str]:
        """Validate priority names."""
        return _check_unique(v, "priorities")

    @field_validator("classes")
    @classmethod
    def validate_classes(cls, v: list[ClassConfig]) -> list[ClassConfig]:
        """Validate class names are unique."""
        _check_unique([c.name for c in v], "class names")
        return v

    @field_validator("claim_timeout")
    @classmethod
    def validate_claim_timeout(cls, v: str) -> str:
        """Validate claim_timeout is empty or a parseable duration."""
        if v:
            parse_duration(v)
        return v

    @model_validator(mode="after")
    def validate_references(self) -> BoardConfig:
        """Validate cross-field references to statuses, priorities and classes."""
        if self.defaults.status not in self.statuses:
            raise ValueError(f"default status {self.defaults.status!r} not in statuses list")
        if self.defaults.priority not in self.priorities:
            raise ValueError(
                f"default priority {self.defaults.priority!r} not in priorities list"
            )
        if self.classes and self.defaults.class_ and self.defaults.class_ not in self.class_names:
            raise ValueError(f"default class {self.defaults.class_!r} not in classes list")
        for status, limit in self.wip_limits.items():
            if status not in self.statuses:
                raise ValueError(f"wip_limits references unknown status {status!r}")
            if limit < 0:
                raise ValueError(f"wip_limits for {status!r} must be >= 0")
        for status in self.require_claim_for or []:
            if status not in self.statuses:
                raise ValueError(f"require_claim_for references unknown status {status!r}")
        for cls_cfg in self.classes:
            for status in cls_cfg.require_claim_for:
                if status not in self.statuses:
                    raise ValueError(
                        f"class {cls_cfg.name!r} require_claim_for references unknown "
                        f"status {status!r}"
                    )
        return self

    # --- Status queries ---

    @property
    def first_status(self) -> str:
        return self.statuses[0]

    @property
    def terminal_status(self) -> str:
        return self.statuses[-1]

    @property
    def all_statuses(self) -> list[str]:
        """Configured statuses plus the reserved archived status."""
        return [*self.statuses, ARCHIVED_STATUS]

    def status_index(self, status: str) -> int:
        """Position of status in the configured list, or -1."""
        try:
            return self.statuses.index(status)
        except ValueError:
            return -1

    def is_valid_status(self, status: str) -> bool:
        return status in self.statuses or status == ARCHIVED_STATUS

    def is_terminal_status(self, status: str) -> bool:
        return status == self.terminal_status

    def is_archived_status(self, status: str) -> bool:
        return status == ARCHIVED_STATUS

    def active_statuses(self) -> list[str]:
        """Statuses that are neither the first nor the terminal one."""
        return self.statuses[1:-1]

    def wip_limit(self, status: str) -> int:
        """WIP limit for status, 0 when unlimited."""
        return self.wip_limits.get(status, 0)

    # --- Priority queries ---

    def priority_index(self, priority: str) -> int:
        """Position of priority (higher index = more urgent), or -1."""
        try:
            return self.priorities.index(priority)
        except ValueError:
            return -1

    # --- Class queries ---

    @property
    def class_names(self) -> list[str]:
        return [c.name for c in self.classes]

    def class_index(self, class_name: str) -> int:
        """Position of class in the configured list, or -1."""
        for i, cls_cfg in enumerate(self.classes):
            if cls_cfg.name == class_name:
                return i
        return -1

    def class_by_name(self, class_name: str) -> ClassConfig | None:
        for cls_cfg in self.classes:
            if cls_cfg.name == class_name:
                return cls_cfg
        return None

    def resolve_class(self, class_name: str) -> str:
        """Map an empty class to the default class."""
        return class_name or self.defaults.class_ or DEFAULT_CLASS

    # --- Claims ---

    def claim_timeout_delta(self) -> timedelta | None:
        """Claim timeout as a timedelta, None when claims never expire."""
        if not self.claim_timeout:
            return None
        delta = parse_duration(self.claim_timeout)
        return delta if delta > timedelta(0) else None

    def claim_required_statuses(self, class_name: str = "") -> set[str]:
        """Statuses that need an active claim to enter, for a task of the given class."""
        if self.require_claim_for is None:
            required = set(self.active_statuses())
        else:
            required = set(self.require_claim_for)
        cls_cfg = self.class_by_name(self.resolve_class(class_name))
        if cls_cfg is not None:
            required.update(cls_cfg.require_claim_for)
        required.discard(ARCHIVED_STATUS)
        return required

    def status_requires_claim(self, status: str, class_name: str = "") -> bool:
        return status in self.claim_required_statuses(class_name)

    # --- Display ---

    def shows_duration(self, status: str) -> bool:
        """Whether cards in this status display an age label."""
        if self.tui.show_duration is None:
            return status in self.active_statuses()
        return status in self.tui.show_duration

    def to_yaml_dict(self) -> dict[str, Any]:
        """Dump for config.yml (aliases, declaration order)."""
        data = self.model_dump(by_alias=True)
        if self.require_claim_for is None:
            data.pop("require_claim_for")
        if self.tui.show_duration is None:
            data["tui"].pop("show_duration")
        return data

    @classmethod
    def default(cls, name: str) -> BoardConfig:
        """Return the default configuration for a new board."""
        return cls(board=BoardInfo(name=name))
