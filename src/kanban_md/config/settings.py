"""Process settings read from the environment."""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings.

    Command-line flags override every value here.
    """

    dir: Path | None = Field(
        default=None,
        description="Board directory (skips discovery from the working directory)",
    )

    output: Literal["json", "table", "compact"] | None = Field(
        default=None,
        description="Output format when no format flag is given",
    )

    no_color: bool = Field(
        default_factory=lambda: "NO_COLOR" in os.environ,
        description="Disable colored output",
    )

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    model_config = {
        "env_prefix": "KANBAN_",
    }
