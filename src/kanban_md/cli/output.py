"""Colorful CLI message helpers."""

import os
import sys
from typing import TextIO

# ANSI color codes
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
RESET = "\033[0m"
CHECK = "\u2713"  # ✓
BULLET = "\u2022"  # •
CROSS = "\u2717"  # ✗

_color_disabled = False


def set_color(enabled: bool) -> None:
    """Enable or disable color for the rest of the process."""
    global _color_disabled
    _color_disabled = not enabled


def color_enabled(stream: TextIO | None = None) -> bool:
    """Check if color output should be used for stream."""
    stream = stream or sys.stdout
    if _color_disabled or "NO_COLOR" in os.environ:
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def _colorize(text: str, color: str, stream: TextIO | None = None) -> str:
    """Apply color to text if the stream supports it."""
    if color_enabled(stream):
        return f"{color}{text}{RESET}"
    return text


def message(text: str) -> None:
    """Print a plain confirmation line."""
    print(text)


def success(text: str) -> None:
    """Print success message with green checkmark."""
    print(f"{_colorize(CHECK, GREEN)} {text}")


def info(text: str) -> None:
    """Print info message with yellow bullet."""
    print(f"{_colorize(BULLET, YELLOW)} {text}")


def header(text: str) -> None:
    """Print header message in blue."""
    print(_colorize(text, BLUE))


def warning(text: str) -> None:
    """Print a warning line to stderr."""
    print(_colorize(f"Warning: {text}", YELLOW, sys.stderr), file=sys.stderr)


def error(text: str) -> None:
    """Print error message with red cross to stderr."""
    print(f"{_colorize(CROSS, RED, sys.stderr)} {text}", file=sys.stderr)
