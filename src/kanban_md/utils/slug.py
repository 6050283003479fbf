"""Utilities for generating task filenames."""

import re
import unicodedata

MAX_SLUG_LENGTH = 60

_ID_PREFIX = re.compile(r"^(\d+)-")


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """
    Convert text to a filesystem-safe slug.

    Example: "Fix Login Bug!" -> "fix-login-bug"
    """
    # Normalize unicode characters
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")

    text = text.lower()

    # Replace runs of anything that isn't alphanumeric with a single hyphen
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")

    if len(text) > max_length:
        text = text[:max_length].rstrip("-")

    return text


def generate_filename(task_id: int, title: str) -> str:
    """Generate the canonical NNN-slug.md filename for a task."""
    slug = slugify(title) or "task"
    return f"{task_id:03d}-{slug}.md"


def extract_id(filename: str) -> int:
    """
    Parse the task id embedded in a filename.

    Example: "042-fix-login.md" -> 42

    Raises:
        ValueError: If the filename has no leading digits followed by '-'.
    """
    match = _ID_PREFIX.match(filename)
    if match is None:
        raise ValueError(f"filename {filename!r} does not start with a task id")
    return int(match.group(1))
