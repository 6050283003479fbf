"""Activity log entry model."""

from datetime import datetime

from pydantic import BaseModel


class LogEntry(BaseModel):
    """One line of activity.jsonl."""

    timestamp: datetime
    action: str
    task_id: int
    detail: str = ""
