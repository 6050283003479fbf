"""Tests for the pick engine."""

from datetime import UTC, date, datetime, timedelta

import pytest

from kanban_md.models import BoardConfig, Task
from kanban_md.services import PickOptions, PickService

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_task(task_id: int, **fields) -> Task:
    fields.setdefault("title", f"Task {task_id}")
    fields.setdefault("status", "todo")
    fields.setdefault("priority", "medium")
    fields.setdefault("created", NOW)
    fields.setdefault("updated", NOW)
    return Task(id=task_id, **fields)


@pytest.fixture
def service() -> PickService:
    return PickService(BoardConfig.default("test"))


class TestPickService:
    """Tests for PickService.pick."""

    def test_empty_board(self, service: PickService):
        assert service.pick([], now=NOW) is None

    def test_class_beats_priority(self, service: PickService):
        """An expedite task is picked over a more urgent standard one."""
        tasks = [
            make_task(1, priority="low", class_="expedite"),
            make_task(2, priority="critical"),
            make_task(3, priority="high", blocked=True, block_reason="waiting"),
        ]
        assert service.pick(tasks, now=NOW).id == 1

    def test_priority_within_class(self, service: PickService):
        tasks = [make_task(1, priority="low"), make_task(2, priority="high")]
        assert service.pick(tasks, now=NOW).id == 2

    def test_blocked_skipped(self, service: PickService):
        tasks = [make_task(1, blocked=True, block_reason="x")]
        assert service.pick(tasks, now=NOW) is None

    def test_unmet_dependencies_skipped(self, service: PickService):
        """A task waits until its dependencies are done."""
        tasks = [
            make_task(1, priority="critical", depends_on=[10]),
            make_task(2, priority="high"),
            make_task(10, status="in-progress", claimed_by="other", claimed_at=NOW),
        ]
        assert service.pick(tasks, now=NOW).id == 2

        tasks[2].status = "done"
        assert service.pick(tasks, now=NOW).id == 1

    def test_expired_claim_is_pickable(self, service: PickService):
        tasks = [make_task(1, claimed_by="agent-a", claimed_at=NOW - timedelta(hours=2))]

        options = PickOptions(claim_timeout=timedelta(hours=1))
        assert service.pick(tasks, options, NOW).id == 1

        assert service.pick(tasks, PickOptions(), NOW) is None

    def test_default_statuses_are_active(self, service: PickService):
        tasks = [make_task(1, status="backlog"), make_task(2, status="done")]
        assert service.pick(tasks, now=NOW) is None
        assert service.pick(tasks, PickOptions(statuses=["backlog"]), NOW).id == 1

    def test_tags_any_of(self, service: PickService):
        tasks = [make_task(1, priority="high", tags=["ui"]), make_task(2, tags=["api", "db"])]
        assert service.pick(tasks, PickOptions(tags=["db", "x"]), NOW).id == 2

    def test_fixed_date_orders_by_due(self, service: PickService):
        """Within fixed-date, earlier due dates win and missing dates go last."""
        tasks = [
            make_task(1, class_="fixed-date", priority="critical"),
            make_task(2, class_="fixed-date", due=date(2025, 7, 1)),
            make_task(3, class_="fixed-date", due=date(2025, 6, 15), priority="low"),
        ]
        assert service.pick(tasks, now=NOW).id == 3

    def test_unknown_class_ranks_as_standard(self, service: PickService):
        tasks = [make_task(1, class_="mystery", priority="high"), make_task(2, class_="intangible", priority="critical")]
        assert service.pick(tasks, now=NOW).id == 1
