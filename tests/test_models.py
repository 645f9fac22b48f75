"""
Tests for entity records and timestamp helpers.
"""

import pytest
from datetime import datetime, timedelta, timezone

from stratforecast.models import (
    Complexity, Initiative, Milestone, MilestoneStatus, Operation,
    OperationStatus, Priority
)
from stratforecast.utils import (
    ceil_days, format_timestamp, parse_timestamp, round_half_up
)


OPERATION_RECORD = {
    "id": "op-7",
    "title": "Launch partner portal",
    "owner": "alice",
    "status": "In Progress",
    "priority": "High",
    "complexity": "Low",
    "progress": 35,
    "dueDate": "2026-11-30T00:00:00Z",
    "createdAt": "2026-09-01T00:00:00Z",
    "initiativeIds": ["init-1"],
    "dependencies": ["SSO"],
    "statusHistory": [
        {"status": "Not Started", "timestamp": "2026-09-01T00:00:00Z", "duration": 3},
        {"status": "In Progress", "timestamp": "2026-09-04T00:00:00Z"},
    ],
    "progressHistory": [
        {"progress": 10, "timestamp": "2026-09-10T00:00:00Z"},
        {"progress": 35, "timestamp": "2026-10-01T00:00:00Z", "note": "API done"},
    ],
}


class TestEnums:

    @pytest.mark.parametrize("text", ["On Hold", "on hold", "on_hold", "OnHold", "ON-HOLD"])
    def test_lenient_status_parsing(self, text):
        assert OperationStatus.parse(text) is OperationStatus.ON_HOLD

    def test_milestone_status_values(self):
        assert MilestoneStatus.parse("in-progress") is MilestoneStatus.IN_PROGRESS
        assert MilestoneStatus.parse("not_started") is MilestoneStatus.NOT_STARTED

    def test_unknown_values(self):
        assert Priority.parse("Urgent") is None
        assert Complexity.parse(None) is None

    def test_member_passthrough(self):
        assert Priority.parse(Priority.LOW) is Priority.LOW


class TestOperation:
    """Test the Operation record."""

    def test_from_dict(self):
        op = Operation.from_dict(OPERATION_RECORD)

        assert op.id == "op-7"
        assert op.status is OperationStatus.IN_PROGRESS
        assert op.priority is Priority.HIGH
        assert op.complexity is Complexity.LOW
        assert op.due_date == datetime(2026, 11, 30, tzinfo=timezone.utc)
        assert op.initiative_ids == ["init-1"]
        assert op.status_history[0].duration == 3
        assert op.status_history[1].status is OperationStatus.IN_PROGRESS
        assert op.progress_history[1].note == "API done"

    def test_snake_case_keys(self):
        op = Operation.from_dict({
            "id": 12,
            "title": "Audit",
            "owner": "bob",
            "status": "Blocked",
            "priority": "Low",
            "due_date": "2026-12-01T00:00:00",
            "created_at": "2026-10-01T00:00:00+02:00",
        })

        assert op.id == "12"
        assert op.due_date.tzinfo is not None
        assert op.created_at == datetime(2026, 9, 30, 22, tzinfo=timezone.utc)

    def test_missing_created_at_rejected(self):
        record = {k: v for k, v in OPERATION_RECORD.items() if k != "createdAt"}

        with pytest.raises(ValueError, match="Operation op-7 is missing createdAt"):
            Operation.from_dict(record)

    @pytest.mark.parametrize("history_key", ["statusHistory", "progressHistory"])
    def test_history_entry_without_timestamp_rejected(self, history_key):
        record = dict(OPERATION_RECORD)
        record[history_key] = [{"status": "In Progress", "progress": 10}]

        with pytest.raises(ValueError, match="missing timestamp"):
            Operation.from_dict(record)

    def test_updated_at_defaults_to_created_at(self):
        op = Operation.from_dict(OPERATION_RECORD)
        assert op.updated_at == op.created_at

    @pytest.mark.parametrize("raw,expected", [
        (150, 100), (-5, 0), ("45.6", 46), (None, 0), ("n/a", 0),
    ])
    def test_progress_clamped(self, raw, expected):
        assert Operation.clamp_progress(raw) == expected

    def test_effective_complexity(self):
        op = Operation.from_dict(dict(OPERATION_RECORD, complexity="Gigantic"))
        assert op.complexity is None
        assert op.effective_complexity is Complexity.MEDIUM

    def test_to_dict(self):
        data = Operation.from_dict(OPERATION_RECORD).to_dict()

        assert data["dueDate"] == "2026-11-30T00:00:00.000Z"
        assert data["status"] == "In Progress"
        assert data["statusHistory"][0] == {
            "status": "Not Started",
            "timestamp": "2026-09-01T00:00:00.000Z",
            "duration": 3,
        }
        assert "completedDate" not in data
        assert "prediction" not in data


class TestMilestoneAndInitiative:

    def test_milestone_from_dict(self):
        milestone = Milestone.from_dict({
            "id": "m1",
            "title": "Beta",
            "dueDate": "2026-11-01T00:00:00Z",
            "createdAt": "2026-09-01T00:00:00Z",
            "status": "completed",
            "progress": 100,
            "assigneeId": "",
            "completedAt": "2026-10-28T00:00:00Z",
        })

        assert milestone.is_completed
        assert milestone.assignee_id is None
        assert "assigneeId" not in milestone.to_dict()

    def test_initiative_from_dict(self):
        initiative = Initiative.from_dict({
            "id": "init-1",
            "title": "Partners",
            "milestones": [
                {"id": "m1", "title": "Beta", "dueDate": "2026-11-01T00:00:00Z",
                 "createdAt": "2026-09-01T00:00:00Z", "status": "in-progress", "progress": 30},
            ],
        })

        assert len(initiative.milestones) == 1
        assert initiative.milestones[0].status is MilestoneStatus.IN_PROGRESS
        assert initiative.to_dict()["milestones"][0]["progress"] == 30


class TestTimestampHelpers:

    def test_parse_timestamp(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None
        assert parse_timestamp("2026-10-19T12:00:00Z") == datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        assert parse_timestamp(datetime(2026, 10, 19)).tzinfo == timezone.utc

    def test_parse_invalid_timestamp(self):
        with pytest.raises(ValueError):
            parse_timestamp("next tuesday")

    def test_format_timestamp(self):
        value = datetime(2026, 10, 19, 12, 30, 15, 250000, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2026-10-19T12:30:15.250Z"
        assert format_timestamp(None) is None

    def test_ceil_days(self):
        start = datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert ceil_days(start, start + timedelta(hours=1)) == 1
        assert ceil_days(start, start + timedelta(days=2)) == 2
        assert ceil_days(start + timedelta(days=2, hours=12), start) == -2

    @pytest.mark.parametrize("value,expected", [
        (2.5, 3), (2.4, 2), (-2.5, -2), (7.28, 7), (0, 0),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected
