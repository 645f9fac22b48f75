"""Tests for operation updates and initiative progress."""

import pytest
from datetime import datetime, timedelta, timezone

from stratforecast.models import (
    Initiative, Milestone, Operation, OperationStatus, Priority,
    ProgressHistoryEntry, StatusHistoryEntry
)
from stratforecast.operation_tracking import (
    apply_operation_update, calculate_initiative_progress
)
from stratforecast.prediction_engine import PredictionEngine


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def operation():
    """An operation that entered In Progress three and a half days ago."""
    started = NOW - timedelta(days=3, hours=12)
    return Operation(
        id="op-1",
        title="Migrate billing",
        owner="alice",
        status=OperationStatus.IN_PROGRESS,
        priority=Priority.HIGH,
        progress=40,
        due_date=NOW + timedelta(days=14),
        created_at=NOW - timedelta(days=10),
        status_history=[StatusHistoryEntry(OperationStatus.IN_PROGRESS, started)],
        progress_history=[ProgressHistoryEntry(40, started)],
    )


class TestApplyOperationUpdate:
    """Test the apply_operation_update function."""

    def test_status_change_closes_previous_entry(self, operation):
        updated = apply_operation_update(operation, {"status": "Blocked"}, now=NOW)

        assert updated.status is OperationStatus.BLOCKED
        assert len(updated.status_history) == 2
        assert updated.status_history[0].duration == 4
        assert updated.status_history[1].status is OperationStatus.BLOCKED
        assert updated.status_history[1].timestamp == NOW
        assert updated.status_history[1].duration is None

    def test_original_is_untouched(self, operation):
        apply_operation_update(operation, {"status": "Blocked", "progress": 60}, now=NOW)

        assert operation.status is OperationStatus.IN_PROGRESS
        assert len(operation.status_history) == 1
        assert operation.status_history[0].duration is None
        assert len(operation.progress_history) == 1

    def test_same_status_adds_no_entry(self, operation):
        updated = apply_operation_update(operation, {"status": OperationStatus.IN_PROGRESS}, now=NOW)
        assert len(updated.status_history) == 1

    def test_progress_change_recorded(self, operation):
        updated = apply_operation_update(operation, {"progress": 55}, now=NOW)

        assert updated.progress == 55
        assert updated.progress_history[-1].progress == 55
        assert updated.progress_history[-1].timestamp == NOW

    def test_progress_is_clamped(self, operation):
        updated = apply_operation_update(operation, {"progress": 150}, now=NOW)
        assert updated.progress == 100
        assert updated.progress_history[-1].progress == 100

    def test_unchanged_progress_not_recorded(self, operation):
        updated = apply_operation_update(operation, {"progress": 40}, now=NOW)
        assert len(updated.progress_history) == 1

    def test_completion_stamps_date(self, operation):
        updated = apply_operation_update(operation, {"status": "Completed", "progress": 100}, now=NOW)

        assert updated.is_completed
        assert updated.completed_date == NOW
        assert updated.updated_at == NOW

    def test_explicit_completion_date_wins(self, operation):
        finished = NOW - timedelta(days=1)
        updated = apply_operation_update(
            operation, {"status": "Completed", "completed_date": "2026-10-18T12:00:00Z"}, now=NOW
        )
        assert updated.completed_date == finished

    def test_update_clears_prediction(self, operation):
        engine = PredictionEngine(clock=lambda: NOW)
        predicted = engine.predict_all([operation])[0]
        assert predicted.prediction is not None

        updated = apply_operation_update(predicted, {"progress": 70}, now=NOW)

        assert updated.prediction is None

    def test_timestamp_string_accepted(self, operation):
        updated = apply_operation_update(operation, {"priority": "Critical"}, now="2026-10-19T12:00:00Z")

        assert updated.priority is Priority.CRITICAL
        assert updated.updated_at == NOW


class TestInitiativeProgress:
    """Test the calculate_initiative_progress function."""

    def make_milestone(self, milestone_id, progress):
        return Milestone(
            id=milestone_id,
            title=milestone_id,
            due_date=NOW,
            created_at=NOW - timedelta(days=30),
            progress=progress,
        )

    def test_blends_milestones_and_operations(self, operation):
        initiative = Initiative(
            id="init-1",
            title="Billing",
            milestones=[self.make_milestone("m1", 40), self.make_milestone("m2", 80)],
        )
        linked_a = apply_operation_update(operation, {"progress": 20, "initiative_ids": ["init-1"]}, now=NOW)
        linked_b = apply_operation_update(operation, {"progress": 40, "initiative_ids": ["init-1"]}, now=NOW)
        unrelated = apply_operation_update(operation, {"progress": 100}, now=NOW)

        # 60 * 0.7 + 30 * 0.3
        assert calculate_initiative_progress(initiative, [linked_a, linked_b, unrelated]) == 51

    def test_milestones_only(self):
        initiative = Initiative(id="init-1", title="Billing", milestones=[self.make_milestone("m1", 100)])
        assert calculate_initiative_progress(initiative, []) == 70

    def test_empty_initiative(self):
        assert calculate_initiative_progress(Initiative(id="init-1", title="Empty"), []) == 0
