"""Tests for snapshot loading and saving."""

import json

import pytest
import yaml

from stratforecast.exceptions import OperationNotFoundError, SnapshotError
from stratforecast.models import OperationStatus
from stratforecast.snapshot import Snapshot, load_snapshot, save_snapshot


SNAPSHOT = {
    "initiatives": [
        {
            "id": "init-1",
            "title": "Partner platform",
            "milestones": [
                {"id": "m1", "title": "Beta", "dueDate": "2026-11-01T00:00:00Z",
                 "createdAt": "2026-09-01T00:00:00Z", "status": "in-progress", "progress": 30},
            ],
        },
    ],
    "operations": [
        {"id": "op-1", "title": "Build API", "owner": "alice", "status": "In Progress",
         "priority": "High", "complexity": "Medium", "progress": 50,
         "dueDate": "2026-11-15T00:00:00Z", "createdAt": "2026-09-15T00:00:00Z"},
        {"id": "op-2", "title": "Write docs", "owner": "bob", "status": "Completed",
         "priority": "Low", "progress": 100, "dueDate": "2026-10-01T00:00:00Z",
         "createdAt": "2026-09-01T00:00:00Z", "completedDate": "2026-09-28T00:00:00Z"},
    ],
}


class TestSnapshot:
    """Test snapshot files."""

    def test_load_json(self, tmp_path):
        path = tmp_path / "portfolio.json"
        path.write_text(json.dumps(SNAPSHOT))

        snapshot = load_snapshot(path)

        assert len(snapshot.initiatives) == 1
        assert snapshot.initiatives[0].milestones[0].id == "m1"
        assert [op.id for op in snapshot.operations] == ["op-1", "op-2"]
        assert snapshot.get_operation("op-2").status is OperationStatus.COMPLETED

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "portfolio.yaml"
        path.write_text(yaml.safe_dump(SNAPSHOT))

        snapshot = load_snapshot(str(path))

        assert snapshot.get_operation("op-1").owner == "alice"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")

        snapshot = load_snapshot(path)

        assert snapshot.initiatives == []
        assert snapshot.operations == []

    def test_save_and_reload(self, tmp_path):
        snapshot = Snapshot.from_dict(SNAPSHOT)

        for name in ("saved.json", "saved.yaml"):
            saved = save_snapshot(snapshot, tmp_path / name)
            assert load_snapshot(saved).to_dict() == snapshot.to_dict()

    def test_missing_file(self, tmp_path):
        with pytest.raises(SnapshotError):
            load_snapshot(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(SnapshotError):
            load_snapshot(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")

        with pytest.raises(SnapshotError, match="mapping"):
            load_snapshot(path)

    def test_invalid_record(self):
        with pytest.raises(SnapshotError):
            Snapshot.from_dict({"operations": [{"title": "No id"}]})

        with pytest.raises(SnapshotError):
            Snapshot.from_dict({"operations": [dict(SNAPSHOT["operations"][0], dueDate="soon")]})

    def test_operation_without_creation_time(self, tmp_path):
        """Records the engines cannot date are refused at load time."""
        undated = {k: v for k, v in SNAPSHOT["operations"][1].items() if k != "createdAt"}
        path = tmp_path / "undated.json"
        path.write_text(json.dumps({"operations": [SNAPSHOT["operations"][0], undated]}))

        with pytest.raises(SnapshotError, match="createdAt"):
            load_snapshot(path)

    def test_unknown_operation(self):
        snapshot = Snapshot.from_dict(SNAPSHOT)

        with pytest.raises(OperationNotFoundError) as exc_info:
            snapshot.get_operation("op-404")

        assert exc_info.value.operation_id == "op-404"
        assert str(exc_info.value) == "Operation op-404 not found"
