"""Loading and saving portfolio snapshots."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

import yaml

from .exceptions import OperationNotFoundError, SnapshotError
from .models import Initiative, Operation
from .utils import logger


@dataclass
class Snapshot:
    """Initiatives and operations captured at one point in time."""
    initiatives: List[Initiative] = field(default_factory=list)
    operations: List[Operation] = field(default_factory=list)

    def get_operation(self, operation_id: str) -> Operation:
        for operation in self.operations:
            if operation.id == operation_id:
                return operation
        raise OperationNotFoundError(operation_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot must be a mapping with 'initiatives' and 'operations'")
        try:
            return cls(
                initiatives=[Initiative.from_dict(i) for i in data.get("initiatives") or []],
                operations=[Operation.from_dict(o) for o in data.get("operations") or []],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Invalid snapshot record: {e}") from e

    def to_dict(self) -> dict:
        return {
            "initiatives": [i.to_dict() for i in self.initiatives],
            "operations": [o.to_dict() for o in self.operations],
        }


def load_snapshot(path: Union[str, Path]) -> Snapshot:
    """Read a JSON or YAML snapshot file.

    Args:
        path: File with top-level ``initiatives`` and ``operations`` lists

    Returns:
        Parsed Snapshot

    Raises:
        SnapshotError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise SnapshotError(f"Could not read snapshot {path}: {e}") from e

    snapshot = Snapshot.from_dict(data)
    logger.debug(
        f"Loaded {len(snapshot.initiatives)} initiatives and "
        f"{len(snapshot.operations)} operations from {path}"
    )
    return snapshot


def save_snapshot(snapshot: Snapshot, path: Union[str, Path]) -> Path:
    """Write a snapshot as YAML or JSON depending on the file extension."""
    path = Path(path)
    try:
        with open(path, 'w') as f:
            if path.suffix in ['.yaml', '.yml']:
                yaml.safe_dump(snapshot.to_dict(), f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(snapshot.to_dict(), f, indent=2)
    except OSError as e:
        raise SnapshotError(f"Could not write snapshot {path}: {e}") from e

    logger.info(f"Snapshot saved to: {path}")
    return path
