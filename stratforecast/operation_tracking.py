"""Operation update lifecycle and initiative progress roll-up."""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import (
    Complexity, Initiative, Operation, OperationStatus, Priority,
    ProgressHistoryEntry, StatusHistoryEntry
)
from .utils import fractional_days, logger, parse_timestamp, round_half_up, utc_now

# Fields that are coerced from application-layer strings on update
_ENUM_FIELDS = {
    "status": OperationStatus,
    "priority": Priority,
    "complexity": Complexity,
}
_TIMESTAMP_FIELDS = {"due_date", "completed_date", "created_at"}


def apply_operation_update(operation: Operation, updates: Dict[str, Any],
                           now: Optional[datetime] = None) -> Operation:
    """Return a copy of ``operation`` with ``updates`` applied.

    A status change closes the current status entry with its duration in
    whole days and opens a new one. A progress change appends a progress
    reading. Entering Completed stamps ``completed_date``. The stored
    prediction is dropped because it no longer describes the operation.

    Args:
        operation: The operation to update; left untouched
        updates: Field names (snake_case) mapped to new values
        now: Time of the update, defaults to the current UTC time

    Returns:
        The updated operation
    """
    now = parse_timestamp(now) if now else utc_now()
    changes = _coerce_updates(updates)

    status_history = list(operation.status_history)
    new_status = changes.get("status", operation.status)
    if "status" in changes and new_status != operation.status:
        if status_history:
            last = status_history[-1]
            duration = round_half_up(fractional_days(last.timestamp, now))
            status_history[-1] = replace(last, duration=duration)
        status_history.append(StatusHistoryEntry(status=new_status, timestamp=now))
        logger.debug(
            f"Operation {operation.id} status "
            f"{_label(operation.status)} -> {_label(new_status)}"
        )

    progress_history = list(operation.progress_history)
    if "progress" in changes and changes["progress"] != operation.progress:
        progress_history.append(ProgressHistoryEntry(progress=changes["progress"], timestamp=now))

    completed_date = operation.completed_date
    if new_status is OperationStatus.COMPLETED and operation.status is not OperationStatus.COMPLETED:
        completed_date = now

    changes.update(
        updated_at=now,
        status_history=status_history,
        progress_history=progress_history,
        completed_date=changes.get("completed_date", completed_date),
        prediction=None,
    )
    return replace(operation, **changes)


def calculate_initiative_progress(initiative: Initiative, operations: List[Operation]) -> int:
    """Blend milestone and linked-operation progress for an initiative.

    Milestones weigh 70% and operations linked through ``initiative_ids``
    weigh 30%.
    """
    milestone_progress = 0.0
    if initiative.milestones:
        milestone_progress = sum(m.progress for m in initiative.milestones) / len(initiative.milestones)

    linked = [op for op in operations if initiative.id in op.initiative_ids]
    operation_progress = 0.0
    if linked:
        operation_progress = sum(op.progress for op in linked) / len(linked)

    return round_half_up(milestone_progress * 0.7 + operation_progress * 0.3)


def _coerce_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    changes = {}
    for key, value in updates.items():
        if key in _ENUM_FIELDS:
            value = _ENUM_FIELDS[key].parse(value)
        elif key in _TIMESTAMP_FIELDS:
            value = parse_timestamp(value)
        elif key == "progress":
            value = Operation.clamp_progress(value)
        changes[key] = value
    return changes


def _label(status: Optional[OperationStatus]) -> str:
    return status.value if status is not None else "unknown"
