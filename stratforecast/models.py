"""Entity records consumed by the prediction and analytics engines."""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .utils import clamp, format_timestamp, parse_timestamp


class ParsableEnum(Enum):
    """Enum with lenient parsing from application-layer strings."""

    @classmethod
    def parse(cls, value: Any):
        """Return the member matching ``value`` or ``None`` when unknown.

        Matches members, exact values and names ignoring case, spaces,
        hyphens and underscores, so ``"On Hold"``, ``"on_hold"`` and
        ``"OnHold"`` all resolve to the same member.
        """
        if value is None:
            return None
        if isinstance(value, cls):
            return value

        text = str(value)
        for member in cls:
            if member.value == text:
                return member

        key = _normalize_key(text)
        for member in cls:
            if key in (_normalize_key(member.value), _normalize_key(member.name)):
                return member
        return None


def _normalize_key(text: str) -> str:
    return re.sub(r"[\s_\-]", "", text).lower()


class OperationStatus(ParsableEnum):
    """Lifecycle states of an operation."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class Priority(ParsableEnum):
    """Priority of an operation."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Complexity(ParsableEnum):
    """Complexity of an operation."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class MilestoneStatus(ParsableEnum):
    """Lifecycle states of a milestone."""
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


class ConfidenceLevel(ParsableEnum):
    """Qualitative trust rating on a prediction."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class InsightType(ParsableEnum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class InsightPriority(ParsableEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _enum_value(member: Optional[Enum]) -> Optional[str]:
    return member.value if member is not None else None


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; records arrive in camelCase or snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _required_timestamp(data: Dict[str, Any], *keys: str, record: str) -> datetime:
    """Parse a timestamp the engines do arithmetic on; absent values are rejected."""
    value = parse_timestamp(_pick(data, *keys))
    if value is None:
        raise ValueError(f"{record} is missing {keys[0]}")
    return value


def _progress(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(round(clamp(number, 0, 100)))


@dataclass
class StatusHistoryEntry:
    """A status the operation entered and when."""
    status: Optional[OperationStatus]
    timestamp: datetime
    duration: Optional[int] = None  # whole days spent in this status

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            status=OperationStatus.parse(data.get("status")),
            timestamp=_required_timestamp(data, "timestamp", record="status history entry"),
            duration=data.get("duration"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": _enum_value(self.status),
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.duration is not None:
            result["duration"] = self.duration
        return result


@dataclass
class ProgressHistoryEntry:
    """A progress reading and when it was recorded."""
    progress: int
    timestamp: datetime
    note: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressHistoryEntry":
        return cls(
            progress=_progress(data.get("progress", 0)),
            timestamp=_required_timestamp(data, "timestamp", record="progress history entry"),
            note=data.get("note"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "progress": self.progress,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.note:
            result["note"] = self.note
        return result


@dataclass
class Operation:
    """A trackable unit of strategic work."""
    id: str
    title: str
    owner: str
    status: Optional[OperationStatus]
    priority: Optional[Priority]
    due_date: datetime
    created_at: datetime
    progress: int = 0
    complexity: Optional[Complexity] = None
    updated_at: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    description: Optional[str] = None
    initiative_ids: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    status_history: List[StatusHistoryEntry] = field(default_factory=list)
    progress_history: List[ProgressHistoryEntry] = field(default_factory=list)
    prediction: Optional[Any] = None  # OperationPrediction, attached by the engine

    def __post_init__(self):
        self.progress = _progress(self.progress)
        if self.updated_at is None:
            self.updated_at = self.created_at

    @staticmethod
    def clamp_progress(value: Any) -> int:
        """Coerce a progress value into an integer in [0, 100]."""
        return _progress(value)

    @property
    def effective_complexity(self) -> Complexity:
        """Complexity with the Medium default for unset or unknown values."""
        if self.complexity is None:
            return Complexity.MEDIUM
        return self.complexity

    @property
    def is_completed(self) -> bool:
        return self.status is OperationStatus.COMPLETED

    def with_prediction(self, prediction) -> "Operation":
        """Return a copy annotated with ``prediction``."""
        return replace(self, prediction=prediction)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        created_at = _required_timestamp(
            data, "createdAt", "created_at", record=f"Operation {data.get('id')}"
        )
        status = OperationStatus.parse(data.get("status"))
        progress = _progress(data.get("progress", 0))

        status_history = [
            StatusHistoryEntry.from_dict(entry)
            for entry in _pick(data, "statusHistory", "status_history", default=[])
        ]
        progress_history = [
            ProgressHistoryEntry.from_dict(entry)
            for entry in _pick(data, "progressHistory", "progress_history", default=[])
        ]

        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            owner=data.get("owner", ""),
            status=status,
            priority=Priority.parse(data.get("priority")),
            complexity=Complexity.parse(data.get("complexity")),
            progress=progress,
            due_date=parse_timestamp(_pick(data, "dueDate", "due_date")),
            created_at=created_at,
            updated_at=parse_timestamp(_pick(data, "updatedAt", "updated_at")),
            completed_date=parse_timestamp(_pick(data, "completedDate", "completed_date")),
            description=data.get("description"),
            initiative_ids=list(_pick(data, "initiativeIds", "initiative_ids", default=[])),
            dependencies=list(data.get("dependencies") or []),
            status_history=status_history,
            progress_history=progress_history,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "title": self.title,
            "owner": self.owner,
            "status": _enum_value(self.status),
            "priority": _enum_value(self.priority),
            "complexity": _enum_value(self.complexity),
            "progress": self.progress,
            "dueDate": format_timestamp(self.due_date),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "completedDate": format_timestamp(self.completed_date),
            "description": self.description,
            "initiativeIds": list(self.initiative_ids),
            "dependencies": list(self.dependencies),
            "statusHistory": [entry.to_dict() for entry in self.status_history],
            "progressHistory": [entry.to_dict() for entry in self.progress_history],
        }
        if self.prediction is not None:
            result["prediction"] = self.prediction.to_dict()
        return {key: value for key, value in result.items() if value is not None}


@dataclass
class Milestone:
    """A dated checkpoint belonging to an initiative."""
    id: str
    title: str
    due_date: datetime
    created_at: datetime
    status: Optional[MilestoneStatus] = MilestoneStatus.NOT_STARTED
    progress: int = 0
    assignee_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    description: Optional[str] = None

    def __post_init__(self):
        self.progress = _progress(self.progress)

    @property
    def is_completed(self) -> bool:
        return self.status is MilestoneStatus.COMPLETED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description"),
            due_date=parse_timestamp(_pick(data, "dueDate", "due_date")),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at")),
            status=MilestoneStatus.parse(data.get("status")),
            progress=_progress(data.get("progress", 0)),
            assignee_id=_pick(data, "assigneeId", "assignee_id") or None,
            completed_at=parse_timestamp(_pick(data, "completedAt", "completed_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": format_timestamp(self.due_date),
            "createdAt": format_timestamp(self.created_at),
            "status": _enum_value(self.status),
            "progress": self.progress,
            "assigneeId": self.assignee_id,
            "completedAt": format_timestamp(self.completed_at),
        }
        return {key: value for key, value in result.items() if value is not None}


@dataclass
class Initiative:
    """A strategic goal that owns an ordered list of milestones."""
    id: str
    title: str
    milestones: List[Milestone] = field(default_factory=list)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Initiative":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description"),
            milestones=[Milestone.from_dict(m) for m in data.get("milestones") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "milestones": [milestone.to_dict() for milestone in self.milestones],
        }
        return {key: value for key, value in result.items() if value is not None}
