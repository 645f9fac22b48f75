"""Completion prediction for in-flight operations."""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .config import PredictionConfig
from .models import (
    Complexity, ConfidenceLevel, Operation, OperationStatus, Priority
)
from .utils import (
    ceil_days, clamp, format_timestamp, fractional_days, logger,
    round_half_up, safe_divide, utc_now
)


PRIORITY_SCORES = {
    Priority.CRITICAL: 1.0,
    Priority.HIGH: 0.8,
    Priority.MEDIUM: 0.6,
    Priority.LOW: 0.4,
}
DEFAULT_PRIORITY_SCORE = 0.6

# Inverted scale: a higher score means a simpler operation
COMPLEXITY_SCORES = {
    Complexity.HIGH: 0.3,
    Complexity.MEDIUM: 0.6,
    Complexity.LOW: 0.9,
}
DEFAULT_COMPLEXITY_SCORE = 0.6

COMPLEXITY_BASE_DAYS = {
    Complexity.LOW: 3,
    Complexity.MEDIUM: 7,
    Complexity.HIGH: 14,
}

PRIORITY_MULTIPLIERS = {
    Priority.CRITICAL: 0.7,
    Priority.HIGH: 0.8,
    Priority.MEDIUM: 1.0,
    Priority.LOW: 1.3,
}
DEFAULT_PRIORITY_MULTIPLIER = 1.0

MIN_OWNER_PERFORMANCE = 0.3
MAX_OWNER_PERFORMANCE = 1.0
DEFAULT_PROGRESS_PATTERN = 0.5
PROGRESS_PATTERN_WINDOW = 3
STATUS_STALL_DAYS = 7

RISK_OWNER_DELAYS = "Owner has history of delays"
RISK_SLOW_VELOCITY = "Slow progress velocity"
RISK_STALLED = "Operation stalled in current status"
RISK_DEPENDENCIES = "High dependency risk"
RISK_DEADLINE = "Low progress with approaching deadline"
RISK_BLOCKED = "Currently blocked"


@dataclass
class PredictionFactors:
    """Normalized scoring inputs for one operation."""
    priority: float
    complexity: float
    owner_performance: float
    progress_pattern: float
    time_in_current_status: float
    dependency_risk: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "priority": self.priority,
            "complexity": self.complexity,
            "ownerPerformance": self.owner_performance,
            "progressPattern": self.progress_pattern,
            "timeInCurrentStatus": self.time_in_current_status,
            "dependencyRisk": self.dependency_risk,
        }


@dataclass
class OperationPrediction:
    """Forward-looking estimate attached to an operation."""
    estimated_completion_date: datetime
    confidence_level: ConfidenceLevel
    progress_velocity: float  # % progress per day
    days_remaining: int
    probability_on_time: int  # 0-100
    estimated_effort_days: int
    last_updated: datetime
    risk_factors: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    similar_operations: List[str] = field(default_factory=list)
    factors: Optional[PredictionFactors] = None

    def to_dict(self) -> Dict[str, object]:
        result = {
            "estimatedCompletionDate": format_timestamp(self.estimated_completion_date),
            "confidenceLevel": self.confidence_level.value,
            "riskFactors": list(self.risk_factors),
            "recommendations": list(self.recommendations),
            "progressVelocity": self.progress_velocity,
            "daysRemaining": self.days_remaining,
            "probabilityOnTime": self.probability_on_time,
            "similarOperations": list(self.similar_operations),
            "estimatedEffortDays": self.estimated_effort_days,
            "lastUpdated": format_timestamp(self.last_updated),
        }
        if self.factors is not None:
            result["factors"] = self.factors.to_dict()
        return result


class PredictionEngine:
    """Heuristic completion forecasting for operations.

    The engine keeps the completed operations seen by the last
    :meth:`train_model` call and a per-owner performance score derived from
    them. Callers must retrain whenever the set of completed operations
    changes; predictions made against a stale cache are not refreshed
    automatically.

    An instance is not safe for concurrent ``train_model``/``predict`` calls.
    Use one instance per writer.
    """

    def __init__(self, config: Optional[PredictionConfig] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the engine.

        Args:
            config: Prediction tunables; defaults reproduce the documented constants
            clock: Zero-argument callable returning the current aware datetime
        """
        self.config = config or PredictionConfig()
        self._clock = clock or utc_now
        self.historical_data: List[Operation] = []
        self.owner_performance_cache: Dict[str, float] = {}

    def train_model(self, operations: List[Operation]) -> None:
        """Rebuild historical data and owner performance from ``operations``.

        Args:
            operations: All known operations; only Completed ones are kept
        """
        self.historical_data = [op for op in operations if op.is_completed]
        self.owner_performance_cache = self._calculate_owner_performance(self.historical_data)
        logger.debug(
            f"Trained on {len(self.historical_data)} completed operations "
            f"across {len(self.owner_performance_cache)} owners"
        )

    def predict(self, operation: Operation,
                all_operations: List[Operation]) -> Optional[OperationPrediction]:
        """Generate a prediction for an operation.

        Args:
            operation: The operation to forecast
            all_operations: Every operation, used for dependency and similarity lookups

        Returns:
            OperationPrediction, or None when the operation is already Completed
        """
        if operation.is_completed:
            return None

        now = self._clock()

        factors = self.calculate_prediction_factors(operation, all_operations, now)
        similar_ops = self.find_similar_operations(operation, all_operations)

        base_estimate = self.calculate_base_estimate(operation)
        adjusted_estimate = self.apply_factor_adjustments(base_estimate, factors)

        velocity = self.calculate_progress_velocity(operation)
        days_remaining = self.calculate_days_remaining(operation, velocity)
        estimated_completion = now + timedelta(days=days_remaining)

        confidence = self.calculate_confidence_level(factors, len(similar_ops))
        probability = self.calculate_on_time_probability(operation, days_remaining, now)

        risk_factors = self.identify_risk_factors(operation, factors, now)
        recommendations = self.generate_recommendations(operation, factors, risk_factors)

        logger.debug(
            f"Prediction for {operation.id}: {days_remaining} days remaining, "
            f"{confidence.value} confidence, {probability}% on time"
        )

        return OperationPrediction(
            estimated_completion_date=estimated_completion,
            confidence_level=confidence,
            progress_velocity=velocity,
            days_remaining=days_remaining,
            probability_on_time=probability,
            estimated_effort_days=adjusted_estimate,
            last_updated=now,
            risk_factors=risk_factors,
            recommendations=recommendations,
            similar_operations=[op.id for op in similar_ops],
            factors=factors,
        )

    def predict_all(self, operations: List[Operation]) -> List[Operation]:
        """Refresh predictions for every in-flight operation.

        Completed operations are returned unchanged; all others are returned
        as copies carrying a fresh prediction.
        """
        refreshed = []
        for operation in operations:
            if operation.is_completed:
                refreshed.append(operation)
                continue
            refreshed.append(operation.with_prediction(self.predict(operation, operations)))
        return refreshed

    # ------------------------------------------------------------------
    # Factors
    # ------------------------------------------------------------------

    def calculate_prediction_factors(self, operation: Operation,
                                     all_operations: List[Operation],
                                     now: Optional[datetime] = None) -> PredictionFactors:
        """Score every prediction factor for ``operation``."""
        now = now or self._clock()
        return PredictionFactors(
            priority=self.get_priority_score(operation.priority),
            complexity=self.get_complexity_score(operation.effective_complexity),
            owner_performance=self.get_owner_performance(operation.owner),
            progress_pattern=self.analyze_progress_pattern(operation),
            time_in_current_status=self.calculate_time_in_current_status(operation, now),
            dependency_risk=self.calculate_dependency_risk(operation, all_operations),
        )

    @staticmethod
    def get_priority_score(priority: Optional[Priority]) -> float:
        if priority in PRIORITY_SCORES:
            return PRIORITY_SCORES[priority]
        return DEFAULT_PRIORITY_SCORE

    @staticmethod
    def get_complexity_score(complexity: Optional[Complexity]) -> float:
        if complexity in COMPLEXITY_SCORES:
            return COMPLEXITY_SCORES[complexity]
        return DEFAULT_COMPLEXITY_SCORE

    def get_owner_performance(self, owner: str) -> float:
        if owner in self.owner_performance_cache:
            return self.owner_performance_cache[owner]
        return self.config.default_owner_performance

    def _calculate_owner_performance(self, completed: List[Operation]) -> Dict[str, float]:
        """Score owners by their on-time completion rate."""
        completed_counts = defaultdict(int)
        on_time_counts = defaultdict(int)

        for op in completed:
            completed_counts[op.owner] += 1
            if op.completed_date and op.due_date and op.completed_date <= op.due_date:
                on_time_counts[op.owner] += 1

        return {
            owner: clamp(on_time_counts[owner] / count, MIN_OWNER_PERFORMANCE, MAX_OWNER_PERFORMANCE)
            for owner, count in completed_counts.items()
        }

    def analyze_progress_pattern(self, operation: Operation) -> float:
        """Average recent velocity normalized to [0.1, 1.0]."""
        history = operation.progress_history
        if len(history) < 2:
            return DEFAULT_PROGRESS_PATTERN

        recent = history[-PROGRESS_PATTERN_WINDOW:]
        velocities = []
        for previous, current in zip(recent, recent[1:]):
            days = fractional_days(previous.timestamp, current.timestamp)
            if days > 0:
                velocities.append((current.progress - previous.progress) / days)

        avg_velocity = safe_divide(sum(velocities), len(velocities))
        return clamp(avg_velocity / 10, 0.1, 1.0)

    def calculate_time_in_current_status(self, operation: Operation,
                                         now: Optional[datetime] = None) -> float:
        """Days since the last status change, scaled so a week or more is 1."""
        if not operation.status_history:
            return 0.0

        now = now or self._clock()
        last_change = operation.status_history[-1]
        days_since_change = ceil_days(last_change.timestamp, now)
        return clamp(days_since_change / STATUS_STALL_DAYS, 0.0, 1.0)

    @staticmethod
    def calculate_dependency_risk(operation: Operation, all_operations: List[Operation]) -> float:
        """Share of matched dependency operations that are Blocked or On Hold.

        Dependencies are free text matched case-insensitively as substrings of
        other operations' titles.
        """
        if not operation.dependencies:
            return 0.0

        needles = [dep.lower() for dep in operation.dependencies]
        dependent_ops = [
            op for op in all_operations
            if any(needle in op.title.lower() for needle in needles)
        ]
        blocked = sum(
            1 for op in dependent_ops
            if op.status in (OperationStatus.BLOCKED, OperationStatus.ON_HOLD)
        )
        return safe_divide(blocked, len(dependent_ops))

    def find_similar_operations(self, operation: Operation,
                                all_operations: List[Operation]) -> List[Operation]:
        """Completed operations with the same priority, complexity and owner."""
        similar = [
            op for op in all_operations
            if op.id != operation.id
            and op.is_completed
            and op.priority == operation.priority
            and op.effective_complexity == operation.effective_complexity
            and op.owner == operation.owner
        ]
        return similar[:self.config.similar_operations_limit]

    # ------------------------------------------------------------------
    # Estimates
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_base_estimate(operation: Operation) -> float:
        """Baseline effort in days from complexity and priority."""
        base_days = COMPLEXITY_BASE_DAYS[operation.effective_complexity]

        if operation.priority in PRIORITY_MULTIPLIERS:
            multiplier = PRIORITY_MULTIPLIERS[operation.priority]
        else:
            multiplier = DEFAULT_PRIORITY_MULTIPLIER

        return base_days * multiplier

    @staticmethod
    def apply_factor_adjustments(base_estimate: float, factors: PredictionFactors) -> int:
        """Scale the base estimate by each factor, in order."""
        adjusted = base_estimate

        # Better performers shrink the estimate
        adjusted *= 2 - factors.owner_performance

        if factors.progress_pattern > 0.7:
            adjusted *= 0.8
        elif factors.progress_pattern < 0.3:
            adjusted *= 1.3

        adjusted *= 1 + factors.dependency_risk * 0.5

        if factors.time_in_current_status > 0.7:
            adjusted *= 1.2

        return max(1, round_half_up(adjusted))

    @staticmethod
    def calculate_progress_velocity(operation: Operation) -> float:
        """Progress gained per day between the last two readings."""
        if len(operation.progress_history) < 2:
            return 0.0

        previous, current = operation.progress_history[-2:]
        days = fractional_days(previous.timestamp, current.timestamp)
        if days <= 0:
            return 0.0

        return max(0.0, (current.progress - previous.progress) / days)

    def calculate_days_remaining(self, operation: Operation, velocity: float) -> int:
        """Days needed to reach 100% at the observed or historical pace."""
        remaining = 100 - operation.progress

        if velocity <= 0:
            velocity = max(self.config.min_velocity,
                           self.get_average_velocity_for_similar_ops(operation))

        return max(0, math.ceil(remaining / velocity))

    def get_average_velocity_for_similar_ops(self, operation: Operation) -> float:
        """Historical % per day for operations of the same priority and complexity.

        Operations without a completion date fall back to their last update
        time as the completion time.
        """
        similar = [
            op for op in self.historical_data
            if op.priority == operation.priority
            and op.effective_complexity == operation.effective_complexity
        ]
        if not similar:
            return self.config.default_velocity

        total_days = sum(
            ceil_days(op.created_at, op.completed_date or op.updated_at)
            for op in similar
        )
        avg_days = total_days / len(similar)
        return 100 / max(1, avg_days)

    # ------------------------------------------------------------------
    # Confidence, probability, risks
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_confidence_score(factors: PredictionFactors, similar_ops_count: int) -> float:
        score = factors.owner_performance * 0.3
        score += abs(factors.progress_pattern - 0.5) * 0.4
        score += min(1, similar_ops_count / 3) * 0.3
        return score

    def calculate_confidence_level(self, factors: PredictionFactors,
                                   similar_ops_count: int) -> ConfidenceLevel:
        score = self.calculate_confidence_score(factors, similar_ops_count)
        if score > 0.7:
            return ConfidenceLevel.HIGH
        if score > 0.4:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    def calculate_on_time_probability(self, operation: Operation, days_remaining: int,
                                      now: Optional[datetime] = None) -> int:
        """Chance (5-95) of finishing by the due date at the predicted pace."""
        days_until_due = self._days_until_due(operation, now or self._clock())
        if days_until_due is None:
            days_until_due = days_remaining

        if days_remaining <= days_until_due:
            return min(95, 60 + (days_until_due - days_remaining) * 5)

        days_late = days_remaining - days_until_due
        return max(5, 60 - days_late * 10)

    def identify_risk_factors(self, operation: Operation, factors: PredictionFactors,
                              now: Optional[datetime] = None) -> List[str]:
        risks = []

        if factors.owner_performance < 0.5:
            risks.append(RISK_OWNER_DELAYS)

        if factors.progress_pattern < 0.3:
            risks.append(RISK_SLOW_VELOCITY)

        if factors.time_in_current_status > 0.7:
            risks.append(RISK_STALLED)

        if factors.dependency_risk > 0.5:
            risks.append(RISK_DEPENDENCIES)

        days_until_due = self._days_until_due(operation, now or self._clock())
        if operation.progress < 20 and days_until_due is not None and days_until_due < 7:
            risks.append(RISK_DEADLINE)

        if operation.status is OperationStatus.BLOCKED:
            risks.append(RISK_BLOCKED)

        return risks

    @staticmethod
    def generate_recommendations(operation: Operation, factors: PredictionFactors,
                                 risks: List[str]) -> List[str]:
        recommendations = []

        if RISK_SLOW_VELOCITY in risks:
            recommendations.append("Consider breaking down into smaller tasks")
            recommendations.append("Schedule daily check-ins with owner")

        if RISK_DEPENDENCIES in risks:
            recommendations.append("Review and resolve blocking dependencies")
            recommendations.append("Consider parallel work streams")

        if RISK_STALLED in risks:
            recommendations.append("Schedule status review meeting")
            recommendations.append("Identify and remove blockers")

        if factors.owner_performance < 0.5:
            recommendations.append("Provide additional support or resources")
            recommendations.append("Consider reassigning if critical")

        if operation.priority is Priority.CRITICAL and factors.progress_pattern < 0.5:
            recommendations.append("Escalate to leadership")
            recommendations.append("Allocate additional resources")

        return recommendations

    @staticmethod
    def _days_until_due(operation: Operation, now: datetime) -> Optional[int]:
        if operation.due_date is None:
            return None
        return ceil_days(now, operation.due_date)
