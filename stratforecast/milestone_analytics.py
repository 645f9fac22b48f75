"""Portfolio-level milestone analytics and insights."""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from .config import AnalyticsConfig
from .models import (
    Initiative, InsightPriority, InsightType, Milestone, MilestoneStatus, Operation
)
from .utils import ceil_days, clamp, logger, safe_divide, utc_now


@dataclass
class TrackedMilestone(Milestone):
    """A milestone tagged with the initiative that owns it."""
    initiative_id: str = ""
    initiative_title: str = ""

    @classmethod
    def from_milestone(cls, milestone: Milestone, initiative: Initiative) -> "TrackedMilestone":
        values = {f.name: getattr(milestone, f.name) for f in fields(Milestone)}
        return cls(initiative_id=initiative.id, initiative_title=initiative.title, **values)

    def to_dict(self) -> Dict[str, object]:
        result = super().to_dict()
        result["initiativeId"] = self.initiative_id
        result["initiativeTitle"] = self.initiative_title
        return result


@dataclass
class BottleneckAnalysis:
    """A delayed or overdue milestone scored by impact."""
    milestone_id: str
    milestone_title: str
    initiative_id: str
    initiative_title: str
    delay_days: int
    impact_score: float  # 0-10
    blockers: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "milestoneId": self.milestone_id,
            "milestoneTitle": self.milestone_title,
            "initiativeId": self.initiative_id,
            "initiativeTitle": self.initiative_title,
            "delayDays": self.delay_days,
            "impactScore": self.impact_score,
            "blockers": list(self.blockers),
            "recommendations": list(self.recommendations),
        }


@dataclass
class PerformanceMetrics:
    on_time_delivery: float
    average_delay_days: float
    productivity_score: float
    quality_score: float
    team_efficiency: float
    resource_utilization: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "onTimeDelivery": self.on_time_delivery,
            "averageDelayDays": self.average_delay_days,
            "productivityScore": self.productivity_score,
            "qualityScore": self.quality_score,
            "teamEfficiency": self.team_efficiency,
            "resourceUtilization": self.resource_utilization,
        }


@dataclass
class TrendData:
    """Milestone activity for one calendar month."""
    period: str
    completed: int
    created: int
    overdue: int
    completion_rate: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "period": self.period,
            "completed": self.completed,
            "created": self.created,
            "overdue": self.overdue,
            "completionRate": self.completion_rate,
        }


@dataclass
class RiskAssessment:
    high_risk_milestones: int
    medium_risk_milestones: int
    low_risk_milestones: int
    critical_deadlines: List[TrackedMilestone] = field(default_factory=list)
    resource_constraints: List[str] = field(default_factory=list)
    dependency_risks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "highRiskMilestones": self.high_risk_milestones,
            "mediumRiskMilestones": self.medium_risk_milestones,
            "lowRiskMilestones": self.low_risk_milestones,
            "criticalDeadlines": [m.to_dict() for m in self.critical_deadlines],
            "resourceConstraints": list(self.resource_constraints),
            "dependencyRisks": list(self.dependency_risks),
        }


@dataclass
class MilestoneAnalytics:
    """Aggregate analytics over every milestone of every initiative."""
    total_milestones: int
    completed_milestones: int
    overdue_milestones: int
    upcoming_milestones: int
    completion_rate: float
    average_completion_time: float
    critical_path_milestones: List[TrackedMilestone]
    bottlenecks: List[BottleneckAnalysis]
    performance_metrics: PerformanceMetrics
    trend_data: List[TrendData]
    risk_assessment: RiskAssessment

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalMilestones": self.total_milestones,
            "completedMilestones": self.completed_milestones,
            "overdueMilestones": self.overdue_milestones,
            "upcomingMilestones": self.upcoming_milestones,
            "completionRate": self.completion_rate,
            "averageCompletionTime": self.average_completion_time,
            "criticalPathMilestones": [m.to_dict() for m in self.critical_path_milestones],
            "bottlenecks": [b.to_dict() for b in self.bottlenecks],
            "performanceMetrics": self.performance_metrics.to_dict(),
            "trendData": [t.to_dict() for t in self.trend_data],
            "riskAssessment": self.risk_assessment.to_dict(),
        }


@dataclass
class MilestoneInsight:
    """A human-readable observation derived from analytics."""
    type: InsightType
    title: str
    description: str
    actionable: bool
    priority: InsightPriority
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        result = {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "actionable": self.actionable,
            "priority": self.priority.value,
        }
        if self.recommendation:
            result["recommendation"] = self.recommendation
        return result


INSIGHT_PRIORITY_ORDER = {
    InsightPriority.HIGH: 3,
    InsightPriority.MEDIUM: 2,
    InsightPriority.LOW: 1,
}


class MilestoneAnalyticsEngine:
    """Aggregate milestone analytics across initiatives."""

    def __init__(self, initiatives: List[Initiative], operations: List[Operation],
                 config: Optional[AnalyticsConfig] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the analytics engine.

        Args:
            initiatives: Initiatives with their nested milestones
            operations: Operations in the same portfolio
            config: Analytics tunables; defaults reproduce the documented thresholds
            clock: Zero-argument callable returning the current aware datetime
        """
        self.initiatives = initiatives
        self.operations = operations
        self.config = config or AnalyticsConfig()
        self._clock = clock or utc_now

    def generate_analytics(self) -> MilestoneAnalytics:
        """Compute analytics for every milestone.

        Returns:
            MilestoneAnalytics snapshot as of the engine clock
        """
        now = self._clock()
        milestones = self.get_all_milestones()
        logger.debug(f"Generating analytics for {len(milestones)} milestones")

        return MilestoneAnalytics(
            total_milestones=len(milestones),
            completed_milestones=len(self._completed(milestones)),
            overdue_milestones=len(self._overdue(milestones, now)),
            upcoming_milestones=len(self._upcoming(milestones, now)),
            completion_rate=self.calculate_completion_rate(milestones),
            average_completion_time=self.calculate_average_completion_time(milestones),
            critical_path_milestones=self.identify_critical_path(milestones),
            bottlenecks=self.analyze_bottlenecks(milestones, now),
            performance_metrics=self.calculate_performance_metrics(milestones, now),
            trend_data=self.generate_trend_data(milestones, now),
            risk_assessment=self.assess_risks(milestones, now),
        )

    def generate_insights(self, analytics: Optional[MilestoneAnalytics] = None) -> List[MilestoneInsight]:
        """Derive prioritized insights from analytics.

        Args:
            analytics: Precomputed analytics; generated fresh when omitted

        Returns:
            Insights ordered high, medium, then low priority
        """
        analytics = analytics or self.generate_analytics()
        insights = []

        if analytics.completion_rate < 70:
            insights.append(MilestoneInsight(
                type=InsightType.WARNING,
                title="Low Milestone Completion Rate",
                description=f"Only {analytics.completion_rate:.1f}% of milestones are completed on time",
                actionable=True,
                recommendation="Review milestone planning and resource allocation",
                priority=InsightPriority.HIGH,
            ))
        elif analytics.completion_rate > 90:
            insights.append(MilestoneInsight(
                type=InsightType.SUCCESS,
                title="Excellent Milestone Performance",
                description=f"{analytics.completion_rate:.1f}% completion rate indicates strong execution",
                actionable=False,
                priority=InsightPriority.LOW,
            ))

        if analytics.overdue_milestones > 0:
            insights.append(MilestoneInsight(
                type=InsightType.ERROR,
                title="Overdue Milestones Detected",
                description=f"{analytics.overdue_milestones} milestones are past their due dates",
                actionable=True,
                recommendation="Prioritize overdue milestones and reassess timelines",
                priority=InsightPriority.HIGH,
            ))

        critical_bottlenecks = [b for b in analytics.bottlenecks if b.impact_score > 7]
        if critical_bottlenecks:
            insights.append(MilestoneInsight(
                type=InsightType.WARNING,
                title="Critical Bottlenecks Identified",
                description=(
                    f"{len(critical_bottlenecks)} high-impact bottlenecks are affecting "
                    "milestone delivery"
                ),
                actionable=True,
                recommendation="Address resource constraints and dependency issues",
                priority=InsightPriority.HIGH,
            ))

        recent_trend = analytics.trend_data[-3:]
        if len(recent_trend) >= 2:
            direction = recent_trend[-1].completion_rate - recent_trend[0].completion_rate
            if direction < -10:
                insights.append(MilestoneInsight(
                    type=InsightType.WARNING,
                    title="Declining Performance Trend",
                    description="Milestone completion rates have decreased over recent periods",
                    actionable=True,
                    recommendation="Investigate causes of performance decline",
                    priority=InsightPriority.MEDIUM,
                ))

        if analytics.performance_metrics.resource_utilization < 60:
            insights.append(MilestoneInsight(
                type=InsightType.INFO,
                title="Low Resource Utilization",
                description="Team resources may be underutilized for milestone delivery",
                actionable=True,
                recommendation="Consider increasing milestone scope or reallocating resources",
                priority=InsightPriority.MEDIUM,
            ))

        return sorted(insights, key=lambda i: INSIGHT_PRIORITY_ORDER[i.priority], reverse=True)

    def get_all_milestones(self) -> List[TrackedMilestone]:
        """Flatten milestones from every initiative, in initiative order."""
        return [
            TrackedMilestone.from_milestone(milestone, initiative)
            for initiative in self.initiatives
            for milestone in initiative.milestones
        ]

    # ------------------------------------------------------------------
    # Counts and rates
    # ------------------------------------------------------------------

    @staticmethod
    def _completed(milestones: List[TrackedMilestone]) -> List[TrackedMilestone]:
        return [m for m in milestones if m.is_completed]

    @staticmethod
    def _overdue(milestones: List[TrackedMilestone], now: datetime) -> List[TrackedMilestone]:
        return [
            m for m in milestones
            if m.due_date is not None and m.due_date < now and not m.is_completed
        ]

    def _upcoming(self, milestones: List[TrackedMilestone], now: datetime) -> List[TrackedMilestone]:
        return self._due_within(milestones, now, self.config.upcoming_window_days)

    @staticmethod
    def _due_within(milestones: List[TrackedMilestone], now: datetime,
                    days: int) -> List[TrackedMilestone]:
        horizon = now + timedelta(days=days)
        return [
            m for m in milestones
            if m.due_date is not None and now <= m.due_date <= horizon and not m.is_completed
        ]

    def calculate_completion_rate(self, milestones: List[TrackedMilestone]) -> float:
        if not milestones:
            return 0.0
        return len(self._completed(milestones)) / len(milestones) * 100

    @staticmethod
    def calculate_average_completion_time(milestones: List[TrackedMilestone]) -> float:
        """Mean days from creation to completion for completed milestones."""
        durations = [
            ceil_days(m.created_at, m.completed_at)
            for m in milestones
            if m.is_completed and m.completed_at and m.created_at
        ]
        if not durations:
            return 0.0
        return statistics.mean(durations)

    def identify_critical_path(self, milestones: List[TrackedMilestone]) -> List[TrackedMilestone]:
        """Earliest-due, least-complete milestones first; undated ones last."""
        def impact_weighted_due(milestone: TrackedMilestone) -> Tuple[bool, float]:
            if milestone.due_date is None:
                return (True, 0.0)
            return (False, milestone.due_date.timestamp() * (100 - milestone.progress) * 0.01)

        open_milestones = [m for m in milestones if not m.is_completed]
        return sorted(open_milestones, key=impact_weighted_due)[:self.config.critical_list_size]

    # ------------------------------------------------------------------
    # Bottlenecks
    # ------------------------------------------------------------------

    def analyze_bottlenecks(self, milestones: List[TrackedMilestone],
                            now: Optional[datetime] = None) -> List[BottleneckAnalysis]:
        now = now or self._clock()
        overdue_ids = {id(m) for m in self._overdue(milestones, now)}

        bottlenecks = []
        for milestone in milestones:
            if milestone.status is not MilestoneStatus.DELAYED and id(milestone) not in overdue_ids:
                continue

            delay_days = 0
            if milestone.due_date is not None:
                delay_days = max(0, ceil_days(milestone.due_date, now))
            impact_score = self.calculate_impact_score(milestone, delay_days)

            bottlenecks.append(BottleneckAnalysis(
                milestone_id=milestone.id,
                milestone_title=milestone.title,
                initiative_id=milestone.initiative_id,
                initiative_title=milestone.initiative_title,
                delay_days=delay_days,
                impact_score=impact_score,
                blockers=self.identify_blockers(milestone),
                recommendations=self.generate_recommendations(milestone, impact_score),
            ))

        return sorted(bottlenecks, key=lambda b: b.impact_score, reverse=True)

    @staticmethod
    def calculate_impact_score(milestone: Milestone, delay_days: int) -> float:
        """Impact on a 0-10 scale from delay, missing progress and urgency."""
        delay_impact = min(delay_days * 0.5, 5)
        progress_impact = (100 - milestone.progress) * 0.03
        if delay_days > 7:
            urgency_impact = 2
        elif delay_days > 3:
            urgency_impact = 1
        else:
            urgency_impact = 0

        return clamp(delay_impact + progress_impact + urgency_impact, 0, 10)

    @staticmethod
    def identify_blockers(milestone: Milestone) -> List[str]:
        blockers = []

        if milestone.progress < 25:
            blockers.append("Low progress indicates potential resource or planning issues")

        if milestone.status is MilestoneStatus.DELAYED:
            blockers.append("Milestone explicitly marked as delayed")

        if not milestone.assignee_id:
            blockers.append("No assignee - unclear ownership")

        return blockers

    @staticmethod
    def generate_recommendations(milestone: Milestone, impact_score: float) -> List[str]:
        recommendations = []

        if impact_score > 7:
            recommendations.append("Escalate to leadership for immediate attention")
            recommendations.append("Consider reallocating resources from lower-priority tasks")

        if milestone.progress < 50:
            recommendations.append("Break down milestone into smaller, manageable tasks")
            recommendations.append("Schedule daily check-ins with assignee")

        if not milestone.assignee_id:
            recommendations.append("Assign clear ownership immediately")

        recommendations.append("Review and update timeline based on current constraints")

        return recommendations

    # ------------------------------------------------------------------
    # Performance and trends
    # ------------------------------------------------------------------

    def calculate_performance_metrics(self, milestones: List[TrackedMilestone],
                                      now: Optional[datetime] = None) -> PerformanceMetrics:
        now = now or self._clock()
        completed = self._completed(milestones)
        overdue = self._overdue(milestones, now)

        if milestones:
            on_time_delivery = (len(milestones) - len(overdue)) / len(milestones) * 100
            avg_progress = statistics.mean(m.progress for m in milestones)
        else:
            on_time_delivery = 100.0
            avg_progress = 0.0

        delays = [max(0, ceil_days(m.due_date, now)) for m in overdue]
        average_delay_days = statistics.mean(delays) if delays else 0.0

        return PerformanceMetrics(
            on_time_delivery=on_time_delivery,
            average_delay_days=average_delay_days,
            productivity_score=min(avg_progress * 1.2, 100),
            quality_score=on_time_delivery,
            team_efficiency=max(0, 100 - average_delay_days * 2),
            resource_utilization=min(avg_progress + len(completed) * 10, 100),
        )

    def generate_trend_data(self, milestones: List[TrackedMilestone],
                            now: Optional[datetime] = None) -> List[TrendData]:
        """Monthly created/completed/overdue counts, oldest month first."""
        now = now or self._clock()
        trend = []

        for start, end, label in self.generate_periods(self.config.trend_months, now):
            created = [m for m in milestones if m.created_at and start <= m.created_at < end]
            completed = sum(
                1 for m in created
                if m.is_completed and m.completed_at and start <= m.completed_at < end
            )
            overdue = sum(
                1 for m in created
                if m.due_date is not None and m.due_date < end and not m.is_completed
            )
            trend.append(TrendData(
                period=label,
                completed=completed,
                created=len(created),
                overdue=overdue,
                completion_rate=safe_divide(completed, len(created)) * 100,
            ))

        return trend

    @staticmethod
    def generate_periods(count: int, now: datetime) -> List[Tuple[datetime, datetime, str]]:
        """Calendar months ending with the current one, as (start, end, label)."""
        periods = []
        for offset in range(count - 1, -1, -1):
            start = _month_start(now.year, now.month - offset)
            end = _month_start(now.year, now.month - offset + 1)
            periods.append((start, end, start.strftime("%b %Y")))
        return periods

    # ------------------------------------------------------------------
    # Risk
    # ------------------------------------------------------------------

    def assess_risks(self, milestones: List[TrackedMilestone],
                     now: Optional[datetime] = None) -> RiskAssessment:
        now = now or self._clock()
        upcoming = self._due_within(milestones, now, self.config.risk_window_days)

        critical_deadlines = sorted(
            (
                m for m in milestones
                if m.due_date is not None
                and 0 < ceil_days(now, m.due_date) <= self.config.upcoming_window_days
                and not m.is_completed
            ),
            key=lambda m: m.due_date,
        )[:self.config.critical_list_size]

        return RiskAssessment(
            high_risk_milestones=sum(1 for m in upcoming if m.progress < 25),
            medium_risk_milestones=sum(1 for m in upcoming if 25 <= m.progress < 75),
            low_risk_milestones=sum(1 for m in upcoming if m.progress >= 75),
            critical_deadlines=critical_deadlines,
            resource_constraints=self.identify_resource_constraints(milestones),
            dependency_risks=self.identify_dependency_risks(milestones),
        )

    def identify_resource_constraints(self, milestones: List[TrackedMilestone]) -> List[str]:
        constraints = []

        workload = defaultdict(int)
        for milestone in milestones:
            if milestone.assignee_id and not milestone.is_completed:
                workload[milestone.assignee_id] += 1

        for assignee_id, count in workload.items():
            if count > self.config.overallocation_threshold:
                constraints.append(
                    f"Assignee {assignee_id} has {count} active milestones - potential overallocation"
                )

        unassigned = sum(1 for m in milestones if not m.assignee_id and not m.is_completed)
        if unassigned > 0:
            constraints.append(f"{unassigned} milestones lack assigned owners")

        return constraints

    def identify_dependency_risks(self, milestones: List[TrackedMilestone]) -> List[str]:
        """Initiatives whose delayed share suggests cascading slips."""
        risks = []

        groups = defaultdict(list)
        for milestone in milestones:
            groups[milestone.initiative_id].append(milestone)

        for initiative_id, group in groups.items():
            delayed = sum(1 for m in group if m.status is MilestoneStatus.DELAYED)
            total = len(group)
            if delayed > 0 and delayed / total > self.config.delayed_ratio_threshold:
                risks.append(
                    f"Initiative {initiative_id} has {delayed}/{total} delayed milestones - cascade risk"
                )

        return risks


def _month_start(year: int, month: int) -> datetime:
    """First instant of a month; ``month`` may fall outside 1-12."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)
