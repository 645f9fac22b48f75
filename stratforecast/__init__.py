"""
Stratforecast: completion forecasting and milestone analytics.

Heuristic prediction of operation completion dates, confidence and risk,
plus portfolio-level milestone analytics and insights for strategic plans.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .models import (
    Operation, Milestone, Initiative, OperationStatus, Priority, Complexity,
    MilestoneStatus, ConfidenceLevel, StatusHistoryEntry, ProgressHistoryEntry
)
from .prediction_engine import PredictionEngine, OperationPrediction, PredictionFactors
from .milestone_analytics import MilestoneAnalyticsEngine, MilestoneAnalytics, MilestoneInsight

__all__ = [
    "Operation", "Milestone", "Initiative", "OperationStatus", "Priority", "Complexity",
    "MilestoneStatus", "ConfidenceLevel", "StatusHistoryEntry", "ProgressHistoryEntry",
    "PredictionEngine", "OperationPrediction", "PredictionFactors",
    "MilestoneAnalyticsEngine", "MilestoneAnalytics", "MilestoneInsight",
]
