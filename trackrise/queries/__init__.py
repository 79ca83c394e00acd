"""Dashboard query package."""

from trackrise.queries.summary import DashboardAggregator, SummaryPeriod, period_bounds

__all__ = ["DashboardAggregator", "SummaryPeriod", "period_bounds"]
