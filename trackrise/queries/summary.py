"""
Dashboard Aggregator

Read-only rollups over the ledger for the dashboard screen. Nothing here
writes; every number comes straight from ``LedgerStoreInterface.summary``
and ``query``.
"""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional

from trackrise.models.transaction import (
    DashboardSummary,
    Transaction,
    TransactionFilter,
    utcnow,
)
from trackrise.services.storage.interface import LedgerStoreInterface


class SummaryPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"

    @property
    def days(self) -> int:
        """Whole days before today included in the period."""
        return PERIOD_DAYS[self]

    @property
    def label(self) -> str:
        return PERIOD_LABELS[self]


PERIOD_DAYS = {
    SummaryPeriod.TODAY: 0,
    SummaryPeriod.WEEK: 7,
    SummaryPeriod.MONTH: 30,
    SummaryPeriod.QUARTER: 90,
}

PERIOD_LABELS = {
    SummaryPeriod.TODAY: "Today",
    SummaryPeriod.WEEK: "Week",
    SummaryPeriod.MONTH: "Month",
    SummaryPeriod.QUARTER: "3 Months",
}


def period_bounds(period: SummaryPeriod, today: Optional[date] = None) -> tuple[date, date]:
    """Inclusive first and last day of ``period`` ending on ``today``."""
    today = today or utcnow().date()
    return today - timedelta(days=period.days), today


class DashboardAggregator:
    """Computes dashboard totals and the recent-activity list."""

    def __init__(self, ledger: LedgerStoreInterface):
        self._ledger = ledger

    async def summary_for_period(
        self,
        period: SummaryPeriod,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        start, end = period_bounds(period, today)
        totals = await self._ledger.summary(start, end)

        return DashboardSummary(
            total_income=totals.total_income,
            total_expenses=totals.total_expenses,
            period_start=datetime.combine(start, time.min),
            period_end=datetime.combine(end, time.max),
        )

    async def recent_transactions(
        self,
        limit: int = 5,
        period: Optional[SummaryPeriod] = None,
        today: Optional[date] = None,
    ) -> list[Transaction]:
        """Newest transactions, optionally only those inside ``period``."""
        filters = None
        if period is not None:
            start, end = period_bounds(period, today)
            filters = TransactionFilter(date_from=start, date_to=end)
        return await self._ledger.query(limit=limit, offset=0, filters=filters)
