"""
Rolls income records and persisted daily series up into daily, weekly,
monthly and short-window summaries.

All functions are pure; "now" is always passed in so results are
reproducible in tests.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Sequence, Tuple

from futures_dashboard.core.constants import (
    COMMISSION_INCOME_TYPES,
    DAYS_TO_FETCH,
    INCOME_MULTIPLIER,
    REALIZED_PNL,
)
from futures_dashboard.core.entities.account import BalanceResponse, BalanceSnapshotResponse, IncomeResponse
from futures_dashboard.core.entities.summary import (
    DailyPnLResponse,
    HistoryResponse,
    HistorySummary,
    MonthlySummaryResponse,
    WeeklyPnLResponse,
)
from futures_dashboard.core.errors import EmptyUpstreamData


def _utc_day(moment: datetime) -> date:
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def daily_income_pnl(incomes: Iterable[IncomeResponse], day: date) -> float:
    """Sum of realized-PnL income on one UTC day. Commission and funding are left out."""
    return float(sum(
        i.income
        for i in incomes
        if i.income_type == REALIZED_PNL and _utc_day(i.time) == day
    ))


def merge_daily_pnl(
    persisted: Sequence[DailyPnLResponse],
    incomes: Iterable[IncomeResponse],
    now: datetime,
) -> List[DailyPnLResponse]:
    """
    Return the persisted daily series with its latest entry recomputed from
    live income for the current UTC day. Earlier entries are kept as stored.
    """
    if not persisted:
        raise EmptyUpstreamData("Persisted daily PnL series is empty; cannot update the latest entry")

    result = list(persisted)
    today_pnl = daily_income_pnl(incomes, _utc_day(now))
    result[-1] = result[-1].model_copy(update={"pnl": today_pnl, "last_updated": now})
    return result


def merge_balance_snapshots(
    persisted: Sequence[BalanceSnapshotResponse],
    balance: BalanceResponse,
) -> List[BalanceSnapshotResponse]:
    """Same overwrite-latest rule as merge_daily_pnl, for the balance series."""
    if not persisted:
        raise EmptyUpstreamData("Persisted balance snapshot series is empty; cannot update the latest entry")

    result = list(persisted)
    result[-1] = result[-1].model_copy(update={"balance": balance.balance})
    return result


def weekly_pnl(daily: Iterable[DailyPnLResponse]) -> List[WeeklyPnLResponse]:
    """
    Group daily records into runs of consecutive days.

    A run ends when the next record falls in another calendar month or when a
    day is missing from the data. This is not a fixed 7-day window.
    """
    ordered = sorted(daily, key=lambda d: d.date)
    groups: List[List[DailyPnLResponse]] = []

    for record in ordered:
        if groups:
            previous = groups[-1][-1]
            same_month = (record.date.year, record.date.month) == (previous.date.year, previous.date.month)
            consecutive = (record.date - previous.date).days <= 1
            if same_month and consecutive:
                groups[-1].append(record)
                continue
        groups.append([record])

    weeks = []
    for group in groups:
        stamps = [d.last_updated for d in group if d.last_updated is not None]
        weeks.append(WeeklyPnLResponse(
            week_start=min(d.date for d in group),
            week_end=max(d.date for d in group),
            weekly_pnl=sum(d.pnl for d in group),
            actual_days=len(group),
            last_updated=max(stamps) if stamps else None,
        ))
    return weeks


def monthly_summary(daily: Iterable[DailyPnLResponse]) -> List[MonthlySummaryResponse]:
    """
    PnL per (year, month). The daily average divides by the number of records
    present in that month, not by the number of calendar days.
    """
    months: Dict[Tuple[int, int], List[float]] = {}
    for record in daily:
        months.setdefault((record.date.year, record.date.month), []).append(record.pnl)

    summaries = []
    for (year, month) in sorted(months):
        values = months[(year, month)]
        total = sum(values)
        summaries.append(MonthlySummaryResponse(
            year=year,
            month=month,
            pnl=total,
            daily_average=total / len(values),
        ))
    return summaries


def income_history(
    incomes: Iterable[IncomeResponse],
    now: datetime,
    days: int = DAYS_TO_FETCH,
) -> List[HistoryResponse]:
    """
    Per-day breakdown over the trailing `days` window.

    commission = funding fees + commissions, pnl = realized PnL,
    income = commission + pnl, multiplier = income * INCOME_MULTIPLIER.
    """
    cutoff = now - timedelta(days=days)
    by_day: Dict[date, List[IncomeResponse]] = {}
    for record in incomes:
        if record.time < cutoff:
            continue
        by_day.setdefault(_utc_day(record.time), []).append(record)

    history = []
    for day in sorted(by_day):
        records = by_day[day]
        commission = sum(r.income for r in records if r.income_type in COMMISSION_INCOME_TYPES)
        pnl = sum(r.income for r in records if r.income_type == REALIZED_PNL)
        income = commission + pnl
        history.append(HistoryResponse(
            date=day,
            data=HistorySummary(
                commission=commission,
                pnl=pnl,
                income=income,
                multiplier=income * INCOME_MULTIPLIER,
            ),
        ))
    return history
