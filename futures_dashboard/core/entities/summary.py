import datetime as dt
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class DailyPnLResponse(BaseModel):
    date: dt.date
    pnl: float
    last_updated: Optional[datetime] = None


class WeeklyPnLResponse(BaseModel):
    """
    A run of consecutive daily records inside one calendar month.
    Not a calendar week; see pnl_aggregator.weekly_pnl.
    """
    week_start: dt.date
    week_end: dt.date
    weekly_pnl: float
    actual_days: int
    last_updated: Optional[datetime] = None


class MonthlySummaryResponse(BaseModel):
    year: int
    month: int
    pnl: float
    daily_average: float


class HistorySummary(BaseModel):
    commission: float
    pnl: float
    income: float
    multiplier: float


class HistoryResponse(BaseModel):
    date: dt.date
    data: HistorySummary


class ErrorResponse(BaseModel):
    message: str
    error: str
