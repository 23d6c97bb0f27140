"""
Account-level entities: balances and income records.
"""
import datetime as dt
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class BalanceResponse(BaseModel):
    """
    Current USDT cross-wallet balance.
    """
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "balance": 1523.77,
            "update_time": "2024-01-02T10:15:00Z"
        }
    })

    balance: float
    update_time: datetime


class BalanceSnapshotResponse(BaseModel):
    """
    One persisted end-of-day balance.
    """
    date: dt.date
    balance: float


class IncomeResponse(BaseModel):
    """
    One income-history record (realized PnL, commission, funding fee, transfer...).
    """
    model_config = ConfigDict(frozen=True)

    symbol: Optional[str] = None
    income_type: Optional[str] = None
    income: float
    asset: Optional[str] = None
    info: Optional[str] = None
    time: datetime
    tran_id: Optional[int] = None
    trade_id: Optional[int] = None
