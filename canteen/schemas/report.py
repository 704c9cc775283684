"""
Pydantic schemas for monthly reports.

`total` is spend for a student report and revenue for a stall or canteen
report. Canceled orders appear only in the counts.
"""

import uuid
from typing import Literal

from pydantic import BaseModel


class ReportItem(BaseModel):
    id: uuid.UUID
    name: str
    quantity: int
    total: int


class DailyTotal(BaseModel):
    day: str
    orders: int
    total: int


class LowStockItem(BaseModel):
    id: uuid.UUID
    name: str
    stock: int


class BudgetSummary(BaseModel):
    monthly_budget: int | None
    spent: int
    over_budget: bool


class MonthlyReportResponse(BaseModel):
    scope: Literal["student", "owner", "canteen"]
    account_id: uuid.UUID | None
    year: int
    month: int
    order_count: int
    canceled_count: int
    preorder_count: int
    status_counts: dict[str, int]
    total: int
    average_order_value: int
    items: list[ReportItem]
    top_by_quantity: list[ReportItem]
    top_by_total: list[ReportItem]
    daily: list[DailyTotal]
    low_stock: list[LowStockItem]
    budget: BudgetSummary | None
