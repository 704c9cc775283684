"""
Reports router — monthly order reports.

Endpoints:
  GET /reports/monthly  — The month's report for the caller's scope
                          (student spend, stall revenue, or canteen-wide
                          for admins; admins may pass owner_id)
"""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import get_current_account
from canteen.models.account import Account
from canteen.schemas.report import MonthlyReportResponse
from canteen.services import report_service

router = APIRouter()


@router.get("/monthly", response_model=MonthlyReportResponse, summary="Monthly report")
async def monthly_report(
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    owner_id: uuid.UUID | None = Query(None, description="Admins only: one stall's report"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Defaults to the current month (UTC)."""
    now = datetime.now(timezone.utc)
    return await report_service.monthly_report(
        db,
        account,
        year=year or now.year,
        month=month or now.month,
        owner_id=owner_id,
    )
