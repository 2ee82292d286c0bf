from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DBSession

from ..core.deps import get_db
from ..models.schemas import AccrualReportOut, AccrualRunIn
from ..services.accrual_service import process_auto_fees

router = APIRouter(prefix="/api/accrual", tags=["accrual"])


@router.post("/run", response_model=AccrualReportOut)
def run_accrual(payload: AccrualRunIn | None = None, db: DBSession = Depends(get_db)):
    """Run one accrual pass; safe to call from a scheduler or on page load."""
    report = process_auto_fees(db, now=payload.now if payload else None)
    return AccrualReportOut.model_validate(report)
