"""
Reports API Routes - Trial balance and ledger integrity
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from ledgerpost.core.config import Settings
from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor, get_settings
from ledgerpost.schemas import ActorContext, TrialBalanceResponse, IntegrityReport
from ledgerpost.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/trial-balance", response_model=TrialBalanceResponse)
async def get_trial_balance(
    as_of_date: Optional[date] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Trial balance from running balances, or recomputed up to as_of_date"""
    report_service = ReportService(db, actor.organization_id, settings)
    return report_service.get_trial_balance(as_of_date)


@router.get("/ledger-integrity", response_model=IntegrityReport)
async def get_ledger_integrity(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Compare running balances with balances recomputed from journal lines"""
    report_service = ReportService(db, actor.organization_id, settings)
    return report_service.check_ledger_integrity()
