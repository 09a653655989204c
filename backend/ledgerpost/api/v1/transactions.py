"""
Transactions API Routes - Journal entry posting, reversal and lookup
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerpost.core.config import Settings
from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor, get_settings
from ledgerpost.schemas import (
    ActorContext, JournalEntryCreate, JournalEntryReverse, JournalEntryResponse
)
from ledgerpost.services.ledger_service import LedgerPostingService, JournalEntryService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("", response_model=List[JournalEntryResponse])
async def list_transactions(
    account_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    entry_status: Optional[str] = Query(None, alias="status"),
    source_type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """List journal entries, newest first"""
    journal_service = JournalEntryService(db, actor.organization_id)
    return journal_service.list(
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        status=entry_status,
        source_type=source_type,
        limit=limit,
    )


@router.post("/journal-entries", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_journal_entry(
    entry_data: JournalEntryCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Post a balanced journal entry"""
    posting_service = LedgerPostingService(db, actor.organization_id, settings)
    entry = posting_service.post_journal_entry(
        entry_data.entry_date,
        entry_data.description,
        entry_data.lines,
        actor.user_id,
        reference=entry_data.reference,
    )
    return JournalEntryService(db, actor.organization_id).get_by_id(entry.id)


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Get journal entry with its lines"""
    journal_service = JournalEntryService(db, actor.organization_id)
    return journal_service.get_by_id(entry_id)


@router.post("/journal-entries/{entry_id}/reverse", response_model=JournalEntryResponse,
             status_code=status.HTTP_201_CREATED)
async def reverse_journal_entry(
    entry_id: int,
    reverse_data: Optional[JournalEntryReverse] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Post the negating entry and mark the original Reversed"""
    posting_service = LedgerPostingService(db, actor.organization_id, settings)
    reversal = posting_service.reverse_journal_entry(
        entry_id,
        actor.user_id,
        reversal_date=reverse_data.reversal_date if reverse_data else None,
        description=reverse_data.description if reverse_data else None,
    )
    return JournalEntryService(db, actor.organization_id).get_by_id(reversal.id)
