"""
Bills API Routes - Supplier bills, approval and payments
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerpost.core.config import Settings
from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor, get_settings
from ledgerpost.schemas import (
    ActorContext, BillCreate, BillUpdate, BillResponse, PaymentCreate, DocumentCancel
)
from ledgerpost.services.document_service import BillService

router = APIRouter(prefix="/bills", tags=["Bills"])


@router.get("", response_model=List[BillResponse])
async def list_bills(
    bill_status: Optional[str] = Query(None, alias="status"),
    contact_id: Optional[int] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """List bills, newest first"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.list(status=bill_status, contact_id=contact_id)


@router.post("", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_data: BillCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Create a draft bill; totals are computed from the line items"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.create(bill_data, actor.user_id)


@router.post("/mark-overdue")
async def mark_bills_overdue(
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Flag approved bills past their due date as Overdue"""
    bill_service = BillService(db, actor.organization_id, settings)
    return {"updated": bill_service.mark_overdue(as_of)}


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Get bill with line items"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.get_by_id(bill_id)


@router.put("/{bill_id}", response_model=BillResponse)
async def update_bill(
    bill_id: int,
    bill_data: BillUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Update a draft bill"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.update(bill_id, bill_data)


@router.delete("/{bill_id}")
async def delete_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Delete a draft bill"""
    bill_service = BillService(db, actor.organization_id, settings)
    bill_service.delete(bill_id)
    return {"message": "Bill deleted"}


@router.post("/{bill_id}/post", response_model=BillResponse)
async def approve_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Approve the bill and post it to payables"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.post(bill_id, actor.user_id)


@router.post("/{bill_id}/payments", response_model=BillResponse)
async def record_bill_payment(
    bill_id: int,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Record a payment to the supplier"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.record_payment(bill_id, payment_data, actor.user_id)


@router.post("/{bill_id}/cancel", response_model=BillResponse)
async def cancel_bill(
    bill_id: int,
    cancel_data: Optional[DocumentCancel] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Cancel a draft bill, or reverse and cancel an unpaid approved bill"""
    bill_service = BillService(db, actor.organization_id, settings)
    return bill_service.cancel(bill_id, cancel_data, actor.user_id)
