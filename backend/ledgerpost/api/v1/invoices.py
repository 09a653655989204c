"""
Invoices API Routes - Sales invoices, posting and payments
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerpost.core.config import Settings
from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor, get_settings
from ledgerpost.schemas import (
    ActorContext, InvoiceCreate, InvoiceUpdate, InvoiceResponse, PaymentCreate, DocumentCancel
)
from ledgerpost.services.document_service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    invoice_status: Optional[str] = Query(None, alias="status"),
    contact_id: Optional[int] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """List invoices, newest first"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.list(status=invoice_status, contact_id=contact_id)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Create a draft invoice; totals are computed from the line items"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.create(invoice_data, actor.user_id)


@router.post("/mark-overdue")
async def mark_invoices_overdue(
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Flag sent invoices past their due date as Overdue"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return {"updated": invoice_service.mark_overdue(as_of)}


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Get invoice with line items"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.get_by_id(invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Update a draft invoice"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.update(invoice_id, invoice_data)


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Delete a draft invoice"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    invoice_service.delete(invoice_id)
    return {"message": "Invoice deleted"}


@router.post("/{invoice_id}/post", response_model=InvoiceResponse)
async def post_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Send the invoice and post it to receivables"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.post(invoice_id, actor.user_id)


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def record_invoice_payment(
    invoice_id: int,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Record a customer payment against the invoice"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.record_payment(invoice_id, payment_data, actor.user_id)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: int,
    cancel_data: Optional[DocumentCancel] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: ActorContext = Depends(get_current_actor)
):
    """Cancel a draft invoice, or reverse and cancel an unpaid sent invoice"""
    invoice_service = InvoiceService(db, actor.organization_id, settings)
    return invoice_service.cancel(invoice_id, cancel_data, actor.user_id)
