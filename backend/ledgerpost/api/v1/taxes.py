"""
Taxes API Routes - Tax rates
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor
from ledgerpost.schemas import ActorContext, TaxRateCreate, TaxRateUpdate, TaxRateResponse
from ledgerpost.services.tax_service import TaxRateService

router = APIRouter(prefix="/taxes", tags=["Taxes"])


@router.get("", response_model=List[TaxRateResponse])
async def list_tax_rates(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """List tax rates"""
    tax_service = TaxRateService(db, actor.organization_id)
    return tax_service.list(include_inactive=include_inactive)


@router.post("", response_model=TaxRateResponse, status_code=status.HTTP_201_CREATED)
async def create_tax_rate(
    tax_data: TaxRateCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Create a tax rate"""
    tax_service = TaxRateService(db, actor.organization_id)
    tax_rate = tax_service.create(tax_data)
    db.commit()
    db.refresh(tax_rate)
    return tax_rate


@router.put("/{tax_rate_id}", response_model=TaxRateResponse)
async def update_tax_rate(
    tax_rate_id: int,
    tax_data: TaxRateUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Update a tax rate"""
    tax_service = TaxRateService(db, actor.organization_id)
    tax_rate = tax_service.update(tax_rate_id, tax_data)
    db.commit()
    db.refresh(tax_rate)
    return tax_rate
