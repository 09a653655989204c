"""
Contacts API Routes - Customers and Suppliers
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ledgerpost.core.database import get_db
from ledgerpost.core.security import get_current_actor
from ledgerpost.schemas import (
    ActorContext, ContactCreate, ContactUpdate, ContactResponse, ContactTypeEnum
)
from ledgerpost.services.crm_service import ContactService

router = APIRouter(prefix="/contacts", tags=["Contacts"])


@router.get("", response_model=List[ContactResponse])
async def list_contacts(
    type: Optional[ContactTypeEnum] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """List customers and suppliers"""
    contact_service = ContactService(db, actor.organization_id)
    return contact_service.list(contact_type=type, include_inactive=include_inactive)


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    contact_data: ContactCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Create a new contact"""
    contact_service = ContactService(db, actor.organization_id)
    contact = contact_service.create(contact_data)
    db.commit()
    db.refresh(contact)
    return contact


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Get contact by ID"""
    contact_service = ContactService(db, actor.organization_id)
    return contact_service.get_by_id(contact_id)


@router.put("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: int,
    contact_data: ContactUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Update contact"""
    contact_service = ContactService(db, actor.organization_id)
    contact = contact_service.update(contact_id, contact_data)
    db.commit()
    db.refresh(contact)
    return contact


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Delete a contact, or deactivate it when documents reference it"""
    contact_service = ContactService(db, actor.organization_id)
    deleted = contact_service.delete(contact_id)
    db.commit()
    if deleted:
        return {"message": "Contact deleted"}
    return {"message": "Contact is referenced and was deactivated"}
