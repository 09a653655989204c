"""
CRM Service - Business Logic for Customers and Suppliers
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from ledgerpost.core.exceptions import NotFoundError, ValidationError, reject_nulls
from ledgerpost.models import Contact, ContactType, JournalEntryLine, Invoice, Bill
from ledgerpost.repositories import TenantRepository
from ledgerpost.schemas import ContactCreate, ContactUpdate


class ContactService:
    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id
        self.contacts = TenantRepository(db, Contact, organization_id)

    def get_by_id(self, contact_id: int) -> Contact:
        contact = self.contacts.get(contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {contact_id} not found")
        return contact

    def list(self, contact_type: Optional[str] = None, include_inactive: bool = False) -> List[Contact]:
        query = self.contacts.query()
        if contact_type:
            type_value = contact_type.value if hasattr(contact_type, 'value') else str(contact_type)
            # A "Both" contact shows up under customers and suppliers alike
            query = query.filter(Contact.type.in_([type_value, ContactType.BOTH.value]))
        if not include_inactive:
            query = query.filter(Contact.is_active == True)
        return query.order_by(Contact.name).all()

    def _check_name(self, name: str, contact_id: Optional[int] = None):
        existing = self.contacts.get_by(name=name)
        if existing and existing.id != contact_id:
            raise ValidationError.for_field(
                "name", f"Contact '{name}' already exists", reason="DuplicateContact"
            )

    def create(self, contact_data: ContactCreate) -> Contact:
        self._check_name(contact_data.name)
        data = contact_data.model_dump()
        data["type"] = contact_data.type.value
        contact = Contact(**data, is_active=True)
        self.contacts.add(contact)
        self.db.flush()
        return contact

    def update(self, contact_id: int, contact_data: ContactUpdate) -> Contact:
        contact = self.get_by_id(contact_id)
        update_data = contact_data.model_dump(exclude_unset=True)
        reject_nulls(update_data, ("type", "name", "payment_terms", "is_active"))
        if "name" in update_data:
            self._check_name(update_data["name"], contact_id=contact.id)
        if update_data.get("type") is not None:
            update_data["type"] = contact_data.type.value

        for key, value in update_data.items():
            setattr(contact, key, value)

        self.db.flush()
        return contact

    def is_referenced(self, contact_id: int) -> bool:
        for model in (Invoice, Bill):
            if self.db.query(model.id).filter(model.contact_id == contact_id).first():
                return True
        return self.db.query(JournalEntryLine.id).filter(
            JournalEntryLine.contact_id == contact_id
        ).first() is not None

    def delete(self, contact_id: int) -> bool:
        """Hard delete an unused contact; deactivate one that documents or lines reference"""
        contact = self.get_by_id(contact_id)
        if self.is_referenced(contact.id):
            contact.is_active = False
            self.db.flush()
            return False
        self.contacts.delete(contact)
        self.db.flush()
        return True
