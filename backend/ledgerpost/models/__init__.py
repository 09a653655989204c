"""
SQLAlchemy Models for the ledger
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
import enum

from ledgerpost.core.database import Base


# ==================== ENUMS ====================

class AccountType(enum.Enum):
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class JournalEntryStatus(enum.Enum):
    DRAFT = "Draft"
    POSTED = "Posted"
    REVERSED = "Reversed"


class JournalSource(enum.Enum):
    MANUAL = "manual"
    INVOICE = "invoice"
    BILL = "bill"
    INVOICE_PAYMENT = "invoice_payment"
    BILL_PAYMENT = "bill_payment"
    REVERSAL = "reversal"


class InvoiceStatus(enum.Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class BillStatus(enum.Enum):
    DRAFT = "Draft"
    APPROVED = "Approved"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


class ContactType(enum.Enum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"
    BOTH = "Both"


class TaxType(enum.Enum):
    SALES = "Sales"
    PURCHASE = "Purchase"
    BOTH = "Both"


# ==================== CORE MODELS ====================

class Organization(Base):
    """Tenant; every ledger row belongs to exactly one organization"""
    __tablename__ = 'organizations'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    currency_code = Column(String(3), default="USD", nullable=False)
    is_active = Column(Boolean, default=True)
    # Number sequences, advanced with atomic increments
    next_entry_number = Column(Integer, default=1, nullable=False)
    next_invoice_number = Column(Integer, default=1, nullable=False)
    next_bill_number = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    accounts = relationship("Account", back_populates="organization", cascade="all, delete-orphan")


# ==================== ACCOUNTING MODELS ====================

class Account(Base):
    """Chart of Accounts"""
    __tablename__ = 'accounts'

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(Integer, ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True)
    # Debit-positive running total of posted lines
    balance = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    is_system_account = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="accounts")
    parent = relationship("Account", remote_side=[id], backref="children")
    journal_lines = relationship("JournalEntryLine", back_populates="account")

    @property
    def account_type(self):
        """Return the AccountType enum for this account"""
        type_map = {t.value.lower(): t for t in AccountType}
        return type_map.get(self.type.lower(), None)

    @property
    def normal_balance(self) -> str:
        if self.account_type in (AccountType.ASSET, AccountType.EXPENSE):
            return "debit"
        return "credit"

    __table_args__ = (
        UniqueConstraint('organization_id', 'code', name='uq_accounts_org_code'),
        Index('ix_accounts_organization_id', 'organization_id'),
    )


class JournalEntry(Base):
    """Journal entry header"""
    __tablename__ = 'journal_entries'

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    entry_number = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    reference = Column(String(255), nullable=True)
    total_amount = Column(Numeric(15, 2), nullable=False)
    status = Column(String(20), default=JournalEntryStatus.POSTED.value, nullable=False)
    source_type = Column(String(30), default=JournalSource.MANUAL.value, nullable=False)
    source_id = Column(Integer, nullable=True)
    reversal_of_id = Column(Integer, ForeignKey('journal_entries.id', ondelete='SET NULL'), nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    lines = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.id",
    )
    reversal_of = relationship("JournalEntry", remote_side=[id])

    __table_args__ = (
        UniqueConstraint('organization_id', 'entry_number', name='uq_journal_entries_org_number'),
        Index('ix_journal_entries_org_date', 'organization_id', 'date'),
    )


class JournalEntryLine(Base):
    """One debit or credit against an account"""
    __tablename__ = 'journal_entry_lines'

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id', ondelete='CASCADE'), nullable=False)
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False)
    debit_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    credit_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    description = Column(Text, nullable=True)
    reference = Column(String(255), nullable=True)
    contact_id = Column(Integer, ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account", back_populates="journal_lines")
    contact = relationship("Contact")

    __table_args__ = (
        CheckConstraint('debit_amount >= 0', name='ck_journal_lines_debit_non_negative'),
        CheckConstraint('credit_amount >= 0', name='ck_journal_lines_credit_non_negative'),
        Index('ix_journal_entry_lines_account_id', 'account_id'),
        Index('ix_journal_entry_lines_entry_id', 'journal_entry_id'),
    )


# ==================== CRM MODELS ====================

class Contact(Base):
    """Customer and/or supplier"""
    __tablename__ = 'contacts'

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    type = Column(String(20), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    tax_number = Column(String(100), nullable=True)
    payment_terms = Column(Integer, default=30)
    credit_limit = Column(Numeric(15, 2), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_customer(self) -> bool:
        return self.type in (ContactType.CUSTOMER.value, ContactType.BOTH.value)

    @property
    def is_supplier(self) -> bool:
        return self.type in (ContactType.SUPPLIER.value, ContactType.BOTH.value)

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_contacts_org_name'),
        Index('ix_contacts_organization_id', 'organization_id'),
    )


class TaxRate(Base):
    """Sales/purchase tax rate"""
    __tablename__ = 'tax_rates'

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(100), nullable=False)
    rate = Column(Numeric(8, 4), nullable=False)  # percentage, e.g. 7.5
    type = Column(String(20), default=TaxType.BOTH.value, nullable=False)
    account_id = Column(Integer, ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("Account")

    def applies_to(self, tax_type: TaxType) -> bool:
        return self.type in (tax_type.value, TaxType.BOTH.value)


# ==================== SALES MODELS ====================

class Invoice(Base):
    """Sales invoice"""
    __tablename__ = 'invoices'

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    invoice_number = Column(String(50), nullable=False)
    contact_id = Column(Integer, ForeignKey('contacts.id'), nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), default=InvoiceStatus.DRAFT.value, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    subtotal = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    total = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    paid_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id', ondelete='SET NULL'), nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    contact = relationship("Contact")
    journal_entry = relationship("JournalEntry")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.id",
    )

    __table_args__ = (
        UniqueConstraint('organization_id', 'invoice_number', name='uq_invoices_org_number'),
        Index('ix_invoices_organization_id', 'organization_id'),
    )


class InvoiceLineItem(Base):
    __tablename__ = 'invoice_line_items'

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    line_total = Column(Numeric(15, 2), nullable=False)
    tax_rate_id = Column(Integer, ForeignKey('tax_rates.id', ondelete='SET NULL'), nullable=True)
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    invoice = relationship("Invoice", back_populates="line_items")
    account = relationship("Account")
    tax_rate = relationship("TaxRate")


# ==================== PURCHASE MODELS ====================

class Bill(Base):
    """Supplier bill"""
    __tablename__ = 'bills'

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    bill_number = Column(String(50), nullable=False)
    contact_id = Column(Integer, ForeignKey('contacts.id'), nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), default=BillStatus.DRAFT.value, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    subtotal = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    total = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    paid_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    notes = Column(Text, nullable=True)
    reference = Column(String(255), nullable=True)  # supplier's own bill number
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id', ondelete='SET NULL'), nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    contact = relationship("Contact")
    journal_entry = relationship("JournalEntry")
    line_items = relationship(
        "BillLineItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillLineItem.id",
    )

    __table_args__ = (
        UniqueConstraint('organization_id', 'bill_number', name='uq_bills_org_number'),
        Index('ix_bills_organization_id', 'organization_id'),
    )


class BillLineItem(Base):
    __tablename__ = 'bill_line_items'

    id = Column(Integer, primary_key=True)
    bill_id = Column(Integer, ForeignKey('bills.id', ondelete='CASCADE'), nullable=False)
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    line_total = Column(Numeric(15, 2), nullable=False)
    tax_rate_id = Column(Integer, ForeignKey('tax_rates.id', ondelete='SET NULL'), nullable=True)
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    bill = relationship("Bill", back_populates="line_items")
    account = relationship("Account")
    tax_rate = relationship("TaxRate")
