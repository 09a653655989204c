"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, EmailStr, Field, ConfigDict, model_validator
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class AccountTypeEnum(str, Enum):
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSE = "Expense"


class ContactTypeEnum(str, Enum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"
    BOTH = "Both"


class TaxTypeEnum(str, Enum):
    SALES = "Sales"
    PURCHASE = "Purchase"
    BOTH = "Both"


# ==================== ACTOR ====================

class ActorContext(BaseModel):
    """Who is acting, on behalf of which organization"""
    user_id: int
    organization_id: int


# ==================== ORGANIZATION SCHEMAS ====================

class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    currency_code: str = Field(default="USD", min_length=3, max_length=3)
    seed_chart_of_accounts: bool = True


class OrganizationResponse(BaseModel):
    id: int
    name: str
    currency_code: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== ACCOUNT SCHEMAS ====================

class AccountBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    type: AccountTypeEnum
    description: Optional[str] = None


class AccountCreate(AccountBase):
    parent_id: Optional[int] = None


class AccountUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: Optional[bool] = None


class AccountResponse(BaseModel):
    id: int
    organization_id: int
    code: str
    name: str
    type: str
    description: Optional[str]
    parent_id: Optional[int]
    balance: Decimal
    is_system_account: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountTreeNode(AccountResponse):
    children: List["AccountTreeNode"] = []


class AccountLedgerRow(BaseModel):
    line_id: int
    journal_entry_id: int
    entry_number: str
    entry_date: date = Field(serialization_alias="date")
    description: Optional[str]
    debit: Decimal
    credit: Decimal
    balance: Decimal


class AccountLedgerResponse(BaseModel):
    account_id: int
    account_code: str
    account_name: str
    balance: Decimal
    entries: List[AccountLedgerRow]


# ==================== JOURNAL ENTRY SCHEMAS ====================

class JournalLineCreate(BaseModel):
    account_id: int
    debit_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=15)
    credit_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=15)
    description: Optional[str] = None
    reference: Optional[str] = Field(None, max_length=255)
    contact_id: Optional[int] = None


class JournalEntryCreate(BaseModel):
    entry_date: date = Field(..., alias="date")
    description: str = Field(..., min_length=1)
    reference: Optional[str] = Field(None, max_length=255)
    lines: List[JournalLineCreate] = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class JournalEntryReverse(BaseModel):
    reversal_date: Optional[date] = Field(None, alias="date")
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class JournalEntryLineResponse(BaseModel):
    id: int
    account_id: int
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str]
    reference: Optional[str]
    contact_id: Optional[int]

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResponse(BaseModel):
    id: int
    organization_id: int
    entry_number: str
    entry_date: date = Field(validation_alias="date", serialization_alias="date")
    description: str
    reference: Optional[str]
    total_amount: Decimal
    status: str
    source_type: str
    source_id: Optional[int]
    reversal_of_id: Optional[int]
    created_by: Optional[int]
    created_at: datetime
    lines: List[JournalEntryLineResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ==================== CONTACT SCHEMAS ====================

class ContactBase(BaseModel):
    type: ContactTypeEnum
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    tax_number: Optional[str] = Field(None, max_length=100)
    payment_terms: int = Field(default=30, ge=0)
    credit_limit: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)


class ContactCreate(ContactBase):
    pass


class ContactUpdate(BaseModel):
    type: Optional[ContactTypeEnum] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    tax_number: Optional[str] = Field(None, max_length=100)
    payment_terms: Optional[int] = Field(None, ge=0)
    credit_limit: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    is_active: Optional[bool] = None


class ContactResponse(BaseModel):
    id: int
    organization_id: int
    type: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    tax_number: Optional[str]
    payment_terms: Optional[int]
    credit_limit: Optional[Decimal]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== TAX RATE SCHEMAS ====================

class TaxRateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    rate: Decimal = Field(..., ge=0, le=100)
    type: TaxTypeEnum = TaxTypeEnum.BOTH
    account_id: Optional[int] = None


class TaxRateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)
    type: Optional[TaxTypeEnum] = None
    account_id: Optional[int] = None
    is_active: Optional[bool] = None


class TaxRateResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    rate: Decimal
    type: str
    account_id: Optional[int]
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# ==================== DOCUMENT (INVOICE / BILL) SCHEMAS ====================

class LineItemCreate(BaseModel):
    description: str = Field(..., min_length=1)
    account_id: int
    quantity: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    unit_price: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    tax_rate_id: Optional[int] = None


class LineItemResponse(BaseModel):
    id: int
    description: str
    account_id: int
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    tax_rate_id: Optional[int]
    tax_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class DocumentCreate(BaseModel):
    contact_id: int
    issue_date: date
    due_date: date
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = None
    line_items: List[LineItemCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_dates(self):
        if self.due_date < self.issue_date:
            raise ValueError("due_date must not be before issue_date")
        return self


class InvoiceCreate(DocumentCreate):
    terms: Optional[str] = None


class BillCreate(DocumentCreate):
    reference: Optional[str] = Field(None, max_length=255)


class DocumentUpdate(BaseModel):
    contact_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class InvoiceUpdate(DocumentUpdate):
    terms: Optional[str] = None


class BillUpdate(DocumentUpdate):
    reference: Optional[str] = Field(None, max_length=255)


class DocumentResponse(BaseModel):
    id: int
    organization_id: int
    contact_id: int
    issue_date: date
    due_date: date
    status: str
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    notes: Optional[str]
    journal_entry_id: Optional[int]
    created_at: datetime
    line_items: List[LineItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class InvoiceResponse(DocumentResponse):
    invoice_number: str
    terms: Optional[str]


class BillResponse(DocumentResponse):
    bill_number: str
    reference: Optional[str]


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=15)
    payment_date: date
    payment_account_id: int
    reference: Optional[str] = Field(None, max_length=255)


class DocumentCancel(BaseModel):
    cancel_date: Optional[date] = None


# ==================== REPORT SCHEMAS ====================

class TrialBalanceRow(BaseModel):
    account_id: int
    code: str
    name: str
    type: str
    debit: Decimal
    credit: Decimal


class TrialBalanceResponse(BaseModel):
    rows: List[TrialBalanceRow]
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool


class IntegrityMismatch(BaseModel):
    account_id: int
    code: str
    name: str
    recorded_balance: Decimal
    ledger_balance: Decimal
    difference: Decimal


class IntegrityReport(BaseModel):
    is_consistent: bool
    checked_accounts: int
    mismatches: List[IntegrityMismatch]
