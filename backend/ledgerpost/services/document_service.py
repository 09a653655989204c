"""
Document Service - Sales invoices and supplier bills

Documents never touch account balances themselves. Posting, payment and cancellation
derive journal lines and hand them to LedgerPostingService.stage_entry inside the same
transaction as the document change.
"""
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple
from sqlalchemy import func, update
from sqlalchemy.orm import Session, selectinload
import logging

from ledgerpost.core.config import Settings
from ledgerpost.core.database import atomic
from ledgerpost.core.exceptions import NotFoundError, UnknownAccount, ValidationError
from ledgerpost.models import (
    Account, Bill, BillLineItem, BillStatus, Contact, Invoice, InvoiceLineItem,
    InvoiceStatus, JournalSource, Organization, TaxRate, TaxType
)
from ledgerpost.repositories import TenantRepository
from ledgerpost.schemas import DocumentCancel, DocumentCreate, DocumentUpdate, PaymentCreate
from ledgerpost.services.accounting_service import AccountService
from ledgerpost.services.ledger_service import LedgerPostingService, PostingLine, exceeds_money_column
from ledgerpost.services.organization_service import (
    OrganizationService, INVOICE_SEQUENCE, BILL_SEQUENCE
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def calculate_line_totals(
    quantity: Decimal,
    unit_price: Decimal,
    tax_rate: Optional[TaxRate] = None,
    minor_unit: Decimal = Decimal("0.01"),
) -> Tuple[Decimal, Decimal]:
    """Return (line_total, tax_amount), each rounded half-up to the minor unit"""
    line_total = (Decimal(quantity) * Decimal(unit_price)).quantize(minor_unit, rounding=ROUND_HALF_UP)
    tax_amount = ZERO
    if tax_rate is not None and tax_rate.rate:
        tax_amount = (line_total * Decimal(tax_rate.rate) / Decimal(100)).quantize(
            minor_unit, rounding=ROUND_HALF_UP
        )
    return line_total, tax_amount


def derive_lines_from_document(
    document,
    control_account_id: int,
    default_tax_account_id: Optional[int] = None,
) -> List[PostingLine]:
    """
    Journal lines for posting an invoice or a bill.

    Invoice: credit revenue per line item, credit tax, debit receivable with the total.
    Bill: debit expense per line item, debit tax, credit payable with the total.
    Zero amounts are skipped and every line carries the document contact.
    """
    is_sale = isinstance(document, Invoice)
    contact_id = document.contact_id
    reference = document.invoice_number if is_sale else document.bill_number

    def side(account_id: int, amount: Decimal, description: str, debit: bool) -> PostingLine:
        return PostingLine(
            account_id=account_id,
            debit_amount=amount if debit else ZERO,
            credit_amount=ZERO if debit else amount,
            description=description,
            reference=reference,
            contact_id=contact_id,
        )

    lines = []
    for item in document.line_items:
        if item.line_total:
            lines.append(side(item.account_id, item.line_total, item.description, debit=not is_sale))
        if item.tax_amount:
            tax_rate = item.tax_rate
            tax_account_id = tax_rate.account_id if tax_rate and tax_rate.account_id else default_tax_account_id
            if tax_account_id is None:
                raise ValidationError("No tax account configured", reason="MissingSystemAccount")
            tax_name = tax_rate.name if tax_rate else "Tax"
            lines.append(side(tax_account_id, item.tax_amount, f"{tax_name} on {item.description}", debit=not is_sale))

    if document.total:
        label = "Receivable" if is_sale else "Payable"
        lines.append(side(control_account_id, document.total, f"{label} {reference}", debit=is_sale))

    return lines


class DocumentService(ABC):
    """Shared lifecycle for invoices and bills; subclasses fill in the class attributes"""

    model = None
    line_model = None
    number_field = None
    sequence = None
    prefix = None
    label = None
    source = None
    payment_source = None
    draft_status = None
    posted_status = None
    paid_status = None
    cancelled_status = None
    overdue_status = None
    tax_type = None

    def __init__(self, db: Session, organization_id: int, settings: Settings):
        self.db = db
        self.organization_id = organization_id
        self.settings = settings
        self.documents = TenantRepository(db, self.model, organization_id)
        self.contacts = TenantRepository(db, Contact, organization_id)
        self.accounts = TenantRepository(db, Account, organization_id)
        self.tax_rates = TenantRepository(db, TaxRate, organization_id)
        self.account_service = AccountService(db, organization_id)
        self.ledger = LedgerPostingService(db, organization_id, settings)

    # ==================== HOOKS ====================

    @abstractmethod
    def control_account_code(self) -> str:
        """Code of the receivable or payable account the document posts against"""

    @abstractmethod
    def contact_allowed(self, contact: Contact) -> bool:
        """Whether the contact may appear on this document kind"""

    def _apply_extra_fields(self, document, data):
        """Copy the fields only one document kind has"""

    # ==================== QUERIES ====================

    def get_by_id(self, document_id: int):
        document = self.documents.get(document_id, selectinload(self.model.line_items))
        if document is None:
            raise NotFoundError(f"{self.label} {document_id} not found")
        return document

    def list(self, status: Optional[str] = None, contact_id: Optional[int] = None, limit: int = 100):
        query = self.documents.query(selectinload(self.model.line_items))
        if status:
            query = query.filter(self.model.status == status)
        if contact_id:
            query = query.filter(self.model.contact_id == contact_id)
        return query.order_by(self.model.issue_date.desc(), self.model.id.desc()).limit(limit).all()

    # ==================== VALIDATION ====================

    def _resolve_contact(self, contact_id: int) -> Contact:
        contact = self.contacts.get(contact_id)
        if contact is None:
            raise ValidationError.for_field(
                "contact_id", f"Contact {contact_id} not found", reason="UnknownContact"
            )
        if not contact.is_active:
            raise ValidationError.for_field(
                "contact_id", f"Contact '{contact.name}' is inactive", reason="InactiveContact"
            )
        if not self.contact_allowed(contact):
            raise ValidationError.for_field(
                "contact_id",
                f"Contact '{contact.name}' is a {contact.type} and cannot receive a {self.label.lower()}",
                reason="InvalidContactType",
            )
        return contact

    def _build_line_items(self, items) -> list:
        minor_unit = self.settings.minor_unit
        places = self.settings.CURRENCY_DECIMAL_PLACES
        accounts = {a.id: a for a in self.accounts.get_many(item.account_id for item in items)}
        tax_rates = {
            t.id: t for t in self.tax_rates.get_many(
                item.tax_rate_id for item in items if item.tax_rate_id is not None
            )
        }

        line_items = []
        for i, item in enumerate(items):
            account = accounts.get(item.account_id)
            if account is None:
                raise UnknownAccount(item.account_id, field=f"line_items[{i}].account_id")
            if not account.is_active:
                raise ValidationError.for_field(
                    f"line_items[{i}].account_id",
                    f"Account {account.code} is inactive",
                    reason="InactiveAccount",
                )

            tax_rate = None
            if item.tax_rate_id is not None:
                tax_rate = tax_rates.get(item.tax_rate_id)
                if tax_rate is None or not tax_rate.is_active:
                    raise ValidationError.for_field(
                        f"line_items[{i}].tax_rate_id",
                        f"Tax rate {item.tax_rate_id} not found",
                        reason="UnknownTaxRate",
                    )
                if not tax_rate.applies_to(self.tax_type):
                    raise ValidationError.for_field(
                        f"line_items[{i}].tax_rate_id",
                        f"Tax rate '{tax_rate.name}' does not apply to {self.label.lower()}s",
                        reason="InvalidTaxRate",
                    )

            try:
                line_total, tax_amount = calculate_line_totals(
                    item.quantity, item.unit_price, tax_rate, minor_unit
                )
            except InvalidOperation:
                line_total = tax_amount = None
            if line_total is None or any(
                exceeds_money_column(value, places)
                for value in (item.quantity, item.unit_price, line_total + tax_amount)
            ):
                raise ValidationError.for_field(
                    f"line_items[{i}]", "Line amount is too large", reason="AmountOutOfRange"
                )
            line_item = self.line_model(
                account_id=account.id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=line_total,
                tax_rate_id=tax_rate.id if tax_rate else None,
                tax_amount=tax_amount,
            )
            line_item.tax_rate = tax_rate
            line_items.append(line_item)
        return line_items

    def _set_totals(self, document):
        subtotal = sum((item.line_total for item in document.line_items), ZERO)
        tax_amount = sum((item.tax_amount for item in document.line_items), ZERO)
        document.subtotal = subtotal
        document.tax_amount = tax_amount
        document.total = subtotal + tax_amount
        if exceeds_money_column(document.total, self.settings.CURRENCY_DECIMAL_PLACES):
            raise ValidationError.for_field(
                "line_items", "Document total is too large", reason="AmountOutOfRange"
            )

    def _require_status(self, document, allowed, action: str, reason: str):
        if document.status not in allowed:
            raise ValidationError(
                f"{self.label} {getattr(document, self.number_field)} is {document.status} "
                f"and cannot be {action}",
                reason=reason,
            )

    def _check_amount(self, amount: Decimal, field: str):
        minor_unit = self.settings.minor_unit
        if exceeds_money_column(amount, self.settings.CURRENCY_DECIMAL_PLACES):
            raise ValidationError.for_field(field, "Amount is too large", reason="AmountOutOfRange")
        if amount != amount.quantize(minor_unit):
            raise ValidationError.for_field(
                field,
                f"Amount must have at most {self.settings.CURRENCY_DECIMAL_PLACES} decimal places",
                reason="InvalidAmount",
            )

    def _transition(self, document_id: int, from_statuses, to_status: str) -> bool:
        """Move the status with a conditional UPDATE; False when another call got there first"""
        result = self.db.execute(
            update(self.model)
            .where(
                self.model.id == document_id,
                self.model.organization_id == self.organization_id,
                self.model.status.in_(list(from_statuses)),
            )
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def check_before_post(self, document, contact: Contact):
        """Extra rules checked when a document is posted"""

    # ==================== LIFECYCLE ====================

    def create(self, data: DocumentCreate, actor_id: Optional[int]):
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            self._resolve_contact(data.contact_id)
            line_items = self._build_line_items(data.line_items)

            currency = data.currency
            if not currency:
                organization = self.db.query(Organization).filter(
                    Organization.id == self.organization_id
                ).first()
                currency = organization.currency_code if organization else self.settings.DEFAULT_CURRENCY

            number = OrganizationService(self.db).next_number(
                self.organization_id, self.sequence, self.prefix
            )
            document = self.model(
                contact_id=data.contact_id,
                issue_date=data.issue_date,
                due_date=data.due_date,
                status=self.draft_status,
                currency=currency.upper(),
                notes=data.notes,
                paid_amount=ZERO,
                created_by=actor_id,
            )
            setattr(document, self.number_field, number)
            self._apply_extra_fields(document, data)
            document.line_items = line_items
            self._set_totals(document)
            self.documents.add(document)
            self.db.flush()
            document_id = document.id

        logger.info(f"Created {self.label.lower()} {number} for organization {self.organization_id}")
        return self.get_by_id(document_id)

    def update(self, document_id: int, data: DocumentUpdate):
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            document = self.get_by_id(document_id)
            self._require_status(document, [self.draft_status], "edited", "DocumentNotEditable")

            update_data = data.model_dump(exclude_unset=True, exclude={"line_items"})
            if update_data.get("contact_id") is not None:
                self._resolve_contact(update_data["contact_id"])
            for key, value in update_data.items():
                if value is not None or key in ("notes", "terms", "reference"):
                    setattr(document, key, value)
            if document.due_date < document.issue_date:
                raise ValidationError.for_field(
                    "due_date", "due_date must not be before issue_date", reason="InvalidDates"
                )

            if data.line_items is not None:
                document.line_items = self._build_line_items(data.line_items)
                self._set_totals(document)
            self.db.flush()

        return self.get_by_id(document_id)

    def delete(self, document_id: int):
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            document = self.get_by_id(document_id)
            self._require_status(document, [self.draft_status], "deleted", "DocumentNotDeletable")
            self.documents.delete(document)
            self.db.flush()
        logger.info(f"Deleted draft {self.label.lower()} {document_id} for organization {self.organization_id}")

    def post(self, document_id: int, actor_id: Optional[int]):
        """Draft -> posted status, with the derived journal entry in the same transaction"""
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            document = self.get_by_id(document_id)
            self._require_status(document, [self.draft_status], "posted", "DocumentNotPostable")
            if not document.total:
                raise ValidationError(f"Cannot post a {self.label.lower()} with a zero total", reason="EmptyDocument")

            contact = self._resolve_contact(document.contact_id)
            self.check_before_post(document, contact)

            if not self._transition(document.id, [self.draft_status], self.posted_status):
                raise ValidationError(
                    f"{self.label} {document_id} was changed by another request", reason="DocumentNotPostable"
                )

            control = self.account_service.require_by_code(self.control_account_code())
            default_tax_account_id = None
            if document.tax_amount:
                default_tax_account_id = self.account_service.require_by_code(
                    self.settings.TAX_ACCOUNT_CODE
                ).id

            number = getattr(document, self.number_field)
            lines = derive_lines_from_document(document, control.id, default_tax_account_id)
            entry = self.ledger.stage_entry(
                document.issue_date,
                f"{self.label} {number}",
                lines,
                actor_id,
                reference=number,
                source_type=self.source,
                source_id=document.id,
            )
            document.journal_entry_id = entry.id
            self.db.flush()
            self.db.expire(document, ["status"])

        logger.info(f"Posted {self.label.lower()} {number} as {entry.entry_number}")
        return self.get_by_id(document_id)

    @abstractmethod
    def payment_lines(self, document, amount: Decimal, payment_account_id: int, control_account_id: int,
                      reference: str) -> List[PostingLine]:
        """Journal lines for a payment against the document"""

    def record_payment(self, document_id: int, data: PaymentCreate, actor_id: Optional[int]):
        """Record a payment; the document becomes Paid once nothing is outstanding"""
        self._check_amount(data.amount, "amount")
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            document = self.get_by_id(document_id)
            self._require_status(
                document, [self.posted_status, self.overdue_status], "paid", "DocumentNotPayable"
            )
            payment_account = self.accounts.get(data.payment_account_id)
            if payment_account is None:
                raise UnknownAccount(data.payment_account_id, field="payment_account_id")

            outstanding = document.total - document.paid_amount
            if data.amount > outstanding:
                raise ValidationError.for_field(
                    "amount",
                    f"Payment of {data.amount} exceeds the outstanding {outstanding}",
                    reason="Overpayment",
                )

            # Increment first so the row is locked, then re-check against the stored value
            self.documents.increment(document.id, "paid_amount", data.amount)
            self.db.refresh(document)
            if document.paid_amount > document.total:
                raise ValidationError.for_field(
                    "amount",
                    f"Payment of {data.amount} exceeds the outstanding balance",
                    reason="Overpayment",
                )

            number = getattr(document, self.number_field)
            control = self.account_service.require_by_code(self.control_account_code())
            lines = self.payment_lines(
                document, data.amount, payment_account.id, control.id, data.reference or number
            )
            entry = self.ledger.stage_entry(
                data.payment_date,
                f"Payment for {self.label} {number}",
                lines,
                actor_id,
                reference=data.reference or number,
                source_type=self.payment_source,
                source_id=document.id,
            )

            if document.paid_amount >= document.total:
                document.status = self.paid_status
            self.db.flush()

        logger.info(f"Recorded payment of {data.amount} on {self.label.lower()} {number} as {entry.entry_number}")
        return self.get_by_id(document_id)

    def cancel(self, document_id: int, data: Optional[DocumentCancel], actor_id: Optional[int]):
        """Draft documents are cancelled outright; posted unpaid ones get their entry reversed"""
        cancel_date = data.cancel_date if data else None
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            document = self.get_by_id(document_id)
            number = getattr(document, self.number_field)

            if document.status == self.draft_status:
                document.status = self.cancelled_status
            elif document.status in (self.posted_status, self.overdue_status) and not document.paid_amount:
                if not self._transition(
                    document.id, [self.posted_status, self.overdue_status], self.cancelled_status
                ):
                    raise ValidationError(
                        f"{self.label} {document_id} was changed by another request",
                        reason="DocumentNotCancellable",
                    )
                if document.journal_entry_id:
                    self.ledger.stage_reversal(
                        document.journal_entry_id,
                        actor_id,
                        reversal_date=cancel_date,
                        description=f"Cancellation of {self.label} {number}",
                    )
                self.db.expire(document, ["status"])
            else:
                self._require_status(document, [], "cancelled", "DocumentNotCancellable")
            self.db.flush()

        logger.info(f"Cancelled {self.label.lower()} {number} for organization {self.organization_id}")
        return self.get_by_id(document_id)

    def mark_overdue(self, as_of: Optional[date] = None) -> int:
        """Flag posted, unpaid documents whose due date has passed. Returns how many changed."""
        as_of = as_of or date.today()
        with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
            result = self.db.execute(
                update(self.model)
                .where(
                    self.model.organization_id == self.organization_id,
                    self.model.status == self.posted_status,
                    self.model.due_date < as_of,
                )
                .values(status=self.overdue_status)
                .execution_options(synchronize_session=False)
            )
            changed = result.rowcount
        if changed:
            logger.info(f"Marked {changed} {self.label.lower()}s overdue for organization {self.organization_id}")
        return changed


class InvoiceService(DocumentService):
    model = Invoice
    line_model = InvoiceLineItem
    number_field = "invoice_number"
    sequence = INVOICE_SEQUENCE
    prefix = "INV"
    label = "Invoice"
    source = JournalSource.INVOICE
    payment_source = JournalSource.INVOICE_PAYMENT
    draft_status = InvoiceStatus.DRAFT.value
    posted_status = InvoiceStatus.SENT.value
    paid_status = InvoiceStatus.PAID.value
    cancelled_status = InvoiceStatus.CANCELLED.value
    overdue_status = InvoiceStatus.OVERDUE.value
    tax_type = TaxType.SALES

    def control_account_code(self) -> str:
        return self.settings.RECEIVABLE_ACCOUNT_CODE

    def contact_allowed(self, contact: Contact) -> bool:
        return contact.is_customer

    def _apply_extra_fields(self, document, data):
        document.terms = getattr(data, "terms", None)

    def check_before_post(self, document, contact: Contact):
        """
        Check if customer has sufficient credit limit for this invoice.

        Outstanding is the unpaid part of the customer's posted invoices. A limit of
        zero or none means unlimited credit.
        """
        if not contact.credit_limit or contact.credit_limit <= 0:
            return

        outstanding = self.documents.query().with_entities(
            func.coalesce(func.sum(Invoice.total - Invoice.paid_amount), 0)
        ).filter(
            Invoice.contact_id == contact.id,
            Invoice.status.in_([InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value]),
        ).scalar()
        outstanding = Decimal(str(outstanding)).quantize(self.settings.minor_unit)

        available = contact.credit_limit - outstanding
        if document.total > available:
            raise ValidationError(
                f"Credit limit exceeded for customer '{contact.name}'. "
                f"Credit limit: {contact.credit_limit}, "
                f"Current outstanding: {outstanding}, "
                f"Invoice total: {document.total}",
                reason="CreditLimitExceeded",
            )

    def payment_lines(self, document, amount, payment_account_id, control_account_id, reference):
        # Debit cash/bank, credit receivable
        return [
            PostingLine(payment_account_id, amount, ZERO, f"Payment for {document.invoice_number}",
                        reference, document.contact_id),
            PostingLine(control_account_id, ZERO, amount, f"Payment for {document.invoice_number}",
                        reference, document.contact_id),
        ]


class BillService(DocumentService):
    model = Bill
    line_model = BillLineItem
    number_field = "bill_number"
    sequence = BILL_SEQUENCE
    prefix = "BILL"
    label = "Bill"
    source = JournalSource.BILL
    payment_source = JournalSource.BILL_PAYMENT
    draft_status = BillStatus.DRAFT.value
    posted_status = BillStatus.APPROVED.value
    paid_status = BillStatus.PAID.value
    cancelled_status = BillStatus.CANCELLED.value
    overdue_status = BillStatus.OVERDUE.value
    tax_type = TaxType.PURCHASE

    def control_account_code(self) -> str:
        return self.settings.PAYABLE_ACCOUNT_CODE

    def contact_allowed(self, contact: Contact) -> bool:
        return contact.is_supplier

    def _apply_extra_fields(self, document, data):
        document.reference = getattr(data, "reference", None)

    def payment_lines(self, document, amount, payment_account_id, control_account_id, reference):
        # Debit payable, credit cash/bank
        return [
            PostingLine(control_account_id, amount, ZERO, f"Payment for {document.bill_number}",
                        reference, document.contact_id),
            PostingLine(payment_account_id, ZERO, amount, f"Payment for {document.bill_number}",
                        reference, document.contact_id),
        ]

