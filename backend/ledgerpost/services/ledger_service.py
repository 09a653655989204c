"""
Ledger Service - Journal entry posting, reversal and queries

Every change to an account balance in the system goes through
LedgerPostingService.stage_entry.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload
import logging

from ledgerpost.core.config import Settings
from ledgerpost.core.database import atomic
from ledgerpost.core.exceptions import (
    NotFoundError, PersistenceFailure, UnbalancedEntry, UnknownAccount, ValidationError
)
from ledgerpost.models import (
    Account, Contact, JournalEntry, JournalEntryLine, JournalEntryStatus, JournalSource
)
from ledgerpost.repositories import TenantRepository
from ledgerpost.services.organization_service import OrganizationService, ENTRY_SEQUENCE

logger = logging.getLogger(__name__)

ENTRY_PREFIX = "JE"

# Precision of the Numeric(15, 2) money columns
MONEY_DIGITS = 15


@dataclass(frozen=True)
class PostingLine:
    """One debit or credit to post; JournalLineCreate has the same shape"""
    account_id: int
    debit_amount: Decimal = Decimal("0.00")
    credit_amount: Decimal = Decimal("0.00")
    description: Optional[str] = None
    reference: Optional[str] = None
    contact_id: Optional[int] = None


def exceeds_money_column(amount: Decimal, places: int) -> bool:
    """True when the amount has more integer digits than the money columns can store"""
    return amount != 0 and amount.adjusted() >= MONEY_DIGITS - places


def _to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their printed value instead of their binary expansion
    return Decimal(str(value))


class LedgerPostingService:
    """
    Posts balanced journal entries for one organization.

    `stage_entry` validates and writes an entry inside the caller's transaction and is
    what document flows build on. `post_journal_entry` and `reverse_journal_entry` wrap
    it in their own unit of work.
    """

    def __init__(self, db: Session, organization_id: int, settings: Settings):
        self.db = db
        self.organization_id = organization_id
        self.settings = settings
        self.accounts = TenantRepository(db, Account, organization_id)
        self.contacts = TenantRepository(db, Contact, organization_id)
        self.entries = TenantRepository(db, JournalEntry, organization_id)

    # ==================== VALIDATION ====================

    def _normalize_lines(self, lines: Sequence) -> Tuple[List[PostingLine], Decimal, Decimal]:
        """Check amounts line by line and return the normalized lines with both totals"""
        if not lines:
            raise ValidationError.for_field(
                "lines", "A journal entry needs at least one line", reason="EmptyEntry"
            )

        minor_unit = self.settings.minor_unit
        places = self.settings.CURRENCY_DECIMAL_PLACES
        errors: List[Dict] = []
        normalized: List[PostingLine] = []
        total_debit = Decimal("0.00")
        total_credit = Decimal("0.00")

        for i, line in enumerate(lines):
            amounts = {}
            for name in ("debit_amount", "credit_amount"):
                field = f"lines[{i}].{name}"
                try:
                    amount = _to_decimal(getattr(line, name, None))
                except (InvalidOperation, ValueError):
                    errors.append({"field": field, "message": "Amount is not a number"})
                    continue
                if not amount.is_finite():
                    errors.append({"field": field, "message": "Amount must be finite"})
                    continue
                if amount < 0:
                    errors.append({"field": field, "message": "Amount must not be negative"})
                    continue
                if exceeds_money_column(amount, places):
                    errors.append({"field": field, "message": "Amount is too large"})
                    continue
                try:
                    quantized = amount.quantize(minor_unit)
                except InvalidOperation:
                    errors.append({"field": field, "message": "Amount is too large"})
                    continue
                if amount != quantized:
                    errors.append({
                        "field": field,
                        "message": f"Amount must have at most {places} decimal places",
                    })
                    continue
                amounts[name] = quantized

            if len(amounts) != 2:
                continue

            normalized.append(PostingLine(
                account_id=line.account_id,
                debit_amount=amounts["debit_amount"],
                credit_amount=amounts["credit_amount"],
                description=getattr(line, "description", None),
                reference=getattr(line, "reference", None),
                contact_id=getattr(line, "contact_id", None),
            ))
            total_debit += amounts["debit_amount"]
            total_credit += amounts["credit_amount"]

        if not errors and exceeds_money_column(max(total_debit, total_credit), places):
            errors.append({"field": "lines", "message": "Entry total is too large"})

        if errors:
            raise ValidationError("Invalid journal lines", errors=errors, reason="InvalidLine")

        return normalized, total_debit, total_credit

    def _check_balanced(self, total_debit: Decimal, total_credit: Decimal):
        if abs(total_debit - total_credit) >= self.settings.BALANCE_TOLERANCE:
            raise UnbalancedEntry(total_debit, total_credit)

    def _check_references(self, lines: List[PostingLine], allow_inactive: bool = False):
        """Every account and contact must exist in this organization"""
        accounts = {a.id: a for a in self.accounts.get_many(l.account_id for l in lines)}
        for i, line in enumerate(lines):
            account = accounts.get(line.account_id)
            if account is None:
                raise UnknownAccount(line.account_id, field=f"lines[{i}].account_id")
            if not account.is_active and not allow_inactive:
                raise ValidationError.for_field(
                    f"lines[{i}].account_id",
                    f"Account {account.code} is inactive",
                    reason="InactiveAccount",
                )

        contact_ids = {l.contact_id for l in lines if l.contact_id is not None}
        if contact_ids:
            found = {c.id for c in self.contacts.get_many(contact_ids)}
            for i, line in enumerate(lines):
                if line.contact_id is not None and line.contact_id not in found:
                    raise ValidationError.for_field(
                        f"lines[{i}].contact_id",
                        f"Contact {line.contact_id} not found",
                        reason="UnknownContact",
                    )

    def validate(self, lines: Sequence, allow_inactive: bool = False) -> Tuple[List[PostingLine], Decimal]:
        """Run every check that happens before a write; returns normalized lines and the total"""
        normalized, total_debit, total_credit = self._normalize_lines(lines)
        self._check_balanced(total_debit, total_credit)
        self._check_references(normalized, allow_inactive=allow_inactive)
        return normalized, total_debit

    # ==================== WRITES ====================

    def _apply_balances(self, lines: Iterable[PostingLine]) -> List[int]:
        """
        Add each account's net debit to its balance.

        Deltas are summed per account and applied in ascending account id order, so
        concurrent postings lock account rows in the same order.
        """
        deltas: Dict[int, Decimal] = defaultdict(lambda: Decimal("0.00"))
        for line in lines:
            deltas[line.account_id] += line.debit_amount - line.credit_amount

        touched = []
        for account_id in sorted(deltas):
            delta = deltas[account_id]
            if delta == 0:
                continue
            if self.accounts.increment(account_id, "balance", delta) != 1:
                raise UnknownAccount(account_id)
            touched.append(account_id)
        return touched

    def stage_entry(
        self,
        entry_date: date,
        description: str,
        lines: Sequence,
        actor_id: Optional[int],
        reference: Optional[str] = None,
        source_type: JournalSource = JournalSource.MANUAL,
        source_id: Optional[int] = None,
        reversal_of_id: Optional[int] = None,
        allow_inactive: bool = False,
    ) -> JournalEntry:
        """
        Validate and write a posted entry in the current transaction without committing.

        Raises before any write when the lines are invalid or unbalanced.
        """
        normalized, total = self.validate(lines, allow_inactive=allow_inactive)

        entry_number = OrganizationService(self.db).next_number(
            self.organization_id, ENTRY_SEQUENCE, ENTRY_PREFIX
        )
        entry = JournalEntry(
            entry_number=entry_number,
            date=entry_date,
            description=description,
            reference=reference,
            total_amount=total,
            status=JournalEntryStatus.POSTED.value,
            source_type=source_type.value,
            source_id=source_id,
            reversal_of_id=reversal_of_id,
            created_by=actor_id,
        )
        self.entries.add(entry)
        for line in normalized:
            entry.lines.append(JournalEntryLine(
                account_id=line.account_id,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                description=line.description,
                reference=line.reference,
                contact_id=line.contact_id,
            ))
        self.db.flush()

        touched = self._apply_balances(normalized)
        # Balances were changed behind the identity map; reload them on next access
        for account in self.accounts.get_many(touched):
            self.db.expire(account, ["balance"])

        logger.info(
            f"Staged journal entry {entry.entry_number} for organization {self.organization_id}: "
            f"{len(normalized)} lines, total {total} ({source_type.value})"
        )
        return entry

    def post_journal_entry(
        self,
        entry_date: date,
        description: str,
        lines: Sequence,
        actor_id: Optional[int],
        reference: Optional[str] = None,
    ) -> JournalEntry:
        """Post a manual journal entry in its own transaction"""
        try:
            with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
                entry = self.stage_entry(entry_date, description, lines, actor_id, reference=reference)
        except (ValidationError, NotFoundError) as e:
            logger.warning(
                f"Rejected journal entry for organization {self.organization_id}: "
                f"{e.reason}: {e.message}"
            )
            raise
        except PersistenceFailure:
            logger.error(f"Failed to post journal entry for organization {self.organization_id}")
            raise

        logger.info(f"Posted journal entry {entry.entry_number} for organization {self.organization_id}")
        return entry

    def stage_reversal(
        self,
        entry_id: int,
        actor_id: Optional[int],
        reversal_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> JournalEntry:
        """Write the negating entry and mark the original Reversed, without committing"""
        original = self.entries.get(entry_id)
        if original is None:
            raise NotFoundError(f"Journal entry {entry_id} not found")

        # Conditional update so two concurrent reversals cannot both succeed
        result = self.db.execute(
            update(JournalEntry)
            .where(
                JournalEntry.id == entry_id,
                JournalEntry.organization_id == self.organization_id,
                JournalEntry.status == JournalEntryStatus.POSTED.value,
            )
            .values(status=JournalEntryStatus.REVERSED.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ValidationError(
                f"Journal entry {original.entry_number} is {original.status} and cannot be reversed",
                reason="EntryNotReversible",
            )

        swapped = [
            PostingLine(
                account_id=line.account_id,
                debit_amount=line.credit_amount,
                credit_amount=line.debit_amount,
                description=line.description,
                reference=line.reference,
                contact_id=line.contact_id,
            )
            for line in original.lines
        ]
        reversal = self.stage_entry(
            reversal_date or date.today(),
            description or f"Reversal of {original.entry_number}",
            swapped,
            actor_id,
            reference=original.entry_number,
            source_type=JournalSource.REVERSAL,
            source_id=original.source_id,
            reversal_of_id=original.id,
            allow_inactive=True,
        )
        self.db.expire(original, ["status"])
        return reversal

    def reverse_journal_entry(
        self,
        entry_id: int,
        actor_id: Optional[int],
        reversal_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> JournalEntry:
        """Reverse a posted entry in its own transaction"""
        try:
            with atomic(self.db, self.settings.TRANSACTION_TIMEOUT_SECONDS):
                reversal = self.stage_reversal(entry_id, actor_id, reversal_date, description)
        except ValidationError as e:
            logger.warning(f"Rejected reversal of journal entry {entry_id}: {e.message}")
            raise

        logger.info(
            f"Reversed journal entry {entry_id} with {reversal.entry_number} "
            f"for organization {self.organization_id}"
        )
        return reversal


class JournalEntryService:
    """Read side of the journal"""

    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id
        self.entries = TenantRepository(db, JournalEntry, organization_id)

    def get_by_id(self, entry_id: int) -> JournalEntry:
        entry = self.entries.get(entry_id, selectinload(JournalEntry.lines))
        if entry is None:
            raise NotFoundError(f"Journal entry {entry_id} not found")
        return entry

    def list(
        self,
        account_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
        source_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[JournalEntry]:
        query = self.entries.query(selectinload(JournalEntry.lines))
        if account_id is not None:
            query = query.filter(
                JournalEntry.lines.any(JournalEntryLine.account_id == account_id)
            )
        if start_date:
            query = query.filter(JournalEntry.date >= start_date)
        if end_date:
            query = query.filter(JournalEntry.date <= end_date)
        if status:
            query = query.filter(JournalEntry.status == status)
        if source_type:
            query = query.filter(JournalEntry.source_type == source_type)
        return query.order_by(JournalEntry.date.desc(), JournalEntry.id.desc()).limit(limit).all()

    def get_by_source(self, source_type: JournalSource, source_id: int) -> List[JournalEntry]:
        return self.entries.query().filter(
            JournalEntry.source_type == source_type.value,
            JournalEntry.source_id == source_id,
        ).order_by(JournalEntry.id).all()
