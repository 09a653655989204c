"""
Accounting Service - Chart of Accounts, account tree, account ledger
"""
from typing import Optional, List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date

from ledgerpost.core.exceptions import NotFoundError, UnknownAccount, ValidationError, reject_nulls
from ledgerpost.models import (
    Account, JournalEntry, JournalEntryLine, InvoiceLineItem, BillLineItem, TaxRate
)
from ledgerpost.repositories import TenantRepository
from ledgerpost.schemas import AccountCreate, AccountUpdate


class AccountService:
    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id
        self.accounts = TenantRepository(db, Account, organization_id)

    def get_by_id(self, account_id: int) -> Account:
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account

    def get_by_code(self, code: str) -> Optional[Account]:
        return self.accounts.get_by(code=code)

    def require_by_code(self, code: str) -> Account:
        """System account lookup used by document posting"""
        account = self.get_by_code(code)
        if account is None:
            raise ValidationError(
                f"Account with code '{code}' is missing from the chart of accounts",
                reason="MissingSystemAccount",
            )
        return account

    def list(self, include_inactive: bool = False, account_type: Optional[str] = None) -> List[Account]:
        query = self.accounts.query()
        if not include_inactive:
            query = query.filter(Account.is_active == True)
        if account_type:
            # Handle both enum and string types
            type_value = account_type.value if hasattr(account_type, 'value') else str(account_type)
            query = query.filter(Account.type.ilike(type_value))
        return query.order_by(Account.code).all()

    def _check_parent(self, parent_id: Optional[int], account_id: Optional[int] = None):
        """Parent must be in this organization and must not be the account or its descendant"""
        if parent_id is None:
            return
        parent = self.accounts.get(parent_id)
        if parent is None:
            raise UnknownAccount(parent_id, field="parent_id")

        seen = set()
        node = parent
        while node is not None and node.id not in seen:
            if account_id is not None and node.id == account_id:
                raise ValidationError.for_field(
                    "parent_id", "An account cannot be its own ancestor", reason="AccountCycle"
                )
            seen.add(node.id)
            node = node.parent

    def create(self, account_data: AccountCreate) -> Account:
        account_type = account_data.type
        if hasattr(account_type, 'value'):
            account_type = account_type.value

        if self.get_by_code(account_data.code):
            raise ValidationError.for_field(
                "code",
                f"Account with code '{account_data.code}' already exists",
                reason="DuplicateAccountCode",
            )
        self._check_parent(account_data.parent_id)

        account = Account(
            code=account_data.code,
            name=account_data.name,
            type=account_type,
            description=account_data.description,
            parent_id=account_data.parent_id,
            balance=Decimal("0.00"),
            is_active=True,
        )
        self.accounts.add(account)
        self.db.flush()
        return account

    def update(self, account_id: int, account_data: AccountUpdate) -> Account:
        account = self.get_by_id(account_id)
        update_data = account_data.model_dump(exclude_unset=True)
        reject_nulls(update_data, ("code", "name", "is_active"))

        if "code" in update_data and update_data["code"] != account.code:
            if self.get_by_code(update_data["code"]):
                raise ValidationError.for_field(
                    "code",
                    f"Account with code '{update_data['code']}' already exists",
                    reason="DuplicateAccountCode",
                )
            if account.is_system_account:
                raise ValidationError.for_field(
                    "code", "System account codes cannot be changed", reason="SystemAccount"
                )

        if "parent_id" in update_data:
            self._check_parent(update_data["parent_id"], account_id=account.id)

        if update_data.get("is_active") is False and account.is_system_account:
            raise ValidationError.for_field(
                "is_active", "System accounts cannot be deactivated", reason="SystemAccount"
            )

        for field, value in update_data.items():
            setattr(account, field, value)

        self.db.flush()
        return account

    def is_referenced(self, account_id: int) -> bool:
        """True when any journal line, document line or tax rate points at the account"""
        for model in (JournalEntryLine, InvoiceLineItem, BillLineItem, TaxRate):
            if self.db.query(model.id).filter(model.account_id == account_id).first():
                return True
        return False

    def delete(self, account_id: int) -> bool:
        """
        Delete an account. Returns True when the row was removed and False when it was
        only deactivated because history references it.
        """
        account = self.get_by_id(account_id)

        if account.is_system_account:
            raise ValidationError("System accounts cannot be deleted", reason="SystemAccount")

        if self.is_referenced(account.id):
            account.is_active = False
            self.db.flush()
            return False

        for child in list(account.children):
            child.parent_id = account.parent_id
        self.accounts.delete(account)
        self.db.flush()
        return True

    def get_tree(self, include_inactive: bool = False) -> List[Dict]:
        """Accounts nested under their parents, roots ordered by code"""
        accounts = self.list(include_inactive=include_inactive)
        nodes = {
            a.id: {
                "id": a.id,
                "organization_id": a.organization_id,
                "code": a.code,
                "name": a.name,
                "type": a.type,
                "description": a.description,
                "parent_id": a.parent_id,
                "balance": a.balance,
                "is_system_account": a.is_system_account,
                "is_active": a.is_active,
                "created_at": a.created_at,
                "children": [],
            }
            for a in accounts
        }

        roots = []
        for account in accounts:
            node = nodes[account.id]
            if account.parent_id in nodes:
                nodes[account.parent_id]["children"].append(node)
            else:
                roots.append(node)
        return roots

    def get_ledger(self, account_id: int, start_date: date = None, end_date: date = None) -> Dict:
        """Lines posted to one account with a running debit-positive balance"""
        account = self.get_by_id(account_id)

        opening = Decimal("0.00")
        if start_date:
            opening = self.db.query(
                func.coalesce(
                    func.sum(JournalEntryLine.debit_amount - JournalEntryLine.credit_amount), 0
                )
            ).join(JournalEntry).filter(
                JournalEntryLine.account_id == account.id,
                JournalEntry.organization_id == self.organization_id,
                JournalEntry.date < start_date,
            ).scalar()
            opening = Decimal(str(opening)).quantize(Decimal("0.01"))

        query = self.db.query(JournalEntryLine, JournalEntry).join(JournalEntry).filter(
            JournalEntryLine.account_id == account.id,
            JournalEntry.organization_id == self.organization_id,
        )
        if start_date:
            query = query.filter(JournalEntry.date >= start_date)
        if end_date:
            query = query.filter(JournalEntry.date <= end_date)
        query = query.order_by(JournalEntry.date, JournalEntry.id, JournalEntryLine.id)

        running = opening
        rows = []
        for line, entry in query.all():
            debit = line.debit_amount or Decimal("0.00")
            credit = line.credit_amount or Decimal("0.00")
            running += debit - credit
            rows.append({
                "line_id": line.id,
                "journal_entry_id": entry.id,
                "entry_number": entry.entry_number,
                "entry_date": entry.date,
                "description": line.description or entry.description,
                "debit": debit,
                "credit": credit,
                "balance": running,
            })

        return {
            "account_id": account.id,
            "account_code": account.code,
            "account_name": account.name,
            "balance": running,
            "entries": rows,
        }
