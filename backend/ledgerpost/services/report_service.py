"""
Report Service - Trial balance and ledger integrity
"""
from typing import Dict, List
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from datetime import date
import logging

from ledgerpost.core.config import Settings
from ledgerpost.models import Account, JournalEntry, JournalEntryLine
from ledgerpost.repositories import TenantRepository

logger = logging.getLogger(__name__)


class ReportService:
    """Financial reports service"""

    def __init__(self, db: Session, organization_id: int, settings: Settings):
        self.db = db
        self.organization_id = organization_id
        self.settings = settings
        self.accounts = TenantRepository(db, Account, organization_id)

    def _money(self, value) -> Decimal:
        # SUM over Numeric comes back as float on SQLite
        return Decimal(str(value or 0)).quantize(self.settings.minor_unit)

    def _line_totals(self, as_of_date: date = None) -> Dict[int, Decimal]:
        """Net debit per account recomputed from journal lines"""
        query = self.db.query(
            JournalEntryLine.account_id,
            func.sum(JournalEntryLine.debit_amount - JournalEntryLine.credit_amount),
        ).join(JournalEntry).filter(
            JournalEntry.organization_id == self.organization_id
        )
        if as_of_date:
            query = query.filter(JournalEntry.date <= as_of_date)
        rows = query.group_by(JournalEntryLine.account_id).all()
        return {account_id: self._money(total) for account_id, total in rows}

    def get_trial_balance(self, as_of_date: date = None) -> Dict:
        """
        Every account with a non-zero balance, split into debit and credit columns.

        Without a date the stored running balances are used; with one, balances are
        recomputed from lines dated on or before it.
        """
        accounts = self.accounts.query().order_by(Account.code).all()
        recomputed = self._line_totals(as_of_date) if as_of_date else None

        rows = []
        total_debit = Decimal("0.00")
        total_credit = Decimal("0.00")
        for account in accounts:
            if recomputed is not None:
                balance = recomputed.get(account.id, Decimal("0.00"))
            else:
                balance = account.balance or Decimal("0.00")
            if balance == 0:
                continue

            debit = balance if balance > 0 else Decimal("0.00")
            credit = -balance if balance < 0 else Decimal("0.00")
            total_debit += debit
            total_credit += credit
            rows.append({
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "type": account.type,
                "debit": debit,
                "credit": credit,
            })

        return {
            "rows": rows,
            "total_debit": total_debit,
            "total_credit": total_credit,
            "is_balanced": total_debit == total_credit,
        }

    def check_ledger_integrity(self) -> Dict:
        """Compare each account's running balance with the sum of its journal lines"""
        accounts = self.accounts.query().order_by(Account.code).all()
        recomputed = self._line_totals()

        mismatches: List[Dict] = []
        for account in accounts:
            recorded = account.balance or Decimal("0.00")
            expected = recomputed.get(account.id, Decimal("0.00"))
            if recorded != expected:
                mismatches.append({
                    "account_id": account.id,
                    "code": account.code,
                    "name": account.name,
                    "recorded_balance": recorded,
                    "ledger_balance": expected,
                    "difference": recorded - expected,
                })

        if mismatches:
            logger.error(
                f"Ledger integrity check found {len(mismatches)} mismatched accounts "
                f"for organization {self.organization_id}"
            )

        return {
            "is_consistent": not mismatches,
            "checked_accounts": len(accounts),
            "mismatches": mismatches,
        }
