"""
Organization Service - Tenants, default chart of accounts, number sequences
"""
from typing import Optional, List
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from ledgerpost.core.config import Settings
from ledgerpost.core.exceptions import NotFoundError
from ledgerpost.models import Organization, Account
from ledgerpost.schemas import OrganizationCreate

logger = logging.getLogger(__name__)

ENTRY_SEQUENCE = "next_entry_number"
INVOICE_SEQUENCE = "next_invoice_number"
BILL_SEQUENCE = "next_bill_number"


class OrganizationService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, organization_id: int) -> Optional[Organization]:
        return self.db.query(Organization).filter(Organization.id == organization_id).first()

    def create(self, organization_data: OrganizationCreate, settings: Settings) -> Organization:
        """Create a new organization, optionally with the default chart of accounts"""
        organization = Organization(
            name=organization_data.name,
            currency_code=organization_data.currency_code.upper(),
            is_active=True,
        )
        self.db.add(organization)
        self.db.flush()

        if organization_data.seed_chart_of_accounts:
            self.create_default_chart_of_accounts(organization.id, settings)

        logger.info(f"Created organization {organization.id} ({organization.name})")
        return organization

    def create_default_chart_of_accounts(self, organization_id: int, settings: Settings) -> List[Account]:
        """Create default chart of accounts for a new organization"""
        default_accounts = [
            # Assets
            Account(code="1000", name="Cash", type="Asset", is_system_account=True),
            Account(code="1100", name="Bank", type="Asset", is_system_account=True),
            Account(code=settings.RECEIVABLE_ACCOUNT_CODE, name="Accounts Receivable", type="Asset", is_system_account=True),
            Account(code="1300", name="Inventory", type="Asset"),
            Account(code="1400", name="Fixed Assets", type="Asset"),
            # Liabilities
            Account(code=settings.PAYABLE_ACCOUNT_CODE, name="Accounts Payable", type="Liability", is_system_account=True),
            Account(code=settings.TAX_ACCOUNT_CODE, name="Tax Payable", type="Liability", is_system_account=True),
            Account(code="2200", name="Payroll Liabilities", type="Liability"),
            # Equity
            Account(code="3000", name="Owner's Equity", type="Equity", is_system_account=True),
            Account(code="3100", name="Retained Earnings", type="Equity", is_system_account=True),
            Account(code="3200", name="Opening Balance Equity", type="Equity"),
            # Revenue
            Account(code="4000", name="Sales Revenue", type="Revenue"),
            Account(code="4100", name="Service Revenue", type="Revenue"),
            Account(code="4200", name="Other Income", type="Revenue"),
            # Expenses
            Account(code="5000", name="Cost of Goods Sold", type="Expense"),
            Account(code="5100", name="Operating Expenses", type="Expense"),
            Account(code="5200", name="Salaries Expense", type="Expense"),
            Account(code="5300", name="Utilities Expense", type="Expense"),
            Account(code="5400", name="Rent Expense", type="Expense"),
            Account(code="5500", name="Depreciation Expense", type="Expense"),
        ]

        for account in default_accounts:
            account.organization_id = organization_id
            account.is_active = True
            self.db.add(account)

        self.db.flush()
        return default_accounts

    def next_number(self, organization_id: int, sequence: str, prefix: str) -> str:
        """
        Reserve the next document number, e.g. JE-00001.

        The counter is advanced with a single UPDATE, so two concurrent transactions
        can never reserve the same number; the row stays locked until commit.
        """
        column = getattr(Organization, sequence)
        result = self.db.execute(
            update(Organization)
            .where(Organization.id == organization_id)
            .values({column: column + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(f"Organization {organization_id} not found")

        value = self.db.query(column).filter(Organization.id == organization_id).scalar()
        return f"{prefix}-{value - 1:05d}"
