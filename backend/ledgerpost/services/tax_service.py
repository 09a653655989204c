"""
Tax Service - Sales and purchase tax rates
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from ledgerpost.core.exceptions import NotFoundError, UnknownAccount, ValidationError, reject_nulls
from ledgerpost.models import Account, TaxRate
from ledgerpost.repositories import TenantRepository
from ledgerpost.schemas import TaxRateCreate, TaxRateUpdate


class TaxRateService:
    def __init__(self, db: Session, organization_id: int):
        self.db = db
        self.organization_id = organization_id
        self.tax_rates = TenantRepository(db, TaxRate, organization_id)
        self.accounts = TenantRepository(db, Account, organization_id)

    def get_by_id(self, tax_rate_id: int) -> TaxRate:
        tax_rate = self.tax_rates.get(tax_rate_id)
        if tax_rate is None:
            raise NotFoundError(f"Tax rate {tax_rate_id} not found")
        return tax_rate

    def list(self, include_inactive: bool = False) -> List[TaxRate]:
        query = self.tax_rates.query()
        if not include_inactive:
            query = query.filter(TaxRate.is_active == True)
        return query.order_by(TaxRate.name).all()

    def _check_account(self, account_id: Optional[int]):
        if account_id is not None and not self.accounts.exists(id=account_id):
            raise UnknownAccount(account_id)

    def create(self, tax_data: TaxRateCreate) -> TaxRate:
        if self.tax_rates.exists(name=tax_data.name):
            raise ValidationError.for_field(
                "name", f"Tax rate '{tax_data.name}' already exists", reason="DuplicateTaxRate"
            )
        self._check_account(tax_data.account_id)

        tax_rate = TaxRate(
            name=tax_data.name,
            rate=tax_data.rate,
            type=tax_data.type.value,
            account_id=tax_data.account_id,
            is_active=True,
        )
        self.tax_rates.add(tax_rate)
        self.db.flush()
        return tax_rate

    def update(self, tax_rate_id: int, tax_data: TaxRateUpdate) -> TaxRate:
        tax_rate = self.get_by_id(tax_rate_id)
        update_data = tax_data.model_dump(exclude_unset=True)
        reject_nulls(update_data, ("name", "rate", "type", "is_active"))
        if "account_id" in update_data:
            self._check_account(update_data["account_id"])
        if update_data.get("type") is not None:
            update_data["type"] = tax_data.type.value

        for key, value in update_data.items():
            setattr(tax_rate, key, value)

        self.db.flush()
        return tax_rate
