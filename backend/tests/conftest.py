from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from ledgerpost.core.config import Settings
from ledgerpost.core.database import Database
from ledgerpost.core.security import create_access_token
from ledgerpost.main import create_app
from ledgerpost.models import Account, Contact, Organization, TaxRate
from ledgerpost.schemas import OrganizationCreate
from ledgerpost.services.ledger_service import LedgerPostingService, PostingLine
from ledgerpost.services.organization_service import OrganizationService

TEST_SECRET_KEY = "test-secret-key-for-the-ledger-suite-0123456789"
ENTRY_DATE = date(2024, 3, 1)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'ledger.db'}",
        SECRET_KEY=TEST_SECRET_KEY,
        RATE_LIMIT_ENABLED=False,
        TRANSACTION_TIMEOUT_SECONDS=30.0,
    )


@pytest.fixture
def database(settings):
    database = Database(settings)
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


def _create_organization(db, settings, name):
    organization = OrganizationService(db).create(OrganizationCreate(name=name), settings)
    db.commit()
    return organization


@pytest.fixture
def organization(db, settings):
    return _create_organization(db, settings, "Acme Trading")


@pytest.fixture
def other_organization(db, settings):
    return _create_organization(db, settings, "Globex Holdings")


@pytest.fixture
def accounts(db, organization):
    """Default chart of the test organization, keyed by account code"""
    rows = db.query(Account).filter(Account.organization_id == organization.id).all()
    return {account.code: account.id for account in rows}


@pytest.fixture
def ledger(db, organization, settings):
    return LedgerPostingService(db, organization.id, settings)


@pytest.fixture
def balance_of(db):
    def balance_of(account_id):
        db.expire_all()
        return db.query(Account.balance).filter(Account.id == account_id).scalar()
    return balance_of


@pytest.fixture
def customer(db, organization):
    contact = Contact(organization_id=organization.id, type="Customer", name="Initech", is_active=True)
    db.add(contact)
    db.commit()
    return contact.id


@pytest.fixture
def supplier(db, organization):
    contact = Contact(organization_id=organization.id, type="Supplier", name="Paper Supplies Co", is_active=True)
    db.add(contact)
    db.commit()
    return contact.id


@pytest.fixture
def sales_tax(db, organization):
    tax_rate = TaxRate(organization_id=organization.id, name="VAT 7.5%", rate=Decimal("7.5"),
                       type="Sales", is_active=True)
    db.add(tax_rate)
    db.commit()
    return tax_rate.id


@pytest.fixture
def app(settings, database):
    app = create_app(settings)
    app.state.database = database
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def make_headers(settings, organization_id, user_id=1):
    token = create_access_token({"sub": str(user_id), "org": organization_id}, settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(settings, organization):
    return make_headers(settings, organization.id)


def debit(account_id, amount, **kwargs):
    return PostingLine(account_id=account_id, debit_amount=Decimal(amount), **kwargs)


def credit(account_id, amount, **kwargs):
    return PostingLine(account_id=account_id, credit_amount=Decimal(amount), **kwargs)
