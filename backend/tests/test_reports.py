from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update

from conftest import credit, debit
from ledgerpost.models import Account
from ledgerpost.services.report_service import ReportService


@pytest.fixture
def reports(db, organization, settings):
    return ReportService(db, organization.id, settings)


@pytest.fixture
def posted(ledger, accounts):
    ledger.post_journal_entry(
        date(2024, 1, 5), "Owner investment", [debit(accounts["1100"], "1000.00"), credit(accounts["3000"], "1000.00")],
        actor_id=1,
    )
    ledger.post_journal_entry(
        date(2024, 2, 1), "Office rent", [debit(accounts["5400"], "500.00"), credit(accounts["1100"], "500.00")],
        actor_id=1,
    )


def test_trial_balance_from_running_balances(db, reports, posted):
    db.expire_all()
    result = reports.get_trial_balance()

    rows = {row["code"]: (row["debit"], row["credit"]) for row in result["rows"]}
    assert rows == {
        "1100": (Decimal("500.00"), Decimal("0.00")),
        "3000": (Decimal("0.00"), Decimal("1000.00")),
        "5400": (Decimal("500.00"), Decimal("0.00")),
    }
    assert result["total_debit"] == result["total_credit"] == Decimal("1000.00")
    assert result["is_balanced"]


def test_trial_balance_as_of_a_date(reports, posted):
    result = reports.get_trial_balance(as_of_date=date(2024, 1, 31))

    assert [row["code"] for row in result["rows"]] == ["1100", "3000"]
    assert result["total_debit"] == Decimal("1000.00")
    assert result["is_balanced"]


def test_integrity_check_passes_after_postings(db, reports, posted):
    db.expire_all()
    report = reports.check_ledger_integrity()

    assert report["is_consistent"]
    assert report["checked_accounts"] == 20
    assert report["mismatches"] == []


def test_integrity_check_finds_tampered_balance(db, reports, posted, accounts):
    db.execute(update(Account).where(Account.id == accounts["5400"]).values(balance=Decimal("499.00")))
    db.commit()

    report = reports.check_ledger_integrity()

    assert not report["is_consistent"]
    [mismatch] = report["mismatches"]
    assert mismatch["code"] == "5400"
    assert mismatch["recorded_balance"] == Decimal("499.00")
    assert mismatch["ledger_balance"] == Decimal("500.00")
    assert mismatch["difference"] == Decimal("-1.00")
