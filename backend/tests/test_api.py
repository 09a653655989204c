from decimal import Decimal

from sqlalchemy.exc import OperationalError

from conftest import make_headers
from ledgerpost.models import Organization
from ledgerpost.services.ledger_service import LedgerPostingService

API = "/api/v1"


def rent_payload(accounts, debit="500.00", credit="500.00"):
    return {
        "date": "2024-03-01",
        "description": "Office rent",
        "reference": "LEASE-03",
        "lines": [
            {"account_id": accounts["5400"], "debit_amount": debit, "credit_amount": "0"},
            {"account_id": accounts["1000"], "debit_amount": "0", "credit_amount": credit},
        ],
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ==================== POSTING ====================

def test_post_journal_entry(client, auth_headers, accounts):
    response = client.post(f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["entry_number"] == "JE-00001"
    assert body["date"] == "2024-03-01"
    assert body["status"] == "Posted"
    assert body["reference"] == "LEASE-03"
    assert Decimal(body["total_amount"]) == Decimal("500.00")
    assert len(body["lines"]) == 2
    assert all(line["id"] for line in body["lines"])

    rent = client.get(f"{API}/accounts/{accounts['5400']}", headers=auth_headers).json()
    assert Decimal(rent["balance"]) == Decimal("500.00")


def test_unbalanced_entry_returns_400(client, auth_headers, accounts):
    response = client.post(
        f"{API}/transactions/journal-entries",
        json=rent_payload(accounts, credit="499.99"),
        headers=auth_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Debits must equal credits"
    assert body["reason"] == "UnbalancedEntry"
    assert client.get(f"{API}/transactions", headers=auth_headers).json() == []


def test_unknown_account_returns_field_error(client, auth_headers, accounts):
    payload = rent_payload(accounts)
    payload["lines"][1]["account_id"] = 999999

    response = client.post(f"{API}/transactions/journal-entries", json=payload, headers=auth_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["reason"] == "UnknownAccount"
    assert body["errors"][0]["field"] == "lines[1].account_id"


def test_missing_field_returns_400(client, auth_headers, accounts):
    payload = rent_payload(accounts)
    del payload["date"]

    response = client.post(f"{API}/transactions/journal-entries", json=payload, headers=auth_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["reason"] == "ValidationError"
    assert "date" in [error["field"] for error in body["errors"]]


def test_malformed_amount_returns_400(client, auth_headers, accounts):
    response = client.post(
        f"{API}/transactions/journal-entries",
        json=rent_payload(accounts, debit="five hundred"),
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "lines[0].debit_amount"


def test_sub_cent_amount_returns_400(client, auth_headers, accounts):
    response = client.post(
        f"{API}/transactions/journal-entries",
        json=rent_payload(accounts, debit="500.001", credit="500.001"),
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["reason"] == "InvalidLine"


def test_amount_too_large_to_store_returns_400(client, auth_headers, accounts):
    for amount in ("123456789012345678.91", "1E+30"):
        response = client.post(
            f"{API}/transactions/journal-entries",
            json=rent_payload(accounts, debit=amount, credit=amount),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "lines[0].debit_amount"

    rent = client.get(f"{API}/accounts/{accounts['5400']}", headers=auth_headers).json()
    assert Decimal(rent["balance"]) == Decimal("0")


def test_persistence_failure_returns_retryable_500(client, auth_headers, accounts, monkeypatch):
    def broken_stage_entry(self, *args, **kwargs):
        raise OperationalError("INSERT INTO journal_entries", {}, Exception("database is locked"))

    monkeypatch.setattr(LedgerPostingService, "stage_entry", broken_stage_entry)

    response = client.post(f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal server error"
    assert body["retryable"] is True
    assert "detail" not in body


def test_get_and_filter_entries(client, auth_headers, accounts):
    created = client.post(
        f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers
    ).json()

    response = client.get(f"{API}/transactions/journal-entries/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["entry_number"] == created["entry_number"]

    by_rent = client.get(f"{API}/transactions", params={"account_id": accounts["5400"]}, headers=auth_headers)
    assert [e["id"] for e in by_rent.json()] == [created["id"]]

    by_bank = client.get(f"{API}/transactions", params={"account_id": accounts["1100"]}, headers=auth_headers)
    assert by_bank.json() == []

    later = client.get(f"{API}/transactions", params={"start_date": "2024-04-01"}, headers=auth_headers)
    assert later.json() == []


def test_missing_entry_returns_404(client, auth_headers):
    response = client.get(f"{API}/transactions/journal-entries/4040", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["reason"] == "NotFound"


def test_reverse_entry(client, auth_headers, accounts):
    created = client.post(
        f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers
    ).json()

    response = client.post(
        f"{API}/transactions/journal-entries/{created['id']}/reverse",
        json={"date": "2024-03-31"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["reversal_of_id"] == created["id"]

    again = client.post(f"{API}/transactions/journal-entries/{created['id']}/reverse", headers=auth_headers)
    assert again.status_code == 400
    assert again.json()["reason"] == "EntryNotReversible"


# ==================== ACTOR CONTEXT ====================

def test_requests_without_token_are_rejected(client):
    assert client.get(f"{API}/transactions").status_code == 401


def test_requests_with_bad_token_are_rejected(client):
    response = client.get(f"{API}/transactions", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_disabled_organization_is_forbidden(client, db, organization, auth_headers):
    db.query(Organization).filter(Organization.id == organization.id).update({"is_active": False})
    db.commit()

    assert client.get(f"{API}/transactions", headers=auth_headers).status_code == 403


def test_organizations_are_isolated(client, settings, auth_headers, accounts, other_organization):
    created = client.post(
        f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers
    ).json()
    outsider = make_headers(settings, other_organization.id, user_id=2)

    assert client.get(f"{API}/transactions/journal-entries/{created['id']}", headers=outsider).status_code == 404
    assert client.get(f"{API}/transactions", headers=outsider).json() == []
    assert client.get(f"{API}/accounts/{accounts['5400']}", headers=outsider).status_code == 404

    response = client.post(f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=outsider)
    assert response.status_code == 400
    assert response.json()["reason"] == "UnknownAccount"


def test_create_organization_seeds_chart(client, settings):
    response = client.post(f"{API}/organizations", json={"name": "Umbrella Ltd", "currency_code": "eur"})

    assert response.status_code == 201
    body = response.json()
    assert body["currency_code"] == "EUR"

    headers = make_headers(settings, body["id"])
    codes = {a["code"] for a in client.get(f"{API}/accounts", headers=headers).json()}
    assert {"1000", "1200", "2000", "2100", "5400"} <= codes


# ==================== ACCOUNTS ====================

def test_account_tree_and_duplicate_code(client, auth_headers, accounts):
    response = client.post(
        f"{API}/accounts",
        json={"code": "1010", "name": "Petty Cash", "type": "Asset", "parent_id": accounts["1000"]},
        headers=auth_headers,
    )
    assert response.status_code == 201

    tree = client.get(f"{API}/accounts/tree", headers=auth_headers).json()
    cash = next(node for node in tree if node["code"] == "1000")
    assert [child["code"] for child in cash["children"]] == ["1010"]

    duplicate = client.post(
        f"{API}/accounts", json={"code": "1010", "name": "Other", "type": "Asset"}, headers=auth_headers
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["reason"] == "DuplicateAccountCode"


def test_account_ledger(client, auth_headers, accounts):
    client.post(f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers)
    client.post(f"{API}/transactions/journal-entries", json=rent_payload(accounts, "20.00", "20.00"),
                headers=auth_headers)

    ledger = client.get(f"{API}/accounts/{accounts['1000']}/ledger", headers=auth_headers).json()

    assert [Decimal(row["balance"]) for row in ledger["entries"]] == [Decimal("-500.00"), Decimal("-520.00")]
    assert ledger["entries"][0]["date"] == "2024-03-01"
    assert Decimal(ledger["balance"]) == Decimal("-520.00")


def test_system_account_cannot_be_deleted(client, auth_headers, accounts):
    response = client.delete(f"{API}/accounts/{accounts['1000']}", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["reason"] == "SystemAccount"


def test_null_for_required_field_returns_400(client, auth_headers, accounts, customer, sales_tax):
    account = client.put(f"{API}/accounts/{accounts['5400']}", json={"name": None}, headers=auth_headers)
    assert account.status_code == 400
    assert account.json()["reason"] == "NullField"
    assert account.json()["errors"] == [{"field": "name", "message": "Field may not be null"}]

    contact = client.put(f"{API}/contacts/{customer}", json={"type": None}, headers=auth_headers)
    assert contact.status_code == 400
    assert contact.json()["errors"][0]["field"] == "type"

    tax = client.put(f"{API}/taxes/{sales_tax}", json={"rate": None}, headers=auth_headers)
    assert tax.status_code == 400
    assert tax.json()["errors"][0]["field"] == "rate"

    rent = client.get(f"{API}/accounts/{accounts['5400']}", headers=auth_headers).json()
    assert rent["name"] == "Rent Expense"


def test_null_for_optional_field_clears_it(client, auth_headers, customer):
    client.put(f"{API}/contacts/{customer}", json={"phone": "555-0100"}, headers=auth_headers)

    response = client.put(f"{API}/contacts/{customer}", json={"phone": None}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["phone"] is None


# ==================== DOCUMENTS ====================

def test_invoice_flow_over_http(client, auth_headers, accounts, customer):
    created = client.post(
        f"{API}/invoices",
        json={
            "contact_id": customer,
            "issue_date": "2024-03-01",
            "due_date": "2024-03-31",
            "line_items": [
                {"description": "Design work", "account_id": accounts["4100"], "quantity": "4", "unit_price": "62.50"},
            ],
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    invoice = created.json()
    assert invoice["invoice_number"] == "INV-00001"
    assert Decimal(invoice["total"]) == Decimal("250.00")

    posted = client.post(f"{API}/invoices/{invoice['id']}/post", headers=auth_headers)
    assert posted.status_code == 200
    assert posted.json()["status"] == "Sent"

    paid = client.post(
        f"{API}/invoices/{invoice['id']}/payments",
        json={"amount": "250.00", "payment_date": "2024-03-15", "payment_account_id": accounts["1100"]},
        headers=auth_headers,
    )
    assert paid.status_code == 200
    assert paid.json()["status"] == "Paid"

    cancel = client.post(f"{API}/invoices/{invoice['id']}/cancel", headers=auth_headers)
    assert cancel.status_code == 400
    assert cancel.json()["reason"] == "DocumentNotCancellable"


def test_invoice_with_due_date_before_issue_date(client, auth_headers, accounts, customer):
    response = client.post(
        f"{API}/invoices",
        json={
            "contact_id": customer,
            "issue_date": "2024-03-31",
            "due_date": "2024-03-01",
            "line_items": [
                {"description": "Design work", "account_id": accounts["4100"], "quantity": "1", "unit_price": "1"},
            ],
        },
        headers=auth_headers,
    )
    assert response.status_code == 400


def test_invoice_line_too_large_to_store_returns_400(client, auth_headers, accounts, customer):
    response = client.post(
        f"{API}/invoices",
        json={
            "contact_id": customer,
            "issue_date": "2024-03-01",
            "due_date": "2024-03-31",
            "line_items": [
                {"description": "Galaxy", "account_id": accounts["4000"], "quantity": "1E+20", "unit_price": "1E+16"},
            ],
        },
        headers=auth_headers,
    )

    assert response.status_code == 400
    fields = [error["field"] for error in response.json()["errors"]]
    assert fields == ["line_items[0].quantity", "line_items[0].unit_price"]


def test_bill_approval_over_http(client, auth_headers, accounts, supplier):
    bill = client.post(
        f"{API}/bills",
        json={
            "contact_id": supplier,
            "issue_date": "2024-03-01",
            "due_date": "2024-03-31",
            "reference": "PS-77",
            "line_items": [
                {"description": "Toner", "account_id": accounts["5100"], "quantity": "2", "unit_price": "45.00"},
            ],
        },
        headers=auth_headers,
    ).json()

    approved = client.post(f"{API}/bills/{bill['id']}/post", headers=auth_headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "Approved"
    assert approved.json()["journal_entry_id"] is not None


def test_contacts_and_taxes(client, auth_headers, accounts):
    contact = client.post(
        f"{API}/contacts",
        json={"type": "Both", "name": "Wayne Enterprises", "email": "ap@wayne.example.com"},
        headers=auth_headers,
    )
    assert contact.status_code == 201

    duplicate = client.post(f"{API}/contacts", json={"type": "Customer", "name": "Wayne Enterprises"},
                            headers=auth_headers)
    assert duplicate.status_code == 400

    bad_email = client.post(f"{API}/contacts", json={"type": "Customer", "name": "X", "email": "nope"},
                            headers=auth_headers)
    assert bad_email.status_code == 400

    suppliers = client.get(f"{API}/contacts", params={"type": "Supplier"}, headers=auth_headers).json()
    assert [c["name"] for c in suppliers] == ["Wayne Enterprises"]

    tax = client.post(
        f"{API}/taxes",
        json={"name": "GST", "rate": "10", "type": "Both", "account_id": accounts["2100"]},
        headers=auth_headers,
    )
    assert tax.status_code == 201
    assert Decimal(tax.json()["rate"]) == Decimal("10")

    too_high = client.post(f"{API}/taxes", json={"name": "Silly", "rate": "101"}, headers=auth_headers)
    assert too_high.status_code == 400


# ==================== REPORTS ====================

def test_reports(client, auth_headers, accounts):
    client.post(f"{API}/transactions/journal-entries", json=rent_payload(accounts), headers=auth_headers)

    trial = client.get(f"{API}/reports/trial-balance", headers=auth_headers).json()
    assert trial["is_balanced"] is True
    assert Decimal(trial["total_debit"]) == Decimal("500.00")
    assert Decimal(trial["total_credit"]) == Decimal("500.00")

    integrity = client.get(f"{API}/reports/ledger-integrity", headers=auth_headers).json()
    assert integrity["is_consistent"] is True
    assert integrity["mismatches"] == []
