from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from conftest import ENTRY_DATE, credit, debit
from ledgerpost.models import JournalEntry
from ledgerpost.services.ledger_service import LedgerPostingService

WORKERS = 8
POSTINGS_PER_WORKER = 5


def _post_many(database, settings, organization_id, lines_for):
    """One session per thread, as one request per thread would have"""
    def worker(worker_id):
        session = database.session()
        try:
            ledger = LedgerPostingService(session, organization_id, settings)
            numbers = []
            for i in range(POSTINGS_PER_WORKER):
                entry = ledger.post_journal_entry(
                    ENTRY_DATE, f"Worker {worker_id} posting {i}", lines_for(worker_id, i), actor_id=worker_id
                )
                numbers.append(entry.entry_number)
            return numbers
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(worker, range(WORKERS)))
    return [number for numbers in results for number in numbers]


def test_concurrent_postings_to_one_account_lose_no_updates(database, settings, organization, accounts, balance_of):
    rent, cash = accounts["5400"], accounts["1000"]

    numbers = _post_many(
        database, settings, organization.id,
        lambda worker_id, i: [debit(rent, "10.00"), credit(cash, "10.00")],
    )

    total = Decimal("10.00") * WORKERS * POSTINGS_PER_WORKER
    assert balance_of(rent) == total
    assert balance_of(cash) == -total
    assert len(set(numbers)) == WORKERS * POSTINGS_PER_WORKER


def test_concurrent_postings_in_opposite_line_order(db, database, settings, organization, accounts, balance_of):
    bank, sales = accounts["1100"], accounts["4000"]

    def lines_for(worker_id, i):
        lines = [debit(bank, "2.50"), credit(sales, "2.50")]
        # Half the workers list the accounts the other way round
        return lines if worker_id % 2 else list(reversed(lines))

    _post_many(database, settings, organization.id, lines_for)

    total = Decimal("2.50") * WORKERS * POSTINGS_PER_WORKER
    assert balance_of(bank) == total
    assert balance_of(sales) == -total
    assert db.query(JournalEntry).filter(
        JournalEntry.organization_id == organization.id
    ).count() == WORKERS * POSTINGS_PER_WORKER
