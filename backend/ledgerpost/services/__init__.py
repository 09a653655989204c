# Services Package
from ledgerpost.services.organization_service import OrganizationService
from ledgerpost.services.ledger_service import LedgerPostingService, JournalEntryService, PostingLine
from ledgerpost.services.accounting_service import AccountService
from ledgerpost.services.crm_service import ContactService
from ledgerpost.services.tax_service import TaxRateService
from ledgerpost.services.document_service import (
    InvoiceService, BillService, calculate_line_totals, derive_lines_from_document
)
from ledgerpost.services.report_service import ReportService

__all__ = [
    'OrganizationService',
    'LedgerPostingService',
    'JournalEntryService',
    'PostingLine',
    'AccountService',
    'ContactService',
    'TaxRateService',
    'InvoiceService',
    'BillService',
    'calculate_line_totals',
    'derive_lines_from_document',
    'ReportService',
]
