# API v1 Package
from ledgerpost.api.v1 import organizations, accounts, transactions, contacts, taxes, invoices, bills, reports

__all__ = [
    'organizations',
    'accounts',
    'transactions',
    'contacts',
    'taxes',
    'invoices',
    'bills',
    'reports',
]
