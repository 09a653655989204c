# Repositories Package
from ledgerpost.repositories.base import TenantRepository

__all__ = [
    'TenantRepository',
]
