"""
erp_sync.synchronizers - WAPRO ERP entity synchronizers.

Importing this package registers the synchronizers in dependency order:
companies first, then the bank accounts that belong to them.
"""

from erp_sync.synchronizers.bank_accounts import BankAccounts
from erp_sync.synchronizers.companies import Companies

__all__ = ["BankAccounts", "Companies"]
