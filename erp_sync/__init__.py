"""
erp_sync - ERP to CRM record synchronization.

Imports ERP rows into CRM records through declarative field maps, keeping a
persistent external id -> record id mapping so repeated runs update instead
of duplicating.
"""

__version__ = "0.1.0"
