"""
erp_sync.sync - Generic ERP to CRM synchronization engine.
"""
