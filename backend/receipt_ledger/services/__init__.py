"""
Ledger services: schema management, write repository and read queries.
"""
