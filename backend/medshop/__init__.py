"""Medshop — pharmacy shop backend.

Inventory with expiry-dated batches, FEFO stock deduction at the counter,
billing totals, customer ledger, expenses and the owner dashboard.
"""

__version__ = "0.1.0"
