"""
Audit logging for stock-affecting and money-affecting operations.

Every event is one JSON line on the "audit" logger so the trail can be
shipped to centralized logging and replayed when a count does not match
the shelf.
"""
import json
import logging
from datetime import datetime
from typing import Iterable, Optional

# Separate logger for audit events
audit_logger = logging.getLogger("audit")


def _emit(level: int, event_type: str, **fields) -> None:
    log_entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "event_type": event_type,
    }
    log_entry.update({k: v for k, v in fields.items() if v is not None})
    audit_logger.log(level, json.dumps(log_entry, default=str))


class AuditLog:
    """Central audit logging for inventory, sales and ledger events."""

    @staticmethod
    def log_stock_added(medicine_id: int, batch_id: int, batch_number: str, quantity: int, medicine_created: bool):
        """
        Log a stock receipt (new batch row).

        Usage:
            AuditLog.log_stock_added(3, 17, "B-2291", 100, medicine_created=False)
        """
        _emit(
            logging.INFO,
            "stock.added",
            medicine_id=medicine_id,
            batch_id=batch_id,
            batch_number=batch_number,
            quantity=quantity,
            medicine_created=medicine_created,
        )

    @staticmethod
    def log_batch_updated(batch_id: int, changes: dict):
        """Manual edit of a batch (quantity corrections show up here)."""
        _emit(logging.INFO, "stock.batch_updated", batch_id=batch_id, changes=changes)

    @staticmethod
    def log_batch_deleted(batch_id: int, medicine_id: int, quantity: int):
        _emit(logging.INFO, "stock.batch_deleted", batch_id=batch_id, medicine_id=medicine_id, quantity=quantity)

    @staticmethod
    def log_medicine_deleted(medicine_id: int, name: str, batch_count: int):
        _emit(logging.INFO, "stock.medicine_deleted", medicine_id=medicine_id, name=name, batch_count=batch_count)

    @staticmethod
    def log_allocation(medicine_id: int, requested: int, deductions: Iterable):
        """
        Log a committed FEFO deduction.

        Usage:
            AuditLog.log_allocation(3, 5, [(11, 3), (12, 2)])
        """
        _emit(
            logging.INFO,
            "stock.allocated",
            medicine_id=medicine_id,
            requested=requested,
            deductions=[{"batch_id": b, "quantity": q} for b, q in deductions],
        )

    @staticmethod
    def log_allocation_rejected(medicine_id: int, requested: int, available: int):
        """Sale line refused because total stock is short. Nothing was deducted."""
        _emit(
            logging.WARNING,
            "stock.allocation_rejected",
            medicine_id=medicine_id,
            requested=requested,
            available=available,
            shortfall=requested - available,
        )

    @staticmethod
    def log_concurrency_conflict(attempt: int, will_retry: bool, details: Optional[str] = None):
        _emit(logging.WARNING, "stock.concurrency_conflict", attempt=attempt, will_retry=will_retry, details=details)

    @staticmethod
    def log_sale_committed(sale_id: int, invoice_no: str, total, balance_due, customer_id: Optional[int]):
        _emit(
            logging.INFO,
            "sale.committed",
            sale_id=sale_id,
            invoice_no=invoice_no,
            total=str(total),
            balance_due=str(balance_due),
            customer_id=customer_id,
        )

    @staticmethod
    def log_payment(customer_id: int, amount, balance_after):
        _emit(logging.INFO, "ledger.payment", customer_id=customer_id, amount=str(amount), balance_after=str(balance_after))
