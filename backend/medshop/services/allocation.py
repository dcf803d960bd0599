"""
FEFO allocation (First-Expiry-First-Out).

Turns "sell N units of medicine M" into per-batch deductions:

- only batches with stock are considered
- earliest expiry first; batches without an expiry date go LAST
  (unknown shelf life is the lowest priority to clear), row id breaks ties
- all-or-nothing: if the batches together hold less than N, nothing is
  deducted and InsufficientStockError carries the shortfall

Concurrency: batch rows carry a version column. The deducting UPDATE only
matches the version that was read, so a sale that raced another one gets
StaleDataError at flush instead of pushing a quantity below zero. The whole
unit of work is then rolled back and retried once from a fresh read.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from medshop.core.audit import AuditLog
from medshop.core.config import settings
from medshop.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    MedshopError,
    PersistenceError,
    ValidationError,
)
from medshop.models.medicine import Batch
from medshop.services.batch_store import get_medicine, list_batches, total_quantity
from medshop.services.stock_aggregator import fefo_sort_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Deduction:
    batch_id: int
    batch_number: str
    quantity: int

    def to_dict(self) -> dict:
        return {"batch_id": self.batch_id, "batch_number": self.batch_number, "quantity": self.quantity}


def _requested(quantity) -> int:
    if quantity is None or isinstance(quantity, bool):
        raise ValidationError("Quantity is required")
    try:
        qty = int(quantity)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Quantity must be a whole number")
    if qty != quantity and not isinstance(quantity, str):
        raise ValidationError("Quantity must be a whole number")
    if qty <= 0:
        raise ValidationError("Quantity must be > 0")
    return qty


def plan_allocation(
    batches: Iterable[Batch],
    requested_qty,
    medicine_id: Optional[int] = None,
    medicine_name: Optional[str] = None,
) -> List[Deduction]:
    """
    Pure FEFO walk. Does not touch the batches.

    Returns:
        [Deduction(batch_id, batch_number, quantity), ...] summing exactly to requested_qty

    Raises:
        ValidationError: requested_qty is not a positive whole number
        InsufficientStockError: batches together hold less than requested_qty
    """
    requested = _requested(requested_qty)
    available = sorted((b for b in batches if (b.quantity_available or 0) > 0), key=fefo_sort_key)

    remaining = requested
    plan: List[Deduction] = []
    for batch in available:
        if remaining <= 0:
            break
        take = min(batch.quantity_available, remaining)
        plan.append(Deduction(batch.id, batch.batch_number or "", take))
        remaining -= take

    if remaining > 0:
        raise InsufficientStockError(
            medicine_id, requested, requested - remaining, medicine_name=medicine_name
        )
    return plan


_LOCK_MESSAGES = ("database is locked", "deadlock", "could not obtain lock", "lock wait timeout")


def is_lock_contention(exc: OperationalError) -> bool:
    """Another writer holds the rows (SQLite busy, MySQL/PostgreSQL lock timeouts and deadlocks)."""
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(text in message for text in _LOCK_MESSAGES)


def allocate(db: Session, medicine_id: int, requested_qty) -> List[Deduction]:
    """
    Plan and apply a FEFO deduction inside the caller's transaction.

    Flushes so a stale batch version surfaces here as ConcurrencyConflictError.
    Does NOT commit; use `run_with_conflict_retry` around the unit of work.
    """
    requested = _requested(requested_qty)
    medicine = get_medicine(db, medicine_id)
    batches = list_batches(db, medicine_id, available_only=True, for_update=True)
    # Read before flushing: after a failed flush the session only accepts a rollback.
    name = medicine.name

    try:
        plan = plan_allocation(batches, requested, medicine_id=medicine.id, medicine_name=name)
    except InsufficientStockError:
        AuditLog.log_allocation_rejected(medicine.id, requested, total_quantity(batches))
        raise

    by_id = {b.id: b for b in batches}
    for deduction in plan:
        batch = by_id[deduction.batch_id]
        new_qty = batch.quantity_available - deduction.quantity
        if new_qty < 0:
            # plan_allocation never over-draws; a negative here means the rows moved underneath us
            raise ConcurrencyConflictError(f"Batch {batch.id} would go negative")
        batch.quantity_available = new_qty

    try:
        db.flush()
    except StaleDataError as e:
        raise ConcurrencyConflictError(f"Stock for {name} changed during sale") from e
    except OperationalError as e:
        if not is_lock_contention(e):
            raise
        raise ConcurrencyConflictError(f"Stock for {name} is being sold at another counter") from e

    logger.info(
        f"[ALLOCATE] {name}: {requested} units from "
        + ", ".join(f"batch {d.batch_id} x{d.quantity}" for d in plan)
    )
    return plan


def run_with_conflict_retry(db: Session, work: Callable[[], T], retries: Optional[int] = None) -> T:
    """
    Run `work` as one transaction and commit it.

    - ConcurrencyConflictError, stale rows or lock contention: roll back and
      retry the whole unit (ALLOCATION_RETRIES times, default once), then
      surface ConcurrencyConflictError
    - domain errors: roll back and re-raise unchanged
    - other database errors: roll back and raise PersistenceError
    """
    retries = settings.ALLOCATION_RETRIES if retries is None else retries
    attempt = 0
    while True:
        attempt += 1
        try:
            result = work()
            db.commit()
            return result
        except MedshopError as e:
            db.rollback()
            if not isinstance(e, ConcurrencyConflictError):
                raise
            conflict = e
        except StaleDataError as e:
            db.rollback()
            conflict = e
        except OperationalError as e:
            db.rollback()
            if not is_lock_contention(e):
                logger.error(f"[ALLOCATE] Database error: {e}")
                raise PersistenceError("Could not save the sale") from e
            conflict = e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[ALLOCATE] Database error: {e}")
            raise PersistenceError("Could not save the sale") from e

        will_retry = attempt <= retries
        AuditLog.log_concurrency_conflict(attempt, will_retry, details=str(conflict))
        logger.warning(f"[ALLOCATE] Conflict on attempt {attempt}, retry={will_retry}")
        if not will_retry:
            if isinstance(conflict, ConcurrencyConflictError):
                raise conflict
            raise ConcurrencyConflictError("Stock changed during sale, please retry") from conflict
        time.sleep(settings.ALLOCATION_RETRY_DELAY * attempt)
