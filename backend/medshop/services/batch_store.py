"""
Batch store: CRUD over medicines and their expiry-dated batches.

Stock is only ever held on Batch rows. Receiving stock always creates a
new batch, even when the batch number repeats. Nothing here commits
except the top-level operations the API calls directly; allocation code
reuses `list_batches` and `update_batch_quantity` inside its own unit of
work.
"""
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medshop.core.audit import AuditLog
from medshop.core.exceptions import NotFoundError, PersistenceError, ValidationError
from medshop.models.medicine import Batch, Medicine

logger = logging.getLogger(__name__)

_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")

BATCH_FIELDS = ("batch_number", "expiry_date", "quantity_available", "purchase_price", "selling_price")
MEDICINE_FIELDS = ("name", "category", "manufacturer", "shelf_number", "low_stock_threshold")


def normalize_expiry(value: Any) -> Optional[date]:
    """
    Expiry dates arrive as full dates or as month strings off the strip.

    Examples:
        "2024-03"    -> date(2024, 3, 1)
        "2024-03-15" -> date(2024, 3, 15)
        "" / None    -> None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if _MONTH_RE.match(text):
        text = f"{text}-01"
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid expiry date: {value!r} (use YYYY-MM or YYYY-MM-DD)")


def _quantity(value: Any, field: str = "quantity") -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        qty = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be a whole number")
    if isinstance(value, (float, Decimal)) and value != qty:
        raise ValidationError(f"{field} must be a whole number")
    if qty < 0:
        raise ValidationError(f"{field} cannot be negative")
    return qty


def _price(value: Any, field: str, partial: bool = False) -> Decimal:
    """Blank means 0 on a new batch. On an edit, blank would silently re-price, so it is rejected."""
    if value is None or value == "":
        if partial:
            raise ValidationError(f"{field} cannot be empty")
        return Decimal("0")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not price.is_finite():
        raise ValidationError(f"{field} must be a number")
    if price < 0:
        raise ValidationError(f"{field} cannot be negative")
    return price


def _threshold(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return _quantity(value, "low_stock_threshold")


def _clean_batch_data(data: dict, partial: bool = False) -> dict:
    """Validate everything up front so a bad field never leaves a half-written row."""
    clean = {}
    if "quantity" in data and "quantity_available" not in data:
        data = {**data, "quantity_available": data["quantity"]}
    if "batch_number" in data:
        clean["batch_number"] = (data["batch_number"] or "").strip()
    if "expiry_date" in data:
        clean["expiry_date"] = normalize_expiry(data["expiry_date"])
    if "quantity_available" in data:
        clean["quantity_available"] = _quantity(data["quantity_available"])
    for field in ("purchase_price", "selling_price"):
        if field in data:
            clean[field] = _price(data[field], field, partial)
    return clean


# ---------------------------------------------------------------------------
# Persistence contract used by the stock aggregator and allocation engine
# ---------------------------------------------------------------------------

def get_medicine(db: Session, medicine_id: int) -> Medicine:
    medicine = db.get(Medicine, medicine_id)
    if not medicine:
        raise NotFoundError("Medicine", medicine_id)
    return medicine


def get_batch(db: Session, batch_id: int) -> Batch:
    batch = db.get(Batch, batch_id)
    if not batch:
        raise NotFoundError("Batch", batch_id)
    return batch


def list_batches(
    db: Session,
    medicine_id: int,
    available_only: bool = False,
    for_update: bool = False,
) -> List[Batch]:
    """All batches of a medicine, unordered. Callers sort."""
    q = db.query(Batch).filter(Batch.medicine_id == medicine_id)
    if available_only:
        q = q.filter(Batch.quantity_available > 0)
    if for_update:
        # Row locks on PostgreSQL/MySQL; SQLite ignores this and relies on the version column.
        q = q.with_for_update().populate_existing()
    return q.all()


def update_batch_quantity(db: Session, batch_id: int, new_quantity: int) -> Batch:
    """Set quantity on a batch inside the caller's transaction."""
    qty = _quantity(new_quantity)
    batch = get_batch(db, batch_id)
    batch.quantity_available = qty
    return batch


# ---------------------------------------------------------------------------
# Operator-facing operations (commit)
# ---------------------------------------------------------------------------

def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STOCK] {action} failed: {e}")
        raise PersistenceError(f"{action} failed") from e


def add_batch(db: Session, medicine_id: int, batch_data: dict, commit: bool = True) -> int:
    """Create a new batch row for the medicine and return its id. Never merges."""
    medicine = get_medicine(db, medicine_id)
    clean = _clean_batch_data(batch_data)
    clean.setdefault("quantity_available", 0)
    clean.setdefault("batch_number", "")

    batch = Batch(medicine_id=medicine.id, **clean)
    db.add(batch)
    if commit:
        _commit(db, "add batch")
        db.refresh(batch)
    else:
        db.flush()
    logger.info(f"[STOCK] Batch {batch.id} ({batch.batch_number}) added to {medicine.name}: qty={batch.quantity_available}")
    return batch.id


def add_stock(db: Session, medicine_data: dict, batch_data: dict) -> tuple[Medicine, Batch]:
    """
    Receive stock. Finds the medicine by exact name, creating it when absent,
    then always adds a new batch.

    Returns:
        (medicine, batch)
    """
    name = (medicine_data.get("name") or "").strip()
    if not name:
        raise ValidationError("Medicine name is required")
    clean_batch = _clean_batch_data(batch_data)
    if not clean_batch.get("batch_number"):
        raise ValidationError("Batch number is required")
    threshold = _threshold(medicine_data.get("low_stock_threshold"))

    medicine = db.query(Medicine).filter(Medicine.name == name).first()
    created = medicine is None
    if created:
        medicine = Medicine(
            name=name,
            category=(medicine_data.get("category") or None),
            manufacturer=(medicine_data.get("manufacturer") or None),
            shelf_number=(medicine_data.get("shelf_number") or None),
            low_stock_threshold=threshold,
        )
        db.add(medicine)
        db.flush()

    batch_id = add_batch(db, medicine.id, clean_batch, commit=False)
    _commit(db, "add stock")
    batch = db.get(Batch, batch_id)
    db.refresh(medicine)

    AuditLog.log_stock_added(medicine.id, batch.id, batch.batch_number, batch.quantity_available, created)
    return medicine, batch


def update_batch(db: Session, batch_id: int, fields: dict) -> Batch:
    """Partial update. Unknown ids raise NotFoundError, negative quantity raises ValidationError."""
    batch = get_batch(db, batch_id)
    unknown = set(fields) - set(BATCH_FIELDS) - {"quantity"}
    if unknown:
        raise ValidationError(f"Cannot update batch field(s): {', '.join(sorted(unknown))}")
    clean = _clean_batch_data(fields, partial=True)
    for key, value in clean.items():
        setattr(batch, key, value)
    _commit(db, "update batch")
    db.refresh(batch)
    AuditLog.log_batch_updated(batch.id, {k: str(v) for k, v in clean.items()})
    return batch


def delete_batch(db: Session, batch_id: int) -> None:
    batch = get_batch(db, batch_id)
    medicine_id, quantity = batch.medicine_id, batch.quantity_available
    db.delete(batch)
    _commit(db, "delete batch")
    AuditLog.log_batch_deleted(batch_id, medicine_id, quantity)


def update_medicine(db: Session, medicine_id: int, fields: dict) -> Medicine:
    """Shelf location, threshold and identity fields. Stock is not touched here."""
    medicine = get_medicine(db, medicine_id)
    unknown = set(fields) - set(MEDICINE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update medicine field(s): {', '.join(sorted(unknown))}")

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise ValidationError("Medicine name cannot be empty")
        clash = db.query(Medicine).filter(Medicine.name == name, Medicine.id != medicine.id).first()
        if clash:
            raise ValidationError(f"Medicine '{name}' already exists")
        medicine.name = name
    if "low_stock_threshold" in fields:
        medicine.low_stock_threshold = _threshold(fields["low_stock_threshold"])
    for key in ("category", "manufacturer", "shelf_number"):
        if key in fields:
            setattr(medicine, key, (fields[key] or "").strip() or None)

    _commit(db, "update medicine")
    db.refresh(medicine)
    return medicine


def delete_medicine(db: Session, medicine_id: int) -> None:
    """Deletes the medicine and every batch it owns."""
    medicine = get_medicine(db, medicine_id)
    name, batch_count = medicine.name, len(medicine.batches)
    db.delete(medicine)
    _commit(db, "delete medicine")
    AuditLog.log_medicine_deleted(medicine_id, name, batch_count)


def total_quantity(batches: Iterable[Batch]) -> int:
    return sum(b.quantity_available or 0 for b in batches)
