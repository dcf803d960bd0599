"""
Stock aggregation — read-side view of a medicine's batches.

`summarize` is the single definition of total stock, nearest expiry,
low-stock and near-expiry. Inventory listing, dashboard alerts, the
billing search and the counter all go through it.

Two near-expiry windows exist on purpose and are kept apart:
- dashboard alert: expiring within DASHBOARD_EXPIRY_WINDOW_DAYS (60)
- inventory list filter: expiring within INVENTORY_EXPIRY_WINDOW_DAYS (30)
"""
import logging
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from medshop.core.config import settings
from medshop.core.exceptions import ValidationError
from medshop.models.medicine import Batch, Medicine
from medshop.services.batch_store import get_medicine, total_quantity

logger = logging.getLogger(__name__)

STOCK_STATUSES = ("all", "low", "out", "healthy")
EXPIRY_STATUSES = ("all", "expired", "near")


@dataclass(frozen=True)
class StockSummary:
    medicine_id: int
    name: str
    category: Optional[str]
    manufacturer: Optional[str]
    shelf_number: Optional[str]
    low_stock_threshold: int
    total_stock: int
    nearest_expiry: Optional[date]
    unit_price: Decimal
    batch_count: int
    is_low_stock: bool
    is_out_of_stock: bool
    is_expired: bool
    is_near_expiry_alert: bool
    is_near_expiry_listing: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["nearest_expiry"] = self.nearest_expiry.isoformat() if self.nearest_expiry else None
        data["unit_price"] = float(self.unit_price)
        return data


def effective_threshold(medicine: Medicine) -> int:
    if medicine.low_stock_threshold is None:
        return settings.DEFAULT_LOW_STOCK_THRESHOLD
    return medicine.low_stock_threshold


def fefo_sort_key(batch: Batch):
    """Earliest expiry first, undated batches last, oldest row first on ties."""
    return (batch.expiry_date is None, batch.expiry_date or date.max, batch.id or 0)


def nearest_expiry(batches: Iterable[Batch]) -> Optional[date]:
    """Minimum expiry among batches that still hold stock. Undated batches are ignored."""
    dates = [b.expiry_date for b in batches if (b.quantity_available or 0) > 0 and b.expiry_date is not None]
    return min(dates) if dates else None


def capture_unit_price(batches: Iterable[Batch]) -> Decimal:
    """Selling price of the batch FEFO would sell first. 0 when nothing is in stock."""
    available = sorted((b for b in batches if (b.quantity_available or 0) > 0), key=fefo_sort_key)
    if not available:
        return Decimal("0")
    return Decimal(str(available[0].selling_price or 0))


def is_near_expiry(expiry: Optional[date], today: date, window_days: int) -> bool:
    if expiry is None:
        return False
    return today <= expiry < today + timedelta(days=window_days)


def summarize(medicine: Medicine, batches: Iterable[Batch], today: Optional[date] = None) -> StockSummary:
    """Pure: same medicine + batches + day always gives the same summary."""
    batches = list(batches)
    today = today or date.today()
    threshold = effective_threshold(medicine)
    total = total_quantity(batches)
    expiry = nearest_expiry(batches)

    return StockSummary(
        medicine_id=medicine.id,
        name=medicine.name,
        category=medicine.category,
        manufacturer=medicine.manufacturer,
        shelf_number=medicine.shelf_number,
        low_stock_threshold=threshold,
        total_stock=total,
        nearest_expiry=expiry,
        unit_price=capture_unit_price(batches),
        batch_count=len(batches),
        is_low_stock=total < threshold,
        is_out_of_stock=total == 0,
        is_expired=expiry is not None and expiry < today,
        is_near_expiry_alert=is_near_expiry(expiry, today, settings.DASHBOARD_EXPIRY_WINDOW_DAYS),
        is_near_expiry_listing=is_near_expiry(expiry, today, settings.INVENTORY_EXPIRY_WINDOW_DAYS),
    )


def get_stock_summary(db: Session, medicine_id: int, today: Optional[date] = None) -> StockSummary:
    medicine = get_medicine(db, medicine_id)
    return summarize(medicine, medicine.batches, today)


def _all_summaries(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    today: Optional[date] = None,
) -> List[StockSummary]:
    q = db.query(Medicine).options(selectinload(Medicine.batches))
    if search and search.strip():
        q = q.filter(Medicine.name.ilike(f"%{search.strip()}%"))
    if category and category != "all":
        q = q.filter(Medicine.category == category)
    medicines = q.order_by(Medicine.name).all()
    return [summarize(m, m.batches, today) for m in medicines]


def _matches_stock(summary: StockSummary, stock_status: str) -> bool:
    if stock_status == "low":
        return summary.is_low_stock
    if stock_status == "out":
        return summary.is_out_of_stock
    if stock_status == "healthy":
        return not summary.is_low_stock
    return True


def _matches_expiry(summary: StockSummary, expiry_status: str) -> bool:
    if expiry_status == "expired":
        return summary.is_expired
    if expiry_status == "near":
        return summary.is_near_expiry_listing
    return True


def list_inventory(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    stock_status: str = "all",
    expiry_status: str = "all",
    limit: Optional[int] = None,
    offset: int = 0,
    today: Optional[date] = None,
) -> Tuple[List[StockSummary], int]:
    """
    Inventory list page.

    Returns:
        (page of summaries ordered by name, total matching count)
    """
    if stock_status not in STOCK_STATUSES:
        raise ValidationError(f"stock_status must be one of {', '.join(STOCK_STATUSES)}")
    if expiry_status not in EXPIRY_STATUSES:
        raise ValidationError(f"expiry_status must be one of {', '.join(EXPIRY_STATUSES)}")
    if offset < 0 or (limit is not None and limit < 0):
        raise ValidationError("limit and offset cannot be negative")

    rows = [
        s for s in _all_summaries(db, search, category, today)
        if _matches_stock(s, stock_status) and _matches_expiry(s, expiry_status)
    ]
    page = rows[offset:] if limit is None else rows[offset:offset + limit]
    return page, len(rows)


def list_low_stock(db: Session, limit: Optional[int] = None, today: Optional[date] = None) -> List[StockSummary]:
    """Below threshold, emptiest first. Medicines with no batches count as low (0 < threshold)."""
    rows = [s for s in _all_summaries(db, today=today) if s.is_low_stock]
    rows.sort(key=lambda s: (s.total_stock, s.name))
    return rows[:limit] if limit else rows


def list_near_expiry(db: Session, limit: Optional[int] = None, today: Optional[date] = None) -> List[StockSummary]:
    """Dashboard alert list (60-day window), soonest expiry first."""
    rows = [s for s in _all_summaries(db, today=today) if s.is_near_expiry_alert]
    rows.sort(key=lambda s: (s.nearest_expiry, s.name))
    return rows[:limit] if limit else rows


def inventory_stats(db: Session, today: Optional[date] = None) -> dict:
    summaries = _all_summaries(db, today=today)
    return {
        "total_products": len(summaries),
        "low_stock": sum(1 for s in summaries if s.is_low_stock),
        "out_of_stock": sum(1 for s in summaries if s.is_out_of_stock),
        "expired": sum(1 for s in summaries if s.is_expired),
        "near_expiry": sum(1 for s in summaries if s.is_near_expiry_alert),
        "total_units": sum(s.total_stock for s in summaries),
    }


def category_stats(db: Session) -> List[dict]:
    """Medicine count per category for the dashboard pie."""
    category = func.coalesce(Medicine.category, "Uncategorized")
    rows = (
        db.query(category, func.count(Medicine.id))
        .group_by(category)
        .order_by(func.count(Medicine.id).desc(), category)
        .all()
    )
    return [{"category": category, "count": count} for category, count in rows]


def list_categories(db: Session) -> List[str]:
    rows = db.query(Medicine.category).filter(Medicine.category.isnot(None)).distinct().all()
    return sorted(r[0] for r in rows if r[0])
