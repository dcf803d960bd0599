"""Shop expenses: rent, salaries, purchases and the like."""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medshop.core.exceptions import NotFoundError, PersistenceError, ValidationError
from medshop.models.expense import Expense
from medshop.services.billing import D, money2

logger = logging.getLogger(__name__)

EXPENSE_CATEGORIES = [
    "Rent",
    "Utilities",
    "Salaries",
    "Inventory Purchase",
    "Maintenance",
    "Marketing",
    "Transportation",
    "Other",
]
EXPENSE_FIELDS = ("description", "amount", "category", "date")


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    try:
        # "2024-05-01T10:00:00" from date pickers
        return date.fromisoformat(text.split("T")[0])
    except ValueError:
        raise ValidationError(f"Invalid expense date: {value!r}")


def _clean(fields: dict, partial: bool) -> dict:
    if not partial:
        missing = [f for f in EXPENSE_FIELDS if fields.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    clean = {}
    if "description" in fields:
        description = (fields["description"] or "").strip()
        if not description:
            raise ValidationError("Description is required")
        clean["description"] = description
    if "category" in fields:
        if fields["category"] not in EXPENSE_CATEGORIES:
            raise ValidationError(f"Unknown expense category: {fields['category']!r}")
        clean["category"] = fields["category"]
    if "amount" in fields:
        amount = money2(D(fields["amount"], "amount"))
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        clean["amount"] = amount
    if "date" in fields:
        clean["date"] = _parse_date(fields["date"])
    return clean


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[EXPENSE] {action} failed: {e}")
        raise PersistenceError(f"{action} failed") from e


def get_expense(db: Session, expense_id: int) -> Expense:
    expense = db.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense", expense_id)
    return expense


def create_expense(db: Session, fields: dict) -> Expense:
    expense = Expense(**_clean(fields, partial=False))
    db.add(expense)
    _commit(db, "create expense")
    db.refresh(expense)
    logger.info(f"[EXPENSE] {expense.category}: {expense.amount} on {expense.date}")
    return expense


def update_expense(db: Session, expense_id: int, fields: dict) -> Expense:
    expense = get_expense(db, expense_id)
    unknown = set(fields) - set(EXPENSE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update expense field(s): {', '.join(sorted(unknown))}")
    for key, value in _clean(fields, partial=True).items():
        setattr(expense, key, value)
    _commit(db, "update expense")
    db.refresh(expense)
    return expense


def delete_expense(db: Session, expense_id: int) -> None:
    expense = get_expense(db, expense_id)
    db.delete(expense)
    _commit(db, "delete expense")


def list_expenses(
    db: Session,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Expense], int]:
    """Search matches category or description. Newest first."""
    q = db.query(Expense)
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(or_(Expense.category.ilike(term), Expense.description.ilike(term)))
    count = q.count()
    q = q.order_by(Expense.date.desc(), Expense.id.desc()).offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return q.all(), count


def expense_stats(db: Session, today: Optional[date] = None) -> dict:
    today = today or date.today()
    month_start = today.replace(day=1)
    total = db.query(func.sum(Expense.amount)).scalar() or Decimal("0")
    this_month = (
        db.query(func.sum(Expense.amount))
        .filter(Expense.date >= month_start, Expense.date <= today)
        .scalar()
        or Decimal("0")
    )
    rows = (
        db.query(Expense.category, func.sum(Expense.amount))
        .group_by(Expense.category)
        .order_by(func.sum(Expense.amount).desc())
        .all()
    )
    return {
        "total_expenses": float(total),
        "this_month": float(this_month),
        "by_category": [{"category": c, "amount": float(a or 0)} for c, a in rows],
    }
