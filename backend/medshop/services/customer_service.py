"""
Customers and their outstanding balance.

Customer.balance is only ever moved together with a ledger entry:
debit raises it (credit sale, opening balance), credit lowers it (payment).
"""
import logging
import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medshop.core.audit import AuditLog
from medshop.core.config import settings
from medshop.core.exceptions import NotFoundError, PersistenceError, ValidationError
from medshop.models.customer import Customer
from medshop.models.sale import Sale
from medshop.services.billing import D, money2
from medshop.services.ledger_service import add_ledger_entry

logger = logging.getLogger(__name__)

BALANCE_FILTERS = ("all", "due", "clear")
SORT_ORDERS = ("name", "balance_desc", "newest")
CONTACT_FIELDS = ("name", "phone", "email", "address")


def sanitize_customer_name(name: str) -> str:
    """Sanitize customer name to keep invoices and search clean.

    - Strip excessive whitespace
    - Remove special characters except letters, numbers, spaces, hyphens, apostrophes, dots
    - Limit length to 100 characters
    """
    if not name or not name.strip():
        raise ValidationError("Customer name cannot be empty")

    # Strip and collapse whitespace
    name = " ".join(name.strip().split())

    # Keep only safe characters
    name = re.sub(r"[^\w\s\-'.]", "", name)
    name = name[:100].strip()

    if len(name) < 2:
        raise ValidationError("Customer name must be at least 2 characters")
    return name


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[CUSTOMER] {action} failed: {e}")
        raise PersistenceError(f"{action} failed") from e


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


def get_or_create_customer(db: Session, name: str, phone: str | None = None) -> Customer:
    """Find customer by exact name (and phone when given) or create one. Does not commit."""
    name_clean = sanitize_customer_name(name)
    q = db.query(Customer).filter(Customer.name == name_clean)
    if phone:
        q = q.filter(Customer.phone == phone.strip())
    customer = q.order_by(Customer.id).first()
    if customer:
        return customer
    customer = Customer(name=name_clean, phone=(phone or "").strip() or None, balance=Decimal("0"))
    db.add(customer)
    db.flush()
    logger.info(f"[CUSTOMER] Created {customer.name} (id={customer.id}) at the counter")
    return customer


def post_debit(db: Session, customer: Customer, amount, description: str, sale_id: int | None = None) -> None:
    """Customer owes `amount` more. Does not commit."""
    amount = money2(amount)
    if amount <= 0:
        return
    add_ledger_entry(db, customer.id, debit=amount, description=description, sale_id=sale_id)
    customer.balance = money2(D(customer.balance) + amount)


def post_credit(db: Session, customer: Customer, amount, description: str) -> None:
    amount = money2(amount)
    if amount <= 0:
        return
    add_ledger_entry(db, customer.id, credit=amount, description=description)
    customer.balance = money2(D(customer.balance) - amount)


def create_customer(db: Session, data: dict) -> Customer:
    name = sanitize_customer_name(data.get("name") or "")
    phone = (data.get("phone") or "").strip()
    if not phone:
        raise ValidationError("Phone number is required")
    opening = D(data.get("balance") or 0, "balance")
    if opening < 0:
        raise ValidationError("Opening balance cannot be negative")

    customer = Customer(
        name=name,
        phone=phone,
        email=(data.get("email") or "").strip() or None,
        address=(data.get("address") or "").strip() or None,
        balance=Decimal("0"),
    )
    db.add(customer)
    db.flush()
    post_debit(db, customer, opening, "Opening balance")
    _commit(db, "create customer")
    db.refresh(customer)
    return customer


def update_customer(db: Session, customer_id: int, fields: dict) -> Customer:
    """
    Contact details are set directly. A changed `balance` is booked as an
    adjustment entry so the ledger still explains the balance.
    """
    customer = get_customer(db, customer_id)
    unknown = set(fields) - set(CONTACT_FIELDS) - {"balance"}
    if unknown:
        raise ValidationError(f"Cannot update customer field(s): {', '.join(sorted(unknown))}")

    if "name" in fields:
        customer.name = sanitize_customer_name(fields["name"] or "")
    if "phone" in fields:
        phone = (fields["phone"] or "").strip()
        if not phone:
            raise ValidationError("Phone number is required")
        customer.phone = phone
    for key in ("email", "address"):
        if key in fields:
            setattr(customer, key, (fields[key] or "").strip() or None)

    if fields.get("balance") is not None:
        target = money2(fields["balance"])
        if target < 0:
            raise ValidationError("Balance cannot be negative")
        diff = target - money2(customer.balance)
        if diff > 0:
            post_debit(db, customer, diff, "Balance adjustment")
        elif diff < 0:
            post_credit(db, customer, -diff, "Balance adjustment")

    _commit(db, "update customer")
    db.refresh(customer)
    return customer


def delete_customer(db: Session, customer_id: int) -> None:
    """Ledger entries go with the customer; past sales keep the name but lose the link."""
    customer = get_customer(db, customer_id)
    db.delete(customer)
    _commit(db, "delete customer")


def record_payment(db: Session, customer_id: int, amount, description: str | None = None) -> Customer:
    customer = get_customer(db, customer_id)
    paid = money2(amount)
    if paid <= 0:
        raise ValidationError("Payment amount must be positive")
    if paid > money2(customer.balance):
        raise ValidationError(f"Payment exceeds outstanding balance of {money2(customer.balance)}")

    post_credit(db, customer, paid, description or "Payment received")
    _commit(db, "record payment")
    db.refresh(customer)
    AuditLog.log_payment(customer.id, paid, customer.balance)
    return customer


def list_customers(
    db: Session,
    search: Optional[str] = None,
    balance_filter: str = "all",
    sort: str = "name",
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Customer], int]:
    if balance_filter not in BALANCE_FILTERS:
        raise ValidationError(f"balance filter must be one of {', '.join(BALANCE_FILTERS)}")
    if sort not in SORT_ORDERS:
        raise ValidationError(f"sort must be one of {', '.join(SORT_ORDERS)}")

    q = db.query(Customer)
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(term), Customer.phone.ilike(term)))
    if balance_filter == "due":
        q = q.filter(Customer.balance > 0)
    elif balance_filter == "clear":
        q = q.filter(Customer.balance <= 0)

    count = q.count()
    if sort == "balance_desc":
        q = q.order_by(Customer.balance.desc(), Customer.name)
    elif sort == "newest":
        q = q.order_by(Customer.created_at.desc(), Customer.id.desc())
    else:
        q = q.order_by(Customer.name)

    q = q.offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return q.all(), count


def customer_stats(db: Session) -> dict:
    since = datetime.utcnow() - timedelta(days=settings.NEW_CUSTOMER_DAYS)
    total = db.query(func.count(Customer.id)).scalar() or 0
    new_count = db.query(func.count(Customer.id)).filter(Customer.created_at >= since).scalar() or 0
    total_balance = db.query(func.sum(Customer.balance)).scalar() or Decimal("0")
    return {
        "total": total,
        "new_count": new_count,
        "total_balance": float(total_balance),
    }


def customer_history(db: Session, customer_id: int) -> List[Sale]:
    """Purchase history, newest first."""
    get_customer(db, customer_id)
    return (
        db.query(Sale)
        .filter(Sale.customer_id == customer_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
