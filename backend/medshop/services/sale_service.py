"""
Counter sales.

A sale is built in a CartSession (one per bill, nothing global), priced
once when each line is added, and committed by `create_sale` in a single
transaction together with its FEFO batch deductions, ledger debit and
customer balance. Either all of it lands or none of it does.

Unit price is captured when the line goes into the cart: the selling
price of the batch FEFO would sell first. It is NOT re-priced per batch
at allocation time.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from medshop.core.audit import AuditLog
from medshop.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from medshop.models.sale import Sale, SaleAllocation, SaleItem
from medshop.services import billing
from medshop.services.allocation import Deduction, allocate, run_with_conflict_retry
from medshop.services.batch_store import get_medicine
from medshop.services.customer_service import get_customer, get_or_create_customer, post_debit
from medshop.services.stock_aggregator import summarize

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "card", "upi", "credit")
WALK_IN = "Walk-in"


@dataclass
class CartLine:
    medicine_id: int
    medicine_name: str
    quantity: int
    unit_price: Decimal
    shelf_number: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return billing.line_total(self.quantity, self.unit_price)

    def to_dict(self) -> dict:
        return {
            "medicine_id": self.medicine_id,
            "medicine_name": self.medicine_name,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "line_total": float(self.line_total),
            "shelf_number": self.shelf_number,
        }


@dataclass
class CartSession:
    """In-progress bill. Passed explicitly to pricing and checkout."""

    lines: List[CartLine] = field(default_factory=list)

    def find(self, medicine_id: int) -> Optional[CartLine]:
        return next((line for line in self.lines if line.medicine_id == medicine_id), None)

    def add_item(self, db: Session, medicine_id: int, quantity, unit_price=None) -> CartLine:
        """
        Add or top up a line. Quantity is checked against current total stock,
        counting what is already in the cart for that medicine.

        `unit_price` is for lines priced earlier (e.g. a quote the client kept);
        otherwise the price is captured now.
        """
        qty = _positive_quantity(quantity)
        medicine = get_medicine(db, medicine_id)
        summary = summarize(medicine, medicine.batches)

        existing = self.find(medicine.id)
        in_cart = existing.quantity if existing else 0
        if in_cart + qty > summary.total_stock:
            raise InsufficientStockError(
                medicine.id, in_cart + qty, summary.total_stock, medicine_name=medicine.name
            )

        if existing:
            existing.quantity += qty
            return existing

        if unit_price is None:
            price = summary.unit_price
        else:
            price = billing.money2(unit_price)
            if price < 0:
                raise ValidationError("unit_price cannot be negative")
        line = CartLine(medicine.id, medicine.name, qty, price, medicine.shelf_number)
        self.lines.append(line)
        return line

    def remove_item(self, medicine_id: int) -> None:
        self.lines = [line for line in self.lines if line.medicine_id != medicine_id]

    def clear(self) -> None:
        self.lines = []

    def totals(self, discount_type: str = "percentage", discount_value=0, amount_paid=None) -> billing.BillTotals:
        return billing.compute_bill_totals(self.lines, discount_type, discount_value, amount_paid)


@dataclass(frozen=True)
class SaleLineResult:
    medicine_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    deductions: Tuple[Deduction, ...]

    def to_dict(self) -> dict:
        return {
            "medicine_id": self.medicine_id,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "line_total": float(self.line_total),
            "deductions": [d.to_dict() for d in self.deductions],
        }


def _positive_quantity(quantity) -> int:
    if quantity is None or isinstance(quantity, bool):
        raise ValidationError("Quantity is required")
    try:
        qty = int(quantity)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Quantity must be a whole number")
    if qty != quantity and not isinstance(quantity, str):
        raise ValidationError("Quantity must be a whole number")
    if qty < 1:
        raise ValidationError("Quantity must be at least 1")
    return qty


def build_cart(db: Session, items: Iterable[dict]) -> CartSession:
    """Cart from request lines: [{medicine_id, quantity, unit_price?}, ...]."""
    cart = CartSession()
    for item in items:
        cart.add_item(db, item["medicine_id"], item["quantity"], item.get("unit_price"))
    return cart


def sell(db: Session, medicine_id: int, quantity, unit_price=None) -> SaleLineResult:
    """Deduct one line from stock (FEFO) and commit. No bill is written."""
    qty = _positive_quantity(quantity)

    def work() -> SaleLineResult:
        medicine = get_medicine(db, medicine_id)
        price = billing.money2(unit_price) if unit_price is not None else summarize(medicine, medicine.batches).unit_price
        deductions = allocate(db, medicine.id, qty)
        return SaleLineResult(medicine.id, qty, price, billing.line_total(qty, price), tuple(deductions))

    result = run_with_conflict_retry(db, work)
    AuditLog.log_allocation(result.medicine_id, qty, [(d.batch_id, d.quantity) for d in result.deductions])
    return result


def _invoice_no(sale: Sale) -> str:
    stamp = datetime.utcnow().strftime("%Y%m%d")
    return f"INV-{stamp}-{sale.id:06d}"


def create_sale(
    db: Session,
    cart: CartSession,
    customer_id: Optional[int] = None,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    discount_type: str = "percentage",
    discount_value=0,
    amount_paid=None,
    payment_method: str = "cash",
) -> Sale:
    """
    Commit a bill: every line's FEFO deduction, the sale record with captured
    prices, and the customer's ledger debit for any balance due, in one
    transaction, retried once on a stock conflict.
    """
    if not cart.lines:
        raise ValidationError("Please add items to the cart")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment method must be one of {', '.join(PAYMENT_METHODS)}")
    totals = cart.totals(discount_type, discount_value, amount_paid)
    name = (customer_name or "").strip()

    def work() -> Sale:
        customer = None
        if customer_id is not None:
            customer = get_customer(db, customer_id)
        elif name and name.lower() != WALK_IN.lower():
            customer = get_or_create_customer(db, name, customer_phone)
        if totals.balance_due > 0 and customer is None:
            raise ValidationError("A named customer is required when the bill is not fully paid")

        sale = Sale(
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else (name or WALK_IN),
            customer_phone=(customer.phone if customer else None) or (customer_phone or None),
            subtotal=totals.subtotal,
            tax=totals.tax,
            discount=totals.discount,
            total=totals.total,
            amount_paid=totals.amount_paid,
            balance_due=totals.balance_due,
            payment_method=payment_method,
        )
        db.add(sale)

        for line in cart.lines:
            deductions = allocate(db, line.medicine_id, line.quantity)
            item = SaleItem(
                medicine_id=line.medicine_id,
                medicine_name=line.medicine_name,
                shelf_number=line.shelf_number,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            item.allocations = [
                SaleAllocation(batch_id=d.batch_id, batch_number=d.batch_number, quantity=d.quantity)
                for d in deductions
            ]
            sale.items.append(item)

        db.flush()
        sale.invoice_no = _invoice_no(sale)
        if customer is not None:
            post_debit(db, customer, totals.balance_due, f"Invoice {sale.invoice_no}", sale_id=sale.id)
        return sale

    sale = run_with_conflict_retry(db, work)
    db.refresh(sale)

    for item in sale.items:
        AuditLog.log_allocation(item.medicine_id, item.quantity, [(a.batch_id, a.quantity) for a in item.allocations])
    AuditLog.log_sale_committed(sale.id, sale.invoice_no, sale.total, sale.balance_due, sale.customer_id)
    logger.info(f"[SALE] {sale.invoice_no}: {len(sale.items)} line(s), total={sale.total}, due={sale.balance_due}")
    return sale


def get_sale(db: Session, sale_id: int) -> Sale:
    sale = db.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale", sale_id)
    return sale


def list_sales(
    db: Session,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Sale], int]:
    q = db.query(Sale)
    if search and search.strip():
        term = f"%{search.strip()}%"
        q = q.filter(Sale.customer_name.ilike(term) | Sale.invoice_no.ilike(term))
    count = q.count()
    q = q.order_by(Sale.created_at.desc(), Sale.id.desc()).offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return q.all(), count


def sales_stats(db: Session, today: Optional[date] = None) -> dict:
    today = today or datetime.utcnow().date()
    total_sales = db.query(func.sum(Sale.total)).scalar() or Decimal("0")
    total_bills = db.query(func.count(Sale.id)).scalar() or 0
    today_sales = db.query(func.sum(Sale.total)).filter(func.date(Sale.created_at) == today.isoformat()).scalar() or Decimal("0")
    today_bills = db.query(func.count(Sale.id)).filter(func.date(Sale.created_at) == today.isoformat()).scalar() or 0
    outstanding = db.query(func.sum(Sale.balance_due)).scalar() or Decimal("0")
    return {
        "total_sales": float(total_sales),
        "total_bills": total_bills,
        "today_sales": float(today_sales),
        "today_bills": today_bills,
        "outstanding": float(outstanding),
    }


def daily_sales(db: Session, days: int = 7, today: Optional[date] = None) -> List[dict]:
    """Sales per day for the last `days` days, zero-filled, oldest first."""
    if days < 1:
        raise ValidationError("days must be at least 1")
    end_date = today or datetime.utcnow().date()
    start_date = end_date - timedelta(days=days - 1)

    sale_day = func.date(Sale.created_at)
    results = (
        db.query(sale_day.label("day"), func.sum(Sale.total).label("sales"), func.count(Sale.id).label("bills"))
        .filter(sale_day >= start_date.isoformat())
        .group_by(sale_day)
        .all()
    )
    by_day = {str(r.day): (float(r.sales or 0), r.bills) for r in results}

    data = []
    for i in range(days):
        d = start_date + timedelta(days=i)
        sales, bills = by_day.get(d.isoformat(), (0.0, 0))
        data.append({"date": d.isoformat(), "day": d.strftime("%a"), "sales": sales, "bills": bills})
    return data


def sale_receipt(sale: Sale, shop: dict | None = None) -> dict:
    """Finalized sale record handed to invoice/PDF and messaging collaborators."""
    return {
        "shop": shop or {},
        "invoice_no": sale.invoice_no,
        "date": sale.created_at.isoformat() if sale.created_at else None,
        "customer": {"id": sale.customer_id, "name": sale.customer_name, "phone": sale.customer_phone},
        "items": [
            {
                "medicine_name": item.medicine_name,
                "shelf_number": item.shelf_number,
                "quantity": item.quantity,
                "unit_price": float(item.unit_price),
                "line_total": float(item.line_total),
                "batches": [{"batch_number": a.batch_number, "quantity": a.quantity} for a in item.allocations],
            }
            for item in sale.items
        ],
        "subtotal": float(sale.subtotal),
        "tax": float(sale.tax),
        "discount": float(sale.discount),
        "total": float(sale.total),
        "amount_paid": float(sale.amount_paid),
        "balance_due": float(sale.balance_due),
        "payment_method": sale.payment_method,
    }
