"""
Bill arithmetic for the counter. Pure functions, no I/O.

- discount is clamped to the subtotal, never rejected for being too big
- total is therefore never negative
- a blank "amount paid" means the customer paid in full
- inclusive tax is only a breakdown of the subtotal for display
"""
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from medshop.core.config import settings
from medshop.core.exceptions import ValidationError

DISCOUNT_TYPES = ("percentage", "fixed")
ZERO = Decimal("0")


def D(x: Any, field: str = "value") -> Decimal:
    """Decimal from user input. NaN and Infinity are rejected like any other non-number."""
    if isinstance(x, Decimal):
        value = x
    else:
        try:
            value = Decimal(str(x if x is not None else 0))
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    if not value.is_finite():
        raise ValidationError(f"{field} must be a number")
    return value


def money2(x) -> Decimal:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _line_parts(item) -> tuple[Decimal, Decimal]:
    if isinstance(item, dict):
        qty, price = item.get("quantity"), item.get("unit_price")
    else:
        qty, price = item.quantity, item.unit_price
    qty, price = D(qty, "quantity"), D(price, "unit_price")
    if qty < 0:
        raise ValidationError("quantity cannot be negative")
    if price < 0:
        raise ValidationError("unit_price cannot be negative")
    return qty, price


def line_total(quantity, unit_price) -> Decimal:
    qty, price = _line_parts({"quantity": quantity, "unit_price": unit_price})
    return money2(qty * price)


def subtotal(items: Iterable) -> Decimal:
    """Sum of quantity × unit price. Items are cart lines or dicts with those keys."""
    total = ZERO
    for item in items:
        qty, price = _line_parts(item)
        total += qty * price
    return money2(total)


def discount(subtotal_amount, discount_type: str = "percentage", value=0) -> Decimal:
    """
    Discount amount for a bill, clamped to the subtotal.

    Examples:
        discount(100, "percentage", 10) -> 10.00
        discount(100, "fixed", 150)     -> 100.00
    """
    sub = D(subtotal_amount, "subtotal")
    val = ZERO if _is_blank(value) else D(value, "discount")
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discount type must be one of {', '.join(DISCOUNT_TYPES)}")
    if val < 0:
        raise ValidationError("discount cannot be negative")
    if sub <= 0:
        return money2(ZERO)

    raw = sub * val / Decimal("100") if discount_type == "percentage" else val
    return money2(min(raw, sub))


def total(subtotal_amount, discount_amount) -> Decimal:
    return money2(max(ZERO, D(subtotal_amount) - D(discount_amount)))


def resolve_amount_paid(total_amount, amount_paid=None) -> Decimal:
    """Blank means paid in full."""
    if _is_blank(amount_paid):
        return money2(total_amount)
    paid = D(amount_paid, "amount_paid")
    if paid < 0:
        raise ValidationError("amount paid cannot be negative")
    return money2(paid)


def balance_due(total_amount, amount_paid=None) -> Decimal:
    """
    What the customer still owes, never below zero.

    Examples:
        balance_due(500, "")  -> 0.00
        balance_due(500, 300) -> 200.00
    """
    paid = resolve_amount_paid(total_amount, amount_paid)
    return money2(max(ZERO, D(total_amount) - paid))


def implied_inclusive_tax(subtotal_amount, rate) -> Decimal:
    """Tax already inside an inclusive price: subtotal - subtotal / (1 + rate)."""
    sub, r = D(subtotal_amount, "subtotal"), D(rate, "tax rate")
    if r < 0:
        raise ValidationError("tax rate cannot be negative")
    return money2(sub - sub / (Decimal("1") + r))


@dataclass(frozen=True)
class BillTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    tax: Decimal

    def to_dict(self) -> dict:
        return {k: float(v) for k, v in asdict(self).items()}


def compute_bill_totals(
    items: Iterable,
    discount_type: str = "percentage",
    discount_value=0,
    amount_paid=None,
    tax_rate: Optional[Any] = None,
) -> BillTotals:
    sub = subtotal(items)
    disc = discount(sub, discount_type, discount_value)
    grand = total(sub, disc)
    paid = resolve_amount_paid(grand, amount_paid)
    rate = settings.INCLUSIVE_TAX_RATE if tax_rate is None else tax_rate
    return BillTotals(
        subtotal=sub,
        discount=disc,
        total=grand,
        amount_paid=paid,
        balance_due=money2(max(ZERO, grand - paid)),
        tax=implied_inclusive_tax(sub, rate),
    )
