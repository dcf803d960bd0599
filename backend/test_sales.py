"""Counter sales: cart pricing, atomic checkout, ledger debit for unpaid bills."""
from decimal import Decimal

import pytest

from medshop.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from medshop.models.customer import Customer
from medshop.models.ledger import LedgerEntry
from medshop.models.medicine import Batch
from medshop.models.sale import Sale
from medshop.services import sale_service
from medshop.services.batch_store import add_batch, add_stock, update_batch
from medshop.services.sale_service import CartSession


@pytest.fixture
def stock(db):
    paracetamol, a = add_stock(
        db, {"name": "Paracetamol", "shelf_number": "A-1"},
        {"batch_number": "A", "expiry_date": "2024-02", "quantity": 3, "selling_price": 10},
    )
    b_id = add_batch(db, paracetamol.id, {"batch_number": "B", "expiry_date": "2024-08", "quantity": 10, "selling_price": 12})
    cetirizine, c = add_stock(
        db, {"name": "Cetirizine"},
        {"batch_number": "C", "expiry_date": "2025-01", "quantity": 4, "selling_price": "1.50"},
    )
    return {"paracetamol": paracetamol.id, "cetirizine": cetirizine.id, "A": a.id, "B": b_id, "C": c.id}


def _qty(db, batch_id):
    db.expire_all()
    return db.get(Batch, batch_id).quantity_available


def test_cart_captures_price_from_first_fefo_batch(db, stock):
    cart = CartSession()
    line = cart.add_item(db, stock["paracetamol"], 5)

    assert line.unit_price == Decimal("10.00")
    assert line.line_total == Decimal("50.00")
    assert line.shelf_number == "A-1"


def test_cart_merges_lines_and_checks_stock_including_cart(db, stock):
    cart = CartSession()
    cart.add_item(db, stock["cetirizine"], 3)
    cart.add_item(db, stock["cetirizine"], 1)
    assert len(cart.lines) == 1 and cart.lines[0].quantity == 4

    with pytest.raises(InsufficientStockError):
        cart.add_item(db, stock["cetirizine"], 1)
    assert cart.lines[0].quantity == 4


def test_cart_rejects_bad_quantity_and_unknown_medicine(db, stock):
    cart = CartSession()
    with pytest.raises(ValidationError):
        cart.add_item(db, stock["paracetamol"], 0)
    with pytest.raises(NotFoundError):
        cart.add_item(db, 999, 1)


def test_cart_remove_and_totals(db, stock):
    cart = CartSession()
    cart.add_item(db, stock["paracetamol"], 2)
    cart.add_item(db, stock["cetirizine"], 2)
    assert cart.totals().subtotal == Decimal("23.00")

    cart.remove_item(stock["cetirizine"])
    assert cart.totals("fixed", 5).total == Decimal("15.00")
    cart.clear()
    assert cart.lines == []


def test_walk_in_sale_deducts_fefo_and_records_batches(db, stock):
    cart = CartSession()
    cart.add_item(db, stock["paracetamol"], 5)
    cart.add_item(db, stock["cetirizine"], 2)

    sale = sale_service.create_sale(db, cart, payment_method="cash")

    assert sale.invoice_no.startswith("INV-")
    assert sale.customer_id is None and sale.customer_name == "Walk-in"
    assert sale.total == Decimal("53.00")
    assert sale.balance_due == Decimal("0.00")
    assert _qty(db, stock["A"]) == 0
    assert _qty(db, stock["B"]) == 8
    assert _qty(db, stock["C"]) == 2

    para = next(i for i in sale.items if i.medicine_name == "Paracetamol")
    assert [(a.batch_number, a.quantity) for a in para.allocations] == [("A", 3), ("B", 2)]
    assert para.line_total == Decimal("50.00")


def test_failed_line_rolls_back_whole_sale(db, stock):
    cart = CartSession()
    cart.add_item(db, stock["paracetamol"], 5)
    cart.add_item(db, stock["cetirizine"], 4)
    # Stock drops after the cart was built
    update_batch(db, stock["C"], {"quantity": 1})

    with pytest.raises(InsufficientStockError):
        sale_service.create_sale(db, cart)

    assert db.query(Sale).count() == 0
    assert _qty(db, stock["A"]) == 3, "Earlier line's deduction must be undone"
    assert _qty(db, stock["B"]) == 10


def test_credit_sale_posts_ledger_debit(db, stock):
    cart = CartSession()
    cart.add_item(db, stock["paracetamol"], 5)

    sale = sale_service.create_sale(
        db, cart, customer_name="Ramesh Kumar", customer_phone="9876543210",
        discount_type="fixed", discount_value=10, amount_paid=15, payment_method="credit",
    )

    assert sale.total == Decimal("40.00")
    assert sale.balance_due == Decimal("25.00")
    customer = db.query(Customer).one()
    assert customer.name == "Ramesh Kumar"
    assert customer.balance == Decimal("25.00")
    entry = db.query(LedgerEntry).one()
    assert entry.debit == Decimal("25.00") and entry.sale_id == sale.id


def test_unpaid_walk_in_rejected(db, stock):
    cart = CartSession()
    cart.add_item(db, stock["paracetamol"], 1)

    with pytest.raises(ValidationError):
        sale_service.create_sale(db, cart, amount_paid=0)
    assert _qty(db, stock["A"]) == 3


def test_empty_cart_and_bad_payment_method(db, stock):
    with pytest.raises(ValidationError):
        sale_service.create_sale(db, CartSession())
    cart = CartSession()
    cart.add_item(db, stock["paracetamol"], 1)
    with pytest.raises(ValidationError):
        sale_service.create_sale(db, cart, payment_method="cheque")


def test_sales_listing_stats_and_receipt(db, stock):
    for qty in (1, 2):
        cart = CartSession()
        cart.add_item(db, stock["paracetamol"], qty)
        sale_service.create_sale(db, cart)

    sales, total = sale_service.list_sales(db)
    assert total == 2
    assert sales[0].items[0].quantity == 2, "Newest first"

    stats = sale_service.sales_stats(db)
    assert stats["total_bills"] == 2
    assert stats["total_sales"] == 30.0

    chart = sale_service.daily_sales(db, days=7)
    assert len(chart) == 7
    assert chart[-1]["sales"] == 30.0

    receipt = sale_service.sale_receipt(sales[0], {"shop_name": "Test Pharmacy"})
    assert receipt["shop"]["shop_name"] == "Test Pharmacy"
    assert receipt["items"][0]["batches"] == [{"batch_number": "A", "quantity": 2}]
