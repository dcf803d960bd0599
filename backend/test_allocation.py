"""FEFO allocation: order, conservation, all-or-nothing and conflict retry."""
from datetime import date
from decimal import Decimal

import sqlite3

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from medshop.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    PersistenceError,
    ValidationError,
)
from medshop.models.medicine import Batch
from medshop.services import allocation, sale_service
from medshop.services.batch_store import add_batch, add_stock


def _medicine_with(db, lots, name="Paracetamol"):
    """lots: [(batch_number, expiry, qty, price), ...] -> (medicine, {batch_number: batch_id})"""
    medicine, first = add_stock(
        db, {"name": name},
        {"batch_number": lots[0][0], "expiry_date": lots[0][1], "quantity": lots[0][2], "selling_price": lots[0][3]},
    )
    ids = {first.batch_number: first.id}
    for number, expiry, qty, price in lots[1:]:
        ids[number] = add_batch(
            db, medicine.id,
            {"batch_number": number, "expiry_date": expiry, "quantity": qty, "selling_price": price},
        )
    return medicine, ids


def _quantities(db, ids):
    db.expire_all()
    return {number: db.get(Batch, batch_id).quantity_available for number, batch_id in ids.items()}


def test_plan_takes_earliest_expiry_first():
    batches = [
        Batch(id=2, batch_number="B2", expiry_date=date(2024, 3, 1), quantity_available=5),
        Batch(id=1, batch_number="B1", expiry_date=date(2024, 1, 1), quantity_available=5),
    ]
    plan = allocation.plan_allocation(batches, 8)
    assert [(d.batch_number, d.quantity) for d in plan] == [("B1", 5), ("B2", 3)]
    assert batches[0].quantity_available == 5, "Planning must not touch the batches"


def test_plan_puts_undated_batches_last_and_breaks_ties_by_id():
    batches = [
        Batch(id=1, batch_number="NODATE", expiry_date=None, quantity_available=10),
        Batch(id=3, batch_number="LATER", expiry_date=date(2024, 5, 1), quantity_available=2),
        Batch(id=2, batch_number="EARLIER", expiry_date=date(2024, 5, 1), quantity_available=2),
    ]
    plan = allocation.plan_allocation(batches, 6)
    assert [(d.batch_number, d.quantity) for d in plan] == [("EARLIER", 2), ("LATER", 2), ("NODATE", 2)]


def test_plan_skips_empty_batches():
    batches = [
        Batch(id=1, batch_number="EMPTY", expiry_date=date(2024, 1, 1), quantity_available=0),
        Batch(id=2, batch_number="FULL", expiry_date=date(2024, 6, 1), quantity_available=4),
    ]
    plan = allocation.plan_allocation(batches, 4)
    assert [d.batch_number for d in plan] == ["FULL"]


def test_plan_rejects_bad_quantity():
    for bad in (0, -3, 2.5, None, "x"):
        with pytest.raises(ValidationError):
            allocation.plan_allocation([], bad)


def test_plan_reports_shortfall():
    batches = [Batch(id=1, batch_number="B1", expiry_date=None, quantity_available=3)]
    with pytest.raises(InsufficientStockError) as exc:
        allocation.plan_allocation(batches, 5, medicine_id=7)
    assert exc.value.available == 3
    assert exc.value.shortfall == 2
    assert exc.value.to_dict()["shortfall"] == 2


def test_allocate_conserves_quantity(db):
    medicine, ids = _medicine_with(db, [
        ("B1", "2024-01", 5, 10),
        ("B2", "2024-03", 5, 10),
        ("B3", None, 5, 10),
    ])
    plan = allocation.allocate(db, medicine.id, 8)
    db.commit()

    assert sum(d.quantity for d in plan) == 8
    assert _quantities(db, ids) == {"B1": 0, "B2": 2, "B3": 5}


def test_allocate_is_all_or_nothing(db):
    medicine, ids = _medicine_with(db, [("B1", "2024-01", 5, 10), ("B2", "2024-03", 5, 10)])
    before = _quantities(db, ids)

    with pytest.raises(InsufficientStockError) as exc:
        allocation.allocate(db, medicine.id, 11)
    db.rollback()

    assert exc.value.shortfall == 1
    assert _quantities(db, ids) == before


def test_allocate_with_no_batches(db):
    medicine, _ = _medicine_with(db, [("B1", None, 0, 10)])
    with pytest.raises(InsufficientStockError) as exc:
        allocation.allocate(db, medicine.id, 1)
    assert exc.value.available == 0


def test_paracetamol_scenario(db):
    medicine, ids = _medicine_with(db, [("A", "2024-02", 3, 10), ("B", "2024-08", 10, 12)])

    result = sale_service.sell(db, medicine.id, 5)

    assert [(d.batch_number, d.quantity) for d in result.deductions] == [("A", 3), ("B", 2)]
    assert _quantities(db, ids) == {"A": 0, "B": 8}
    assert result.unit_price == Decimal("10.00")
    assert result.line_total == Decimal("50.00"), "Charged at the captured price, not re-priced per batch"


def test_retry_runs_work_again_after_conflict(db):
    calls = []

    def work():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("batch version changed")
        return "done"

    assert allocation.run_with_conflict_retry(db, work, retries=1) == "done"
    assert len(calls) == 2


def test_retry_gives_up_after_limit(db):
    calls = []

    def work():
        calls.append(1)
        raise ConcurrencyConflictError("still racing")

    with pytest.raises(ConcurrencyConflictError):
        allocation.run_with_conflict_retry(db, work, retries=1)
    assert len(calls) == 2


def test_retry_does_not_repeat_domain_errors(db):
    calls = []

    def work():
        calls.append(1)
        raise InsufficientStockError(1, 5, 2)

    with pytest.raises(InsufficientStockError):
        allocation.run_with_conflict_retry(db, work)
    assert len(calls) == 1


def test_retry_treats_lock_contention_as_conflict(db):
    calls = []

    def work():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("UPDATE batches", {}, sqlite3.OperationalError("database is locked"))
        return "done"

    assert allocation.run_with_conflict_retry(db, work, retries=1) == "done"
    assert len(calls) == 2


def test_retry_reports_other_database_errors(db):
    calls = []

    def work():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, sqlite3.OperationalError("disk I/O error"))

    with pytest.raises(PersistenceError):
        allocation.run_with_conflict_retry(db, work, retries=1)
    assert len(calls) == 1


def test_infinite_quantity_rejected():
    with pytest.raises(ValidationError):
        allocation.plan_allocation([], float("inf"))
