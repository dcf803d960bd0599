"""Two counters selling the same medicine at once must never oversell a batch."""
import threading

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from medshop.core.exceptions import ConcurrencyConflictError, InsufficientStockError
from medshop.db.base import Base
from medshop.db.session import make_engine
from medshop.models.medicine import Batch
from medshop.services import allocation, sale_service
from medshop.services.batch_store import add_stock, update_batch


@pytest.fixture
def file_sessions(tmp_path):
    """Separate connections to one SQLite file, like two API workers."""
    engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _stock(Session, quantity=5):
    db = Session()
    try:
        medicine, batch = add_stock(
            db, {"name": "Paracetamol"},
            {"batch_number": "A", "expiry_date": "2025-01", "quantity": quantity, "selling_price": 10},
        )
        return medicine.id, batch.id
    finally:
        db.close()


def _quantity(Session, batch_id):
    db = Session()
    try:
        return db.get(Batch, batch_id).quantity_available
    finally:
        db.close()


def _other_counter_between_read_and_write(monkeypatch, Session, batch_id, rounds):
    """
    Make another session rewrite the batch right after allocate() has read it,
    for the first `rounds` allocations. Each rewrite takes one unit off.
    """
    real_plan = allocation.plan_allocation
    calls = []

    def plan_after_other_counter(*args, **kwargs):
        calls.append(1)
        if len(calls) <= rounds:
            other = Session()
            try:
                current = other.get(Batch, batch_id).quantity_available
                update_batch(other, batch_id, {"quantity": current - 1})
            finally:
                other.close()
        return real_plan(*args, **kwargs)

    monkeypatch.setattr(allocation, "plan_allocation", plan_after_other_counter)
    return calls


def test_stale_batch_write_is_rejected(file_sessions):
    medicine_id, batch_id = _stock(file_sessions)
    first, second = file_sessions(), file_sessions()
    try:
        stale = first.get(Batch, batch_id)
        assert stale.quantity_available == 5

        sale_service.sell(second, medicine_id, 3)

        stale.quantity_available = 0
        with pytest.raises(StaleDataError):
            first.flush()
        first.rollback()
        assert first.get(Batch, batch_id).quantity_available == 2
    finally:
        first.close()
        second.close()


def test_stale_allocation_is_retried_from_a_fresh_read(file_sessions, monkeypatch):
    medicine_id, batch_id = _stock(file_sessions, quantity=5)
    calls = _other_counter_between_read_and_write(monkeypatch, file_sessions, batch_id, rounds=1)

    db = file_sessions()
    try:
        result = sale_service.sell(db, medicine_id, 3)
    finally:
        db.close()

    assert len(calls) == 2, "The sale must run again after the version conflict"
    assert [d.quantity for d in result.deductions] == [3]
    assert _quantity(file_sessions, batch_id) == 1, "5, minus 1 by the other counter, minus 3 on the retry"


def test_conflict_surfaces_after_retry_budget(file_sessions, monkeypatch):
    medicine_id, batch_id = _stock(file_sessions, quantity=5)
    calls = _other_counter_between_read_and_write(monkeypatch, file_sessions, batch_id, rounds=5)

    db = file_sessions()
    try:
        with pytest.raises(ConcurrencyConflictError):
            sale_service.sell(db, medicine_id, 3)
    finally:
        db.close()

    assert len(calls) == 2, "One automatic retry, then the conflict is reported"
    assert _quantity(file_sessions, batch_id) == 3, "Only the other counter's writes landed"


def test_racing_sales_never_oversell(file_sessions):
    for _ in range(10):
        medicine_id, batch_id = _stock(file_sessions, quantity=5)
        barrier = threading.Barrier(2)
        results, errors = [], []

        def counter():
            db = file_sessions()
            try:
                barrier.wait()
                results.append(sale_service.sell(db, medicine_id, 3))
            except Exception as e:  # collected and asserted below
                errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=counter) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(results) == 1, f"Exactly one sale should win, got {len(results)} ({errors!r})"
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStockError), (
            f"The losing counter should re-read and be told stock is short, got {errors[0]!r}"
        )
        assert errors[0].available == 2
        assert _quantity(file_sessions, batch_id) == 2

        db = file_sessions()
        try:
            db.query(Batch).delete()
            db.commit()
        finally:
            db.close()
