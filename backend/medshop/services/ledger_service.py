"""Ledger entries. Posted by the sale and customer services inside their own transaction."""
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from medshop.models.ledger import LedgerEntry


def add_ledger_entry(
    db: Session,
    customer_id: int,
    debit: Decimal | float = Decimal("0"),
    credit: Decimal | float = Decimal("0"),
    description: str | None = None,
    sale_id: int | None = None,
) -> LedgerEntry:
    """Adds the entry to the session. The caller commits."""
    entry = LedgerEntry(
        customer_id=customer_id,
        sale_id=sale_id,
        debit=Decimal(str(debit)),
        credit=Decimal(str(credit)),
        description=description,
    )
    db.add(entry)
    db.flush()
    return entry


def list_ledger(db: Session, customer_id: int, limit: int = 100) -> List[LedgerEntry]:
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.customer_id == customer_id)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .limit(limit)
        .all()
    )
