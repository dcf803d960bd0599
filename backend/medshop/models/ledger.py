from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import backref, relationship
from sqlalchemy.sql import func

from medshop.db.base import Base


class LedgerEntry(Base):
    """Debit = customer owes more (credit sale, opening balance). Credit = payment received."""
    __tablename__ = "ledger"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="SET NULL"), nullable=True)
    debit = Column(Numeric(12, 2), default=0)
    credit = Column(Numeric(12, 2), default=0)
    description = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship(
        "Customer",
        backref=backref("ledger_entries", cascade="all, delete-orphan", passive_deletes=True),
    )
