from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from medshop.db.base import Base


class Medicine(Base):
    """
    A sellable medicine. Stock lives in its batches, never on the medicine.

    Deleting a medicine deletes all its batches.
    """
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    category = Column(String(128), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    shelf_number = Column(String(64), nullable=True)  # free text, e.g. "A-3"
    low_stock_threshold = Column(Integer, nullable=True, default=10)  # NULL means default
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    batches = relationship(
        "Batch",
        back_populates="medicine",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Medicine id={self.id} name={self.name!r}>"


class Batch(Base):
    """
    One received lot of a medicine.

    quantity_available never goes below zero. `version` is bumped on every
    UPDATE and checked in the WHERE clause, so two sales that read the same
    row cannot both write it.
    """
    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("quantity_available >= 0", name="ck_batches_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_number = Column(String(64), nullable=False, default="")  # not unique across the shop
    expiry_date = Column(Date, nullable=True)  # month expiries stored as the 1st
    quantity_available = Column(Integer, nullable=False, default=0)
    purchase_price = Column(Numeric(10, 2), nullable=False, default=0)
    selling_price = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    version = Column(Integer, nullable=False, default=1)

    medicine = relationship("Medicine", back_populates="batches")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Batch id={self.id} medicine_id={self.medicine_id} qty={self.quantity_available} expiry={self.expiry_date}>"
