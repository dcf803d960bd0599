from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from medshop.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    phone = Column(String(64), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(String(512), nullable=True)
    balance = Column(Numeric(12, 2), nullable=False, default=0)  # outstanding, owed to the shop
    created_at = Column(DateTime(timezone=True), server_default=func.now())
