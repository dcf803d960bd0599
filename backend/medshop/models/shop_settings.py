from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.types import JSON

from medshop.db.base import Base


class ShopSettings(Base):
    """Shop profile printed on invoices. Single row."""
    __tablename__ = "shop_settings"

    id = Column(Integer, primary_key=True)
    shop_name = Column(String(255), nullable=False)
    license_number = Column(String(128), nullable=True)
    address = Column(String(512), nullable=True)
    mobile = Column(String(64), nullable=True)
    bank_name = Column(String(255), nullable=True)
    account_number = Column(String(64), nullable=True)
    ifsc = Column(String(32), nullable=True)
    branch = Column(String(255), nullable=True)
    terms = Column(JSON, nullable=True)  # list of lines
    notes = Column(Text, nullable=True)
