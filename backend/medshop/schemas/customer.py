from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class CustomerCreate(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    balance: float = 0  # opening balance


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    balance: Optional[float] = None


class CustomerResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    balance: float
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerPage(BaseModel):
    items: List[CustomerResponse]
    total: int


class PaymentCreate(BaseModel):
    amount: float
    description: Optional[str] = None


class LedgerRecord(BaseModel):
    id: int
    customer_id: int
    sale_id: Optional[int] = None
    debit: float
    credit: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
