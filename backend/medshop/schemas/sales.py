from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field


class CartItemIn(BaseModel):
    medicine_id: int
    quantity: int
    unit_price: Optional[float] = None  # price captured when the line was first quoted


class QuoteRequest(BaseModel):
    items: List[CartItemIn] = Field(default_factory=list)
    discount_type: Literal["percentage", "fixed"] = "percentage"
    discount_value: float = 0
    amount_paid: Optional[Union[float, str]] = None  # blank = paid in full


class SaleCreate(QuoteRequest):
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: Literal["cash", "card", "upi", "credit"] = "cash"


class CartLineResponse(BaseModel):
    medicine_id: int
    medicine_name: str
    quantity: int
    unit_price: float
    line_total: float
    shelf_number: Optional[str] = None


class BillTotalsResponse(BaseModel):
    subtotal: float
    discount: float
    total: float
    amount_paid: float
    balance_due: float
    tax: float


class QuoteResponse(BaseModel):
    lines: List[CartLineResponse]
    totals: BillTotalsResponse


class SaleAllocationResponse(BaseModel):
    batch_id: Optional[int] = None
    batch_number: str
    quantity: int

    class Config:
        from_attributes = True


class SaleItemResponse(BaseModel):
    medicine_id: Optional[int] = None
    medicine_name: str
    shelf_number: Optional[str] = None
    quantity: int
    unit_price: float
    line_total: float
    allocations: List[SaleAllocationResponse] = []

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    id: int
    invoice_no: Optional[str] = None
    customer_id: Optional[int] = None
    customer_name: str
    customer_phone: Optional[str] = None
    subtotal: float
    tax: float
    discount: float
    total: float
    amount_paid: float
    balance_due: float
    payment_method: str
    created_at: Optional[datetime] = None
    items: List[SaleItemResponse] = []

    class Config:
        from_attributes = True


class SalePage(BaseModel):
    items: List[SaleResponse]
    total: int
