from datetime import date
from typing import List, Optional

from pydantic import BaseModel


class StockCreate(BaseModel):
    """Add-stock form: medicine identity plus the received batch."""
    name: str
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    shelf_number: Optional[str] = None
    low_stock_threshold: Optional[int] = 10
    batch_number: str
    expiry_date: Optional[str] = None  # YYYY-MM or YYYY-MM-DD
    quantity: int = 0
    purchase_price: float = 0
    selling_price: float = 0


class BatchCreate(BaseModel):
    batch_number: str = ""
    expiry_date: Optional[str] = None
    quantity: int = 0
    purchase_price: float = 0
    selling_price: float = 0


class BatchUpdate(BaseModel):
    batch_number: Optional[str] = None
    expiry_date: Optional[str] = None
    quantity: Optional[int] = None
    purchase_price: Optional[float] = None
    selling_price: Optional[float] = None


class MedicineUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    shelf_number: Optional[str] = None
    low_stock_threshold: Optional[int] = None


class BatchResponse(BaseModel):
    id: int
    medicine_id: int
    batch_number: str
    expiry_date: Optional[date] = None
    quantity_available: int
    purchase_price: float
    selling_price: float

    class Config:
        from_attributes = True


class StockSummaryResponse(BaseModel):
    medicine_id: int
    name: str
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    shelf_number: Optional[str] = None
    low_stock_threshold: int
    total_stock: int
    nearest_expiry: Optional[date] = None
    unit_price: float
    batch_count: int
    is_low_stock: bool
    is_out_of_stock: bool
    is_expired: bool
    is_near_expiry_alert: bool
    is_near_expiry_listing: bool

    class Config:
        from_attributes = True


class InventoryPage(BaseModel):
    items: List[StockSummaryResponse]
    total: int
    limit: int
    offset: int


class StockAdded(BaseModel):
    medicine: StockSummaryResponse
    batch: BatchResponse
    message: str


class SellRequest(BaseModel):
    quantity: int
    unit_price: Optional[float] = None


class DeductionResponse(BaseModel):
    batch_id: int
    batch_number: str
    quantity: int


class SaleLineResponse(BaseModel):
    medicine_id: int
    quantity: int
    unit_price: float
    line_total: float
    deductions: List[DeductionResponse]
