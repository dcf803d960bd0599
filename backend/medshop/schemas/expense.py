import datetime as dt
from typing import List, Optional

from pydantic import BaseModel


class ExpenseCreate(BaseModel):
    description: str
    amount: float
    category: str
    date: str  # YYYY-MM-DD


class ExpenseUpdate(BaseModel):
    description: Optional[str] = None
    amount: Optional[float] = None
    category: Optional[str] = None
    date: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: int
    description: str
    amount: float
    category: str
    date: dt.date
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class ExpensePage(BaseModel):
    items: List[ExpenseResponse]
    total: int
