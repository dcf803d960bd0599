"""Expenses CRUD and totals."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medshop.api.deps import get_db
from medshop.core.config import settings
from medshop.schemas.expense import ExpenseCreate, ExpensePage, ExpenseResponse, ExpenseUpdate
from medshop.services import expense_service

router = APIRouter()


@router.get("", response_model=ExpensePage)
def list_expenses(
    search: Optional[str] = Query(None),
    limit: int = Query(settings.PAGE_SIZE, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    expenses, total = expense_service.list_expenses(db, search=search, limit=limit, offset=offset)
    return {"items": [ExpenseResponse.model_validate(e) for e in expenses], "total": total}


@router.get("/categories", response_model=List[str])
def expense_categories():
    return expense_service.EXPENSE_CATEGORIES


@router.get("/stats", response_model=dict)
def expense_stats(db: Session = Depends(get_db)):
    return expense_service.expense_stats(db)


@router.post("", response_model=ExpenseResponse)
def create_expense(data: ExpenseCreate, db: Session = Depends(get_db)):
    return expense_service.create_expense(db, data.model_dump())


@router.patch("/{expense_id}", response_model=ExpenseResponse)
def update_expense(expense_id: int, updates: ExpenseUpdate, db: Session = Depends(get_db)):
    return expense_service.update_expense(db, expense_id, updates.model_dump(exclude_unset=True))


@router.delete("/{expense_id}", response_model=dict)
def delete_expense(expense_id: int, db: Session = Depends(get_db)):
    expense_service.delete_expense(db, expense_id)
    return {"message": "Expense deleted", "id": expense_id}
