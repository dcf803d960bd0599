"""Customers and their ledger."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medshop.api.deps import get_db
from medshop.core.config import settings
from medshop.schemas.customer import (
    CustomerCreate,
    CustomerPage,
    CustomerResponse,
    CustomerUpdate,
    LedgerRecord,
    PaymentCreate,
)
from medshop.schemas.sales import SaleResponse
from medshop.services import customer_service, ledger_service

router = APIRouter()


@router.get("", response_model=CustomerPage)
def list_customers(
    search: Optional[str] = Query(None),
    balance: str = Query("all", description="all | due | clear"),
    sort: str = Query("name", description="name | balance_desc | newest"),
    limit: int = Query(settings.PAGE_SIZE, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    customers, total = customer_service.list_customers(
        db, search=search, balance_filter=balance, sort=sort, limit=limit, offset=offset
    )
    return {"items": [CustomerResponse.model_validate(c) for c in customers], "total": total}


@router.get("/stats", response_model=dict)
def customer_stats(db: Session = Depends(get_db)):
    return customer_service.customer_stats(db)


@router.post("", response_model=CustomerResponse)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db)):
    return customer_service.create_customer(db, data.model_dump())


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return customer_service.get_customer(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerResponse)
def update_customer(customer_id: int, updates: CustomerUpdate, db: Session = Depends(get_db)):
    return customer_service.update_customer(db, customer_id, updates.model_dump(exclude_unset=True))


@router.delete("/{customer_id}", response_model=dict)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    customer_service.delete_customer(db, customer_id)
    return {"message": "Customer deleted", "id": customer_id}


@router.get("/{customer_id}/history", response_model=List[SaleResponse])
def customer_history(customer_id: int, db: Session = Depends(get_db)):
    """Purchase history, newest first."""
    return [SaleResponse.model_validate(s) for s in customer_service.customer_history(db, customer_id)]


@router.get("/{customer_id}/ledger", response_model=List[LedgerRecord])
def customer_ledger(customer_id: int, db: Session = Depends(get_db)):
    customer_service.get_customer(db, customer_id)
    return ledger_service.list_ledger(db, customer_id)


@router.post("/{customer_id}/payments", response_model=CustomerResponse)
def record_payment(customer_id: int, data: PaymentCreate, db: Session = Depends(get_db)):
    """Payment against the outstanding balance."""
    return customer_service.record_payment(db, customer_id, data.amount, data.description)
