"""Billing: quote a cart, commit a sale, sales history."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medshop.api.deps import get_db
from medshop.core.config import settings
from medshop.schemas.sales import QuoteRequest, QuoteResponse, SaleCreate, SalePage, SaleResponse
from medshop.services import sale_service, settings_service

router = APIRouter()


def _cart_items(data: QuoteRequest) -> list:
    return [item.model_dump() for item in data.items]


@router.post("/quote", response_model=QuoteResponse)
def quote(data: QuoteRequest, db: Session = Depends(get_db)):
    """
    Price a cart without touching stock.
    Lines come back with their captured unit price; send it back on checkout
    to keep the quoted price.
    """
    cart = sale_service.build_cart(db, _cart_items(data))
    totals = cart.totals(data.discount_type, data.discount_value, data.amount_paid)
    return {"lines": [line.to_dict() for line in cart.lines], "totals": totals.to_dict()}


@router.post("/sales", response_model=SaleResponse)
def create_sale(data: SaleCreate, db: Session = Depends(get_db)):
    """Commit a bill. Stock, sale record and customer balance change together or not at all."""
    cart = sale_service.build_cart(db, _cart_items(data))
    sale = sale_service.create_sale(
        db,
        cart,
        customer_id=data.customer_id,
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
        discount_type=data.discount_type,
        discount_value=data.discount_value,
        amount_paid=data.amount_paid,
        payment_method=data.payment_method,
    )
    return SaleResponse.model_validate(sale)


@router.get("/sales", response_model=SalePage)
def list_sales(
    search: Optional[str] = Query(None),
    limit: int = Query(settings.PAGE_SIZE, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    sales, total = sale_service.list_sales(db, search=search, limit=limit, offset=offset)
    return {"items": [SaleResponse.model_validate(s) for s in sales], "total": total}


@router.get("/sales/{sale_id}", response_model=SaleResponse)
def get_sale(sale_id: int, db: Session = Depends(get_db)):
    return SaleResponse.model_validate(sale_service.get_sale(db, sale_id))


@router.get("/sales/{sale_id}/receipt", response_model=dict)
def sale_receipt(sale_id: int, db: Session = Depends(get_db)):
    """Finalized record for the invoice generator / messaging link."""
    sale = sale_service.get_sale(db, sale_id)
    return sale_service.sale_receipt(sale, settings_service.get_settings(db))


@router.get("/stats", response_model=dict)
def sales_stats(db: Session = Depends(get_db)):
    return sale_service.sales_stats(db)
