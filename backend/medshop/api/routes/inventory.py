"""Inventory: medicines, their batches, and the stock views built on them."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medshop.api.deps import get_db
from medshop.core.config import settings
from medshop.schemas.inventory import (
    BatchCreate,
    BatchResponse,
    BatchUpdate,
    InventoryPage,
    MedicineUpdate,
    SaleLineResponse,
    SellRequest,
    StockAdded,
    StockCreate,
    StockSummaryResponse,
)
from medshop.services import batch_store, sale_service, stock_aggregator

router = APIRouter()


@router.get("/medicines", response_model=InventoryPage)
def list_medicines(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query("all"),
    stock_status: str = Query("all", description="all | low | out | healthy"),
    expiry_status: str = Query("all", description="all | expired | near (30 days)"),
    limit: int = Query(settings.PAGE_SIZE, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Inventory list with search, filters and paging. One row per medicine."""
    items, total = stock_aggregator.list_inventory(
        db,
        search=search,
        category=category,
        stock_status=stock_status,
        expiry_status=expiry_status,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.post("/stock", response_model=StockAdded)
def add_stock(data: StockCreate, db: Session = Depends(get_db)):
    """Receive stock. Creates the medicine on first receipt, always adds a new batch."""
    fields = data.model_dump()
    medicine_fields = {k: fields[k] for k in batch_store.MEDICINE_FIELDS}
    batch_fields = {
        "batch_number": fields["batch_number"],
        "expiry_date": fields["expiry_date"],
        "quantity_available": fields["quantity"],
        "purchase_price": fields["purchase_price"],
        "selling_price": fields["selling_price"],
    }
    medicine, batch = batch_store.add_stock(db, medicine_fields, batch_fields)
    return {
        "medicine": stock_aggregator.summarize(medicine, medicine.batches),
        "batch": BatchResponse.model_validate(batch),
        "message": f"Added {batch.quantity_available} units of {medicine.name}",
    }


@router.get("/medicines/{medicine_id}", response_model=StockSummaryResponse)
def get_medicine_summary(medicine_id: int, db: Session = Depends(get_db)):
    return stock_aggregator.get_stock_summary(db, medicine_id)


@router.patch("/medicines/{medicine_id}", response_model=StockSummaryResponse)
def update_medicine(medicine_id: int, updates: MedicineUpdate, db: Session = Depends(get_db)):
    """Shelf location, low-stock threshold, name/category/manufacturer."""
    medicine = batch_store.update_medicine(db, medicine_id, updates.model_dump(exclude_unset=True))
    return stock_aggregator.summarize(medicine, medicine.batches)


@router.delete("/medicines/{medicine_id}", response_model=dict)
def delete_medicine(medicine_id: int, db: Session = Depends(get_db)):
    """Delete a medicine and all its batches."""
    batch_store.delete_medicine(db, medicine_id)
    return {"message": "Medicine deleted", "id": medicine_id}


@router.get("/medicines/{medicine_id}/batches", response_model=List[BatchResponse])
def list_medicine_batches(medicine_id: int, db: Session = Depends(get_db)):
    """Batches of one medicine, in the order they will be sold."""
    batch_store.get_medicine(db, medicine_id)
    batches = batch_store.list_batches(db, medicine_id)
    return sorted(batches, key=stock_aggregator.fefo_sort_key)


@router.post("/medicines/{medicine_id}/batches", response_model=BatchResponse)
def add_medicine_batch(medicine_id: int, data: BatchCreate, db: Session = Depends(get_db)):
    batch_id = batch_store.add_batch(db, medicine_id, data.model_dump())
    return batch_store.get_batch(db, batch_id)


@router.patch("/batches/{batch_id}", response_model=BatchResponse)
def update_batch(batch_id: int, updates: BatchUpdate, db: Session = Depends(get_db)):
    return batch_store.update_batch(db, batch_id, updates.model_dump(exclude_unset=True))


@router.delete("/batches/{batch_id}", response_model=dict)
def delete_batch(batch_id: int, db: Session = Depends(get_db)):
    batch_store.delete_batch(db, batch_id)
    return {"message": "Batch deleted", "id": batch_id}


@router.post("/medicines/{medicine_id}/sell", response_model=SaleLineResponse)
def sell_medicine(medicine_id: int, data: SellRequest, db: Session = Depends(get_db)):
    """Deduct stock for one line, FEFO. 409 with the shortfall when stock is short."""
    return sale_service.sell(db, medicine_id, data.quantity, data.unit_price).to_dict()


@router.get("/categories", response_model=List[str])
def list_categories(db: Session = Depends(get_db)):
    return stock_aggregator.list_categories(db)


@router.get("/stats", response_model=dict)
def inventory_stats(db: Session = Depends(get_db)):
    return stock_aggregator.inventory_stats(db)
