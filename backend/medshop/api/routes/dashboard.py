"""
Dashboard API — everything the owner's landing page shows in one call.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medshop.api.deps import get_db
from medshop.services.dashboard_service import dashboard

router = APIRouter()


@router.get("", response_model=dict)
def get_dashboard(db: Session = Depends(get_db)):
    return dashboard(db)
