"""Shop profile used on invoices."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medshop.api.deps import get_db
from medshop.schemas.settings import SettingsResponse, SettingsUpdate
from medshop.services import settings_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=SettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    return settings_service.get_settings(db)


@router.patch("", response_model=SettingsResponse)
def update_settings(data: SettingsUpdate, db: Session = Depends(get_db)):
    changes = data.model_dump(exclude_unset=True)
    logger.info(f"[SETTINGS] Update request: {sorted(changes)}")
    return settings_service.update_settings(db, changes)
