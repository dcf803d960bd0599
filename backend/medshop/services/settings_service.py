"""Shop profile printed on invoices. One row, created on first save."""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medshop.core.config import settings
from medshop.core.exceptions import PersistenceError, ValidationError
from medshop.models.shop_settings import ShopSettings

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = (
    "shop_name",
    "license_number",
    "address",
    "mobile",
    "bank_name",
    "account_number",
    "ifsc",
    "branch",
    "terms",
    "notes",
)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[SETTINGS] {action} failed: {e}")
        raise PersistenceError(f"{action} failed") from e


def default_settings() -> dict:
    return {
        "shop_name": settings.SHOP_NAME,
        "license_number": settings.SHOP_LICENSE_NUMBER,
        "address": settings.SHOP_ADDRESS,
        "mobile": settings.SHOP_MOBILE,
        "bank_name": None,
        "account_number": None,
        "ifsc": None,
        "branch": None,
        "terms": list(settings.SHOP_TERMS),
        "notes": settings.SHOP_NOTES,
    }


def get_settings(db: Session) -> dict:
    row = db.query(ShopSettings).first()
    if not row:
        return default_settings()
    return {field: getattr(row, field) for field in SETTINGS_FIELDS}


def update_settings(db: Session, fields: dict) -> dict:
    unknown = set(fields) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    if "shop_name" in fields and not (fields["shop_name"] or "").strip():
        raise ValidationError("Shop name cannot be empty")
    if "terms" in fields and fields["terms"] is not None and not isinstance(fields["terms"], list):
        raise ValidationError("terms must be a list of lines")

    row = db.query(ShopSettings).first()
    if not row:
        row = ShopSettings(**default_settings())
        db.add(row)
    for key, value in fields.items():
        setattr(row, key, value)
    _commit(db, "save settings")
    db.refresh(row)
    return get_settings(db)
