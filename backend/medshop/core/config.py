"""Application configuration.

Environment variables override all defaults. A `.env` file next to the
backend directory is loaded for local development.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env for local development
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./medshop.db")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        )
    )

    # Stock rules
    DEFAULT_LOW_STOCK_THRESHOLD: int = int(os.getenv("DEFAULT_LOW_STOCK_THRESHOLD", "10"))
    # Dashboard alerts look further ahead than the inventory list filter.
    DASHBOARD_EXPIRY_WINDOW_DAYS: int = int(os.getenv("DASHBOARD_EXPIRY_WINDOW_DAYS", "60"))
    INVENTORY_EXPIRY_WINDOW_DAYS: int = int(os.getenv("INVENTORY_EXPIRY_WINDOW_DAYS", "30"))

    # Billing
    INCLUSIVE_TAX_RATE: str = os.getenv("INCLUSIVE_TAX_RATE", "0.05")  # display only
    ALLOCATION_RETRIES: int = int(os.getenv("ALLOCATION_RETRIES", "1"))
    # Seconds before a conflict retry, times the attempt number
    ALLOCATION_RETRY_DELAY: float = float(os.getenv("ALLOCATION_RETRY_DELAY", "0.1"))

    # Listing
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "50"))
    ALERT_LIST_LIMIT: int = int(os.getenv("ALERT_LIST_LIMIT", "20"))
    NEW_CUSTOMER_DAYS: int = int(os.getenv("NEW_CUSTOMER_DAYS", "30"))

    # Shop profile used until the owner saves their own
    SHOP_NAME: str = os.getenv("SHOP_NAME", "My Medical Shop")
    SHOP_LICENSE_NUMBER: str = os.getenv("SHOP_LICENSE_NUMBER", "DL-12345/67")
    SHOP_ADDRESS: str = os.getenv("SHOP_ADDRESS", "64, Main Road, Near Market, MUMBAI, MAHARASHTRA, 400001")
    SHOP_MOBILE: str = os.getenv("SHOP_MOBILE", "+91 9999999999")
    SHOP_TERMS: List[str] = [
        "1. Goods once sold cannot be taken back or exchanged.",
        "2. Subject to Mumbai Jurisdiction.",
    ]
    SHOP_NOTES: str = os.getenv("SHOP_NOTES", "Thank you for your business!")


settings = Settings()
