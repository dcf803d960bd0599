from typing import List, Optional

from pydantic import BaseModel


class SettingsResponse(BaseModel):
    shop_name: str
    license_number: Optional[str] = None
    address: Optional[str] = None
    mobile: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc: Optional[str] = None
    branch: Optional[str] = None
    terms: Optional[List[str]] = None
    notes: Optional[str] = None


class SettingsUpdate(BaseModel):
    shop_name: Optional[str] = None
    license_number: Optional[str] = None
    address: Optional[str] = None
    mobile: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc: Optional[str] = None
    branch: Optional[str] = None
    terms: Optional[List[str]] = None
    notes: Optional[str] = None
