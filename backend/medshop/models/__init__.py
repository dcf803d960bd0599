from medshop.models.medicine import Medicine, Batch
from medshop.models.customer import Customer
from medshop.models.sale import Sale, SaleItem, SaleAllocation
from medshop.models.ledger import LedgerEntry
from medshop.models.expense import Expense
from medshop.models.shop_settings import ShopSettings

__all__ = [
    "Medicine",
    "Batch",
    "Customer",
    "Sale",
    "SaleItem",
    "SaleAllocation",
    "LedgerEntry",
    "Expense",
    "ShopSettings",
]
