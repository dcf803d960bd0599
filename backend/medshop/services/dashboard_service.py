"""
Dashboard — one call for the owner's landing page.

Cards, the 7-day sales bars, the category pie, and two alert lists:
low stock, and near expiry on the 60-day dashboard window (the inventory
page filter uses 30 days; see stock_aggregator).
"""
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from medshop.core.config import settings
from medshop.services import customer_service, expense_service, sale_service, stock_aggregator


def dashboard(db: Session, today: Optional[date] = None) -> dict:
    sales = sale_service.sales_stats(db)
    customers = customer_service.customer_stats(db)
    expenses = expense_service.expense_stats(db, today)
    inventory = stock_aggregator.inventory_stats(db, today)
    limit = settings.ALERT_LIST_LIMIT

    return {
        "stats": {
            "today_sales": sales["today_sales"],
            "today_bills": sales["today_bills"],
            "total_sales": sales["total_sales"],
            "total_bills": sales["total_bills"],
            "total_customers": customers["total"],
            "total_products": inventory["total_products"],
            "low_stock_products": inventory["low_stock"],
            "expired_products": inventory["expired"],
            "total_expenses": expenses["total_expenses"],
            "outstanding_balance": customers["total_balance"],
        },
        "sales_chart": sale_service.daily_sales(db, days=7),
        "category_chart": stock_aggregator.category_stats(db),
        "low_stock": [s.to_dict() for s in stock_aggregator.list_low_stock(db, limit, today)],
        "near_expiry": [s.to_dict() for s in stock_aggregator.list_near_expiry(db, limit, today)],
    }
