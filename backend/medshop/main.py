"""
Medshop Backend — pharmacy shop API.

ARCHITECTURE:
- FastAPI: counter (billing), inventory, customers, expenses, dashboard
- SQLAlchemy DB: source of truth for stock, sales and balances
- Web/desktop frontend: thin UI over these endpoints

STOCK MODEL:
- Stock is held per expiry-dated batch, never as a single number
- Sales deduct First-Expiry-First-Out, all-or-nothing
- Batch rows are version-checked so concurrent counters cannot oversell
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medshop import __version__
from medshop.api.routes import billing, customers, dashboard, expenses, inventory
from medshop.api.routes import settings as settings_routes
from medshop.core.config import settings
from medshop.core.exceptions import register_exception_handlers
from medshop.core.logging_config import configure_logging
from medshop.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging, then database tables."""
    configure_logging()
    logger.info("[*] Initializing database...")
    init_db()
    logger.info(f"[OK] Medshop {__version__} ready ({settings.ENVIRONMENT})")
    yield
    logger.info("[*] Medshop shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Medshop API",
        description="Pharmacy shop backend: batch inventory, FEFO billing, customer ledger, expenses.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
        max_age=600,  # Cache preflight for 10 minutes
    )

    @app.middleware("http")
    async def add_security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    register_exception_handlers(app)

    app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
    app.include_router(billing.router, prefix="/billing", tags=["billing"])
    app.include_router(customers.router, prefix="/customers", tags=["customers"])
    app.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
    app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
    app.include_router(settings_routes.router, prefix="/settings", tags=["settings"])

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
