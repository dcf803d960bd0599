"""
Domain errors and their HTTP mapping.

Services raise the domain errors below; the API layer never builds an
HTTP error for a domain failure itself. `register_exception_handlers`
translates them so the counter UI can tell "restock or reduce quantity"
(insufficient stock) apart from "try again" (conflict / database trouble).

Generic messages go out for server-side failures, details go to the log.
"""
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class MedshopError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(MedshopError):
    """Malformed input. Raised before any mutation."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(MedshopError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id=None):
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} {resource_id} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class InsufficientStockError(MedshopError):
    """Requested quantity exceeds what all usable batches hold together."""

    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, medicine_id, requested: int, available: int, medicine_name: str | None = None):
        self.medicine_id = medicine_id
        self.medicine_name = medicine_name
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        label = medicine_name or f"medicine {medicine_id}"
        super().__init__(
            f"Only {available} units of {label} available, requested {requested} (short by {self.shortfall})"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            {
                "medicine_id": self.medicine_id,
                "requested": self.requested,
                "available": self.available,
                "shortfall": self.shortfall,
            }
        )
        return data


class ConcurrencyConflictError(MedshopError):
    """A batch row changed between read and write (optimistic lock mismatch)."""

    code = "concurrency_conflict"
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(MedshopError):
    """Database/network failure underneath a service call."""

    code = "persistence_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """Generic 500 - logs actual error internally, hides it from the client."""
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error,
            )
        else:
            logger.error("Internal server error occurred", exc_info=True)

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MedshopError)
    async def medshop_error_handler(request: Request, exc: MedshopError) -> JSONResponse:
        if isinstance(exc, PersistenceError):
            # Real cause is chained; keep it out of the response.
            logger.error(f"[API] {request.method} {request.url.path}: {exc.message}", exc_info=exc)
            body = {"error": exc.code, "detail": "Database unavailable. Please retry."}
        else:
            logger.info(f"[API] {request.method} {request.url.path} -> {exc.code}: {exc.message}")
            body = exc.to_dict()
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        error = BusinessError.server_error(exc)
        return JSONResponse(status_code=error.status_code, content={"error": "internal_error", "detail": error.detail})
