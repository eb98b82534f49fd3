"""
EVDMS FastAPI Main Application
Entry point for the central parts and service center REST API
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from evdms.core.config import settings
from evdms.core.database import check_db_connection, init_db
from evdms.core.exceptions import (
    ConcurrentUpdateError, EVDMSException, InsufficientStockError, LedgerConflictError, NotFoundError,
    PermissionDeniedError, StateConflictError, UnresolvablePartError, ValidationError
)
from evdms.core.logging import setup_logging
from evdms.schemas.common import ErrorResponse

setup_logging()
logger = logging.getLogger("evdms.api")

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## EV Dealer Management - Central Parts API

    Central warehouse stock and the parts issue workflow that moves parts
    to service centers.

    ### Key Features:
    - **Central Inventory**: stock on hand, allocation holds and availability
    - **Parts Issues**: request, CIM review, admin approval, partial dispatch, receipt
    - **Dispatch Ledger**: per-shipment sub-order numbers with fulfillment flag
    - **Purchase Orders**: quantity override and received-quantity write back
    """,
    docs_url=settings.DOCS_URL,
    openapi_url=settings.OPENAPI_URL,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain error -> HTTP status
ERROR_STATUS_CODES = [
    (NotFoundError, 404),
    (UnresolvablePartError, 422),
    (ValidationError, 400),
    (StateConflictError, 409),
    (LedgerConflictError, 409),
    (InsufficientStockError, 409),
    (ConcurrentUpdateError, 409),
    (PermissionDeniedError, 403),
]


def status_code_for(exc: EVDMSException) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return 500


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring and load balancers

    Returns system status and database connectivity
    """
    try:
        db_status = check_db_connection()

        return {
            "status": "healthy" if db_status else "degraded",
            "version": settings.APP_VERSION,
            "database": "connected" if db_status else "disconnected",
            "debug": settings.DEBUG
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


# System information endpoint
@app.get("/info", tags=["System"])
async def system_info():
    """Application and build information"""
    return {
        "application": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": "v1",
        "docs_url": settings.DOCS_URL,
        "features": [
            "Central Inventory Ledger",
            "Parts Issue Requests",
            "Partial Dispatch with Sub-Order Numbers",
            "Purchase Order Reconciliation",
        ],
    }


# Application startup event
@app.on_event("startup")
async def startup_event():
    """
    Application startup tasks

    Verify database connectivity and make sure tables exist
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if not check_db_connection():
        logger.error("Failed to connect to database on startup")
        return

    logger.info("Database connection established")
    init_db()
    logger.info("Application startup completed successfully")


# Application shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down application")


@app.exception_handler(EVDMSException)
async def domain_exception_handler(request: Request, exc: EVDMSException):
    """Map domain errors to their HTTP status with a structured body"""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")

    body = ErrorResponse(
        error=type(exc).__name__,
        message=exc.message,
        code=exc.code,
        context=exc.context,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled errors

    Args:
        request: FastAPI request object
        exc: Exception that occurred

    Returns:
        JSON error response
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.DEBUG else None,
            "code": "server_error",
            "context": {},
        }
    )


# Include API routers
from evdms.api.v1.api_router import api_router  # noqa: E402

app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "evdms.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
