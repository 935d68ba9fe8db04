"""
Stock Ledger FastAPI Main Application
Entry point for the stock ledger reconciliation REST API
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from stockledger.core.config import settings
from stockledger.core.database import check_db_connection, init_db
from stockledger.core.logging import get_logger
from stockledger.api.v1.api_router import api_router

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application startup and shutdown tasks

    Verify the database and create missing tables before serving
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if not check_db_connection():
        logger.error("Failed to connect to database on startup")
        raise RuntimeError("Database connection failed")
    logger.info("Database connection established")

    init_db()
    logger.info("Application startup completed successfully")

    yield

    logger.info("Shutting down application")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Stock Ledger Reconciliation API

    Chronological stock ledgers for spare parts and consumables, rebuilt from
    retroactively editable receive and issue events.

    ### Key Features:
    - **Stock Ledger**: running balances in date order, receipts before issues
    - **Opening Balances**: reconstructed for any report start date
    - **Deferred Issues**: shortfalls queued and retired by later receipts
    - **Rebuild Jobs**: remaining balances and FIFO issue costs for every item
    - **RRP Numbering**: fiscal year scoped numbers with T-suffix corrections
    """,
    docs_url=settings.DOCS_URL,
    redoc_url=settings.REDOC_URL,
    openapi_url=settings.OPENAPI_URL,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add trusted host middleware for production
if not settings.DEBUG:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )


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
    """Returns application configuration and ledger settings"""
    return {
        "application": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api_version": "v1",
        "docs_url": settings.DOCS_URL,
        "ledger_epoch_date": settings.LEDGER_EPOCH_DATE.isoformat(),
        "rrp_prefixes": settings.RRP_PREFIXES,
        "features": [
            "Stock ledger with running balances",
            "Opening balance reconstruction",
            "Deferred issue resolution",
            "Remaining balance and FIFO cost rebuild",
            "RRP numbering and corrections"
        ]
    }


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
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
            "type": "server_error"
        }
    )


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stockledger.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
