"""
otpdesk/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes
- Manages application lifecycle (startup/shutdown)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import time

from otpdesk.core.config import settings, validate_settings
from otpdesk.core.errors import add_exception_handlers
from otpdesk.core.logging import setup_logging, get_logger
from otpdesk.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from otpdesk.db.indexes import create_indexes
from otpdesk.services.auth_service import ensure_default_admin
from otpdesk.services.provider_client import close_provider_client
from otpdesk.api import auth, employees, orders, admin, health

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("🚀 Starting OTPDesk...")
    
    try:
        validate_settings()
        logger.info("✅ Configuration validated")
        
        await connect_to_mongo()
        await create_indexes()
        await ensure_default_admin()
        
        if not await check_database_health():
            logger.warning("⚠️ Database health check failed during startup")
        
        logger.info(f"🎉 OTPDesk started (environment: {settings.ENVIRONMENT})")
        
    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise
    
    yield
    
    logger.info("🛑 Shutting down OTPDesk...")
    
    try:
        await close_provider_client()
        await close_mongo_connection()
        logger.info("👋 OTPDesk shut down")
        
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="OTPDesk",
    description="Disposable number broker for SMS one-time codes",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    
    # Provider round-trips dominate; anything past this is worth a look
    if process_time > 5.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )
    
    return response


app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["Auth"])
app.include_router(employees.router, prefix=settings.API_PREFIX, tags=["Employees"])
app.include_router(orders.router, prefix=settings.API_PREFIX, tags=["Orders"])
app.include_router(admin.router, prefix=settings.API_PREFIX, tags=["Admin"])
app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])


if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "otpdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
