"""
FastAPI main application.

Handles:
- Application initialization
- Middleware configuration
- Route mounting
- Error envelopes
- Startup/shutdown events
"""
import asyncio
import threading

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core.exceptions import AppError, BadRequest, StoreUnavailable
from app.core.rate_limit import limiter, rate_limit_exception, rate_limit_handler
from app.db.base import get_db
from app.api.routes import analysis, auth, billing, history, plan, webhooks

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Poker hand review with plan-based quotas and Stripe billing",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.state.limiter = limiter
app.add_exception_handler(rate_limit_exception, rate_limit_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _log_loop_exception(loop, context):
    exc = context.get("exception")
    logger.error(f"Unhandled error in event loop: {context.get('message')}", exc_info=exc)


def _log_thread_exception(args):
    logger.error(
        f"Unhandled error in thread {args.thread.name if args.thread else '?'}",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """Install last-resort error logging."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Stripe mode: {settings.stripe_mode}")

    # Log and keep serving
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
    threading.excepthook = _log_thread_exception

    logger.info("Application startup complete")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down application")


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {
        "ok": True,
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/health/db")
def health_check_db(db: Session = Depends(get_db)):
    """Database probe; runs ``SELECT 1``."""
    result = db.execute(text("SELECT 1")).scalar()
    return {"ok": True, "db": result == 1}


# Mount API routes
app.include_router(
    auth.router,
    prefix=f"{settings.api_v1_prefix}/auth",
    tags=["auth"]
)

app.include_router(
    plan.router,
    prefix=settings.api_v1_prefix,
    tags=["plan"]
)

app.include_router(
    analysis.router,
    prefix=settings.api_v1_prefix,
    tags=["analysis"]
)

app.include_router(
    billing.router,
    prefix=f"{settings.api_v1_prefix}/billing",
    tags=["billing"]
)

app.include_router(
    history.router,
    prefix=f"{settings.api_v1_prefix}/history",
    tags=["history"]
)

app.include_router(
    webhooks.router,
    prefix=f"{settings.api_v1_prefix}/webhooks",
    tags=["webhooks"]
)


# Exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} ({exc.message})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed fields become 400 bad_request."""
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
    error = BadRequest("bad_request", fields=[f for f in fields if f])
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {str(exc)}", exc_info=True)
    error = StoreUnavailable()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Uncaught exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "server_error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
