import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from cbo.api import auth, admin, loans, member, reports, savings
from cbo.core.config import settings
from cbo.core.exceptions import (
    CBOError,
    ConsistencyFailure,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from cbo.db.base import SessionLocal

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)
logger.info("Starting CBO Savings & Loans API")

VERSION = "1.0.0"

app = FastAPI(
    title="CBO Savings & Loans API",
    description="Membership, savings and loans for a community-based organization",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(member.router)
app.include_router(savings.router)
app.include_router(loans.router)
app.include_router(admin.router)
app.include_router(reports.router)

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    ConsistencyFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(CBOError)
async def cbo_error_handler(request: Request, exc: CBOError):
    """Map core failures to HTTP status codes."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    body = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, InvalidTransition) and exc.current_status is not None:
        body["current_status"] = getattr(exc.current_status, "value", exc.current_status)
    return JSONResponse(status_code=status_code, content=body)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "CBO Savings & Loans API", "version": VERSION}


@app.get("/api/health")
def health_check():
    """Health check endpoint: checks API and database connectivity."""
    db_status = "unreachable"
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_error = str(e)
    finally:
        db.close()

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "database": db_status,
        },
        **({"database_error": db_error} if db_error else {})
    }
