import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .auth import issue_token_for_user
from .config import DEV_AUTH_ENABLED
from .database import Base, SessionLocal, engine, get_db
from .domain.bookings.router import qr_router
from .domain.bookings.router import router as bookings_router
from .domain.fraud.router import admin_router as refunds_admin_router
from .domain.fraud.router import router as fraud_router
from .domain.pricing.lead_pricing import initialize_lead_pricing
from .domain.pricing.router import public_router as pricing_public_router
from .domain.pricing.router import router as pricing_admin_router
from .domain.pricing.service import PricingManagementService
from .domain.referrals.router import router as referrals_router
from .domain.refunds.router import router as performance_refunds_router
from .domain.refunds.service import PerformanceRefundService
from .domain.retailers.router import admin_router as invoices_admin_router
from .domain.retailers.router import auth_router as invoice_auth_router
from .domain.retailers.router import router as retailers_router
from .domain.wallet.router import router as wallet_router
from .models import User
from .shared.validators import validate_email

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def seed_reference_data() -> None:
    """Pricing tables and refund settings are seeded once; existing rows are left alone"""
    db = SessionLocal()
    try:
        PricingManagementService(db).initialize_default_pricing()
        initialize_lead_pricing(db)
        PerformanceRefundService(db).initialize_default_settings()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    seed_reference_data()

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - Rate limiting will operate in fail-open mode: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="tradesbook.ie API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: Missing or invalid Authorization header")
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # pydantic puts the raised ValueError in ctx, which is not JSON serialisable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://tradesbook.ie,https://www.tradesbook.ie,http://localhost:5173,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(invoice_auth_router)
app.include_router(bookings_router)
app.include_router(qr_router)
app.include_router(pricing_public_router)
app.include_router(pricing_admin_router)
app.include_router(wallet_router)
app.include_router(fraud_router)
app.include_router(refunds_admin_router)
app.include_router(performance_refunds_router)
app.include_router(retailers_router)
app.include_router(invoices_admin_router)
app.include_router(referrals_router)


class DevTokenRequest(BaseModel):
    email: str


@app.post("/api/auth/token")
async def issue_dev_token(data: DevTokenRequest, db: Session = Depends(get_db)):
    """
    Issue a bearer token for an existing user by email.
    Only available when DEV_AUTH_ENABLED=true.
    """
    if not DEV_AUTH_ENABLED:
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        email = validate_email(data.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    logger.warning(f"⚠️ Dev token issued for {user.email}")
    return {"accessToken": issue_token_for_user(user), "tokenType": "bearer"}


@app.get("/")
async def root():
    return {"message": "tradesbook.ie API"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
