import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tradesbook.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

# Frontend base URL for redirects and booking tracker links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "https://tradesbook.ie")

# Resend Email Configuration (fallback when platform SMTP is not configured)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "tradesbook.ie <noreply@tradesbook.ie>")
ADMIN_NOTIFICATION_EMAIL = os.getenv("ADMIN_NOTIFICATION_EMAIL", "admin@tradesbook.ie")

# Platform SMTP (e.g. Gmail relay). Preferred over Resend when SMTP_HOST is set.
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Rate limiting - set RATE_LIMIT_ENABLED=false for local development and tests
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Pricing defaults (EUR)
LEAD_FEE_DEFAULT = float(os.getenv("LEAD_FEE_DEFAULT", "15.00"))
CUSTOMER_ESTIMATE_DEFAULT = float(os.getenv("CUSTOMER_ESTIMATE_DEFAULT", "120"))
COMMISSION_RATE = float(os.getenv("COMMISSION_RATE", "0.15"))

# Referrals - sales staff discount and the commission a store earns per completed installation
REFERRAL_DISCOUNT_PERCENTAGE = float(os.getenv("REFERRAL_DISCOUNT_PERCENTAGE", "10.0"))
STORE_REFERRAL_REWARD = float(os.getenv("STORE_REFERRAL_REWARD", "5.00"))

# Issue tokens by email at /api/auth/token - local development only
DEV_AUTH_ENABLED = os.getenv("DEV_AUTH_ENABLED", "false").lower() == "true"
