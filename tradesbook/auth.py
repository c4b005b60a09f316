import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from .models import Booking, Installer, User
from .security_utils import create_access_token, verify_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def issue_token_for_user(user: User) -> str:
    """Issue an access token carrying the user's id and role"""
    return create_access_token({"sub": str(user.id), "role": user.role, "email": user.email})


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from a bearer access token"""
    if not credentials:
        logger.error("❌ No credentials provided")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, token length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    payload = verify_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=401,
            detail="Token is invalid or has expired. Please sign in again.",
            headers={"X-Token-Expired": "true"},
        )

    user_id = payload.get("sub")
    if not user_id or not str(user_id).isdigit():
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = (
        db.query(User)
        .filter(User.id == int(user_id))
        .options(joinedload(User.installer_profile))
        .first()
    )
    if not user:
        logger.warning(f"⚠️ Token refers to unknown user {user_id}")
        raise HTTPException(status_code=401, detail="User no longer exists")

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only admin users"""
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.email} attempted to access an admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_installer(user: User = Depends(get_current_user)) -> Installer:
    """Resolve the installer profile of the current user (admins act on any installer via routes)"""
    if user.role != "installer" or not user.installer_profile:
        logger.warning(f"⚠️ User {user.email} attempted to access an installer route")
        raise HTTPException(status_code=403, detail="Installer account required")
    return user.installer_profile


def ensure_installer_access(user: User, installer_id: int) -> None:
    """Installers may only act on their own account; admins may act on any"""
    if user.role == "admin":
        return
    profile = user.installer_profile
    if user.role != "installer" or not profile or profile.id != installer_id:
        raise HTTPException(status_code=403, detail="Not allowed to access this installer account")


def ensure_booking_access(user: User, booking: Booking) -> None:
    """Customers may only act on their own bookings; admins may act on any"""
    if user.role != "admin" and booking.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not allowed to access this booking")
