"""Authentication and authorization.

Sign-in happens at the hosted auth provider; this module only verifies the
bearer token it issues and loads the matching user profile.
"""
import logging
import time
from uuid import UUID
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from .config import settings
from .database import get_db
from .models import UserProfile

logger = logging.getLogger(__name__)

# Bearer token scheme
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    """Decode a provider-issued access token."""
    options = {"verify_exp": False, "verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE or None,
            options=options,
        )
    except JWTError:
        raise _credentials_error()

    # Expiry is checked by hand so clock skew can be tolerated.
    now = int(time.time())
    exp = payload.get("exp")
    if exp is None:
        raise _credentials_error()
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        raise _credentials_error()
    if now > exp_int + int(settings.AUTH_JWT_LEEWAY_SECONDS):
        raise _credentials_error("Token expired")
    return payload


def _parse_token_subject(payload: dict) -> UUID:
    """Parse and validate JWT subject as UUID."""
    sub = payload.get("sub")
    if not sub:
        raise _credentials_error()
    try:
        return UUID(str(sub))
    except ValueError:
        raise _credentials_error()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> UserProfile:
    """Get current authenticated user profile."""
    payload = decode_token(credentials.credentials)
    user_id = _parse_token_subject(payload)
    user = db.query(UserProfile).filter(UserProfile.id == user_id).first()
    if user is None:
        logger.warning("Token subject %s has no user profile", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User profile not found"
        )
    return user


def get_websocket_user(token: str, db: Session) -> UserProfile | None:
    """Resolve the user for a websocket handshake (token passed as query param)."""
    try:
        payload = decode_token(token)
        user_id = _parse_token_subject(payload)
    except HTTPException:
        return None
    return db.query(UserProfile).filter(UserProfile.id == user_id).first()


# Permission checks
class PermissionChecker:
    """Check user permissions based on role."""

    def __init__(self, required_permission: str):
        self.required_permission = required_permission

    def __call__(self, current_user: UserProfile = Depends(get_current_user)):
        """Check if user has required permission."""
        permissions = ROLE_PERMISSIONS.get(current_user.role, {})
        if not permissions.get(self.required_permission, False):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {self.required_permission} required"
            )
        return current_user


# Role permissions matrix
ROLE_PERMISSIONS = {
    "admin": {
        "canViewAll": True,
        "canManageAssets": True,
        "canReorderAssets": True,
        "canManageInspections": True,
        "canCompleteInspections": True,
        "canCreateChecklists": True,
        "canManageTemplates": True,
        "canResolveAlerts": True,
        "canManageRequests": True,
        "canSubmitRequests": False,
        "canManageUsers": True,
        "canManageReports": True,
        "canUploadCerts": True,
    },
    "user": {
        "canViewAll": True,
        "canManageAssets": False,
        "canReorderAssets": False,
        "canManageInspections": False,
        "canCompleteInspections": False,
        "canCreateChecklists": False,
        "canManageTemplates": False,
        "canResolveAlerts": False,
        "canManageRequests": False,
        "canSubmitRequests": True,
        "canManageUsers": False,
        "canManageReports": False,
        "canUploadCerts": True,
    },
}


def check_permission(user: UserProfile, permission: str) -> bool:
    """Check if user has specific permission."""
    permissions = ROLE_PERMISSIONS.get(user.role, {})
    return permissions.get(permission, False)
