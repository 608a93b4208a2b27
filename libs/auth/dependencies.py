from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger

settings = get_settings()
security = HTTPBearer()
logger = get_logger(__name__)


def decode_access_token(token: str) -> AuthUser:
    """Decode a Supabase access token (HS256) into an AuthUser.

    Raises JWTError for a bad signature or expired token and
    ValidationError when the claims lack a subject.
    """
    payload = jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=["HS256"],
        options={"verify_aud": False},
    )
    return AuthUser(**payload)


async def get_current_user(
    token: Annotated[HTTPAuthorizationCredentials, Depends(security)]
) -> AuthUser:
    """Validate the bearer token and return the authenticated user."""
    try:
        return decode_access_token(token.credentials)
    except (JWTError, ValidationError) as e:
        logger.info(f"Rejected access token: {e.__class__.__name__}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Allow the service role or users whose app_metadata marks them as admin."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def ensure_owner_or_admin(current_user: AuthUser, owner_user_id: str) -> None:
    """Raise 403 unless the user owns the resource or is an admin."""
    if current_user.user_id != owner_user_id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not the owner of this resource",
        )
