"""
Security and Authentication for the Flowless API.

Bearer JWT verification. Tokens are issued by the identity provider in front
of the dashboard; this service only checks the signature and reads the
user / organization claims.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from backend.app.core.config import get_settings
from backend.app.core.logging import organization_id_ctx

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/token")


class Role:
    ADMIN = "admin"
    MEMBER = "member"


class CurrentUser(BaseModel):
    id: str
    organization_id: Optional[str] = None
    role: str = Role.MEMBER
    email: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Generate a signed JWT token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """
    Validate the bearer token and return the calling user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except JWTError:
        raise credentials_exception

    user_id: Optional[str] = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    org_id: Optional[str] = payload.get("org_id")
    if org_id:
        organization_id_ctx.set(org_id)

    return CurrentUser(
        id=user_id,
        organization_id=org_id,
        role=payload.get("role", Role.MEMBER),
        email=payload.get("email"),
    )
