"""FastAPI dependency injection functions for authentication and database access."""

import logging
from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.database import SessionLocal

logger = logging.getLogger(__name__)

# OAuth2 Bearer token scheme (tokens are issued by the auth service)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    
    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """
    Dependency to get the authenticated user id from a JWT bearer token.

    Returns:
        str: The token subject (user id)

    Raises:
        HTTPException: 401 if token is invalid or has no subject
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(token)
    except HTTPException:
        logger.warning("[AUTH] Token decode failed")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("[AUTH] Subject is missing in token payload")
        raise credentials_exception

    return str(user_id)


__all__ = [
    "oauth2_scheme",
    "get_db",
    "get_current_user_id",
]
