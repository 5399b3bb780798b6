"""Request dependencies resolving the caller from a bearer token.

Tokens are issued by the platform's auth service; this service only verifies
them. The ``sub`` claim carries the provider's contact email.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from braidbook.auth import jwt_handler
from braidbook.database import SessionLocal
from braidbook.models.provider import Provider
from braidbook.services import providers

security = HTTPBearer()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    try:
        return jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_provider(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> Provider:
    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    provider = providers.find_provider_by_email(db, email)
    if provider is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Provider not found")
    if not provider.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Provider account is deactivated")
    return provider


def get_current_admin(payload: dict = Depends(get_token_payload)) -> dict:
    if payload.get("role") != jwt_handler.ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return payload
