from datetime import datetime, timedelta, timezone

import jwt

from braidbook.core import config

PROVIDER_ROLE = "provider"
ADMIN_ROLE = "admin"
REQUIRED_CLAIMS = ["sub", "exp"]


def create_access_token(subject: str, role: str = PROVIDER_ROLE, expires_minutes: int | None = None) -> str:
    """Mint a token the way the platform auth service does. Used by tests and local tooling."""
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": subject.strip().lower(),
        "role": role,
        "exp": issued_at + timedelta(minutes=expire_minutes),
        "iat": issued_at,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": REQUIRED_CLAIMS},
    )
