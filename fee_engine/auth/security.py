from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt

from fee_engine.auth.schemas import TokenClaims
from fee_engine.core.config import settings


class InvalidTokenError(Exception):
    """Token failed signature or expiry checks, or lacks the claims the service needs."""


def create_access_token(
    *, subject: Dict, expires_minutes: Optional[int] = None
) -> str:
    """Mint a capability token. Issuing is the auth provider's job; this exists for tooling and tests."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes

    to_encode = subject.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return TokenClaims.model_validate(payload)
    except (JWTError, ValueError) as e:
        raise InvalidTokenError(str(e))
