import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from fee_engine.auth.schemas import CurrentUser
from fee_engine.auth.security import InvalidTokenError, decode_access_token

logger = logging.getLogger(__name__)

# Tokens are issued by the external auth provider; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
) -> CurrentUser:
    """Resolve the caller's tenant, role and permissions from the access token claims. No database lookup."""
    try:
        claims = decode_access_token(token)
    except InvalidTokenError as e:
        logger.debug(f"Rejected access token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        id=claims.user_id,
        tenant_id=claims.tenant_id,
        role=claims.role,
        permissions=claims.permissions,
    )
