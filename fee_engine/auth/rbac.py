from fastapi import Depends, HTTPException, status

from fee_engine.auth.dependencies import get_current_user
from fee_engine.auth.schemas import CurrentUser


def check_permission(module: str, action: str):
    """
    Dependency factory enforcing one module/action pair from the token's permission map.
    SUPER_ADMIN and PLATFORM_ADMIN pass every check.

    Example:
        Depends(check_permission("scholarships", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if not current_user.can(module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission {module}.{action}",
            )

    return _checker
