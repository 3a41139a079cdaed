from fastapi import Depends, HTTPException, status

from perfreview.core.security import get_current_user
from perfreview.models.enums import UserRole
from perfreview.models.user import User


def require_roles(*required: UserRole | str):
    """
    Usage:
      Depends(require_roles(UserRole.HR))
      Depends(require_roles(UserRole.HR, UserRole.MANAGER))  # any-of
    """
    required_set = {r.value if isinstance(r, UserRole) else r for r in required}

    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in required_set:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden. Requires one of: {sorted(required_set)}",
            )
        return user

    return _dep
