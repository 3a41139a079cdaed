from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from perfreview.db.session import get_db
from perfreview.models.user import User


def get_current_user(
    x_user_email: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    DEV AUTH: pass X-User-Email header to simulate logged-in user.
    Example: X-User-Email: hr@local.test
    """
    if not x_user_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email header (dev auth)",
        )

    user = db.query(User).filter(User.email == x_user_email.strip()).one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid or inactive user")
    return user


def verify_cron_secret(authorization: str | None, secret: str | None, production: bool) -> str | None:
    """
    Returns an error message when a cron call must be refused, else None.

    Outside production the check is skipped so jobs can be triggered by hand.
    """
    if not production:
        return None
    if not secret:
        return "Cron secret not configured"
    if authorization != f"Bearer {secret}":
        return "Unauthorized"
    return None
