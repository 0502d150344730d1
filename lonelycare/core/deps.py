"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from lonelycare.db.session import get_db
from lonelycare.models.user import User
from lonelycare.services.registry import MonitorRegistry


def get_registry(request: Request) -> MonitorRegistry:
    """Monitor registry created in the application lifespan."""
    return request.app.state.registry


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    x_user_id: Annotated[int | None, Header()] = None,
) -> User:
    """Owner identity supplied by the host's auth layer. Raises 401 if absent or unknown."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    user = db.get(User, x_user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User is inactive",
        )
    return user
