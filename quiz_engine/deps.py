"""Shared FastAPI dependencies for database access and caller identity."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlmodel import Session

from quiz_engine.database import get_session
from quiz_engine.models import ROLE_STUDENT, User


@dataclass(frozen=True)
class CallerIdentity:
    """Verified caller for one request. Services treat it as read-only."""

    user_id: int
    role: str
    student_id: Optional[int] = None


def get_current_user(
    request: Request, session: Session = Depends(get_session)
) -> Optional[User]:
    """Return the currently logged-in user based on the session cookie, if any."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None

    user = session.get(User, user_id)
    if not user or not user.is_active:
        # Clear any stale session
        request.session.clear()
        return None
    return user


def require_login(current_user: Optional[User] = Depends(get_current_user)) -> CallerIdentity:
    """Ensure that a user is logged in and freeze their identity for the request."""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    return CallerIdentity(
        user_id=current_user.id,
        role=current_user.role,
        student_id=current_user.student_id,
    )


def require_role(required_roles: list[str]):
    """Dependency factory that enforces one of the given roles."""

    def wrapper(caller: CallerIdentity = Depends(require_login)) -> CallerIdentity:
        if caller.role not in required_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return caller

    return wrapper


def require_student(
    caller: CallerIdentity = Depends(require_role([ROLE_STUDENT])),
) -> CallerIdentity:
    """Student caller with a linked student record."""
    if caller.student_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No linked student record found"
        )
    return caller
