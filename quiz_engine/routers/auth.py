"""Minimal JSON login for the cookie session the exam routes rely on."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlmodel import Session

from quiz_engine.auth_utils import authenticate_user, normalize_email
from quiz_engine.database import get_session
from quiz_engine.deps import CallerIdentity, require_login
from quiz_engine.schemas import LoginRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    session: Session = Depends(get_session),
):
    user = authenticate_user(session, payload.email, payload.password)
    if user is None:
        logger.warning(f"Failed login for {normalize_email(payload.email)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password"
        )

    request.session.clear()
    request.session["user_id"] = user.id
    request.session["role"] = user.role
    return {"user_id": user.id, "role": user.role, "student_id": user.student_id}


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"success": True}


@router.get("/me")
def me(caller: CallerIdentity = Depends(require_login)):
    return {"user_id": caller.user_id, "role": caller.role, "student_id": caller.student_id}
