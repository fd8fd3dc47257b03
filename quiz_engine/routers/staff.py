"""Teacher/admin views over quiz attempts."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Path
from sqlmodel import Session

from quiz_engine.database import get_session
from quiz_engine.deps import CallerIdentity, require_role
from quiz_engine.models import STAFF_ROLES
from quiz_engine.schemas import MAX_DB_ID, MarksheetOut, StaffAttemptRowOut
from quiz_engine.services import attempt_service, report_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/quiz-attempts/{quiz_id}", response_model=List[StaffAttemptRowOut])
def quiz_attempts(
    quiz_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_role(STAFF_ROLES)),
):
    """All attempts for a quiz, best score first."""
    return report_service.list_quiz_attempts(session, quiz_id)


@router.get("/attempt/{attempt_id}", response_model=MarksheetOut)
def attempt_marksheet(
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_role(STAFF_ROLES)),
):
    return report_service.get_marksheet(session, attempt_id)


@router.delete("/attempts/{attempt_id}")
def delete_attempt(
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_role(STAFF_ROLES)),
):
    """Remove an attempt and everything graded under it, allowing a retake."""
    attempt_service.delete_attempt(session, attempt_id)
    logger.info(f"User {caller.user_id} deleted attempt {attempt_id}")
    return {"success": True}
