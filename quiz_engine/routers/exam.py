"""Student-facing exam routes: start, questions, submit, block, results."""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlmodel import Session

from quiz_engine.config import Settings, get_settings
from quiz_engine.database import get_session
from quiz_engine.deps import CallerIdentity, require_student
from quiz_engine.schemas import (
    MAX_DB_ID,
    AttemptResultOut,
    BlockRequest,
    BlockResponse,
    CatalogQuizOut,
    ConsolidatedReportOut,
    QuestionOut,
    QuizDetails,
    ScheduleEntryOut,
    StartAttemptRequest,
    StartAttemptResponse,
    SubmitRequest,
    SubmitResponse,
    ViolationRequest,
    ViolationResponse,
)
from quiz_engine.services import attempt_service, report_service

router = APIRouter()


# ===================== ATTEMPT LIFECYCLE =====================


@router.post(
    "/exam/start",
    response_model=StartAttemptResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_exam(
    payload: StartAttemptRequest,
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
    settings: Settings = Depends(get_settings),
):
    """Verify the quiz is open and create an in-progress attempt."""
    attempt, quiz = attempt_service.start_attempt(
        session,
        student_id=caller.student_id,
        quiz_id=payload.quiz_id,
        room_number=payload.room_number,
        system_id=payload.system_id,
        verification_image=payload.live_image_data,
        allow_retakes=settings.ALLOW_RETAKES,
    )
    return StartAttemptResponse(
        attempt_id=attempt.id,
        quiz_details=QuizDetails(title=quiz.title, time_limit_minutes=quiz.time_limit),
    )


@router.get("/attempts/{attempt_id}/questions", response_model=List[QuestionOut])
def attempt_questions(
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
):
    """Ordered questions for the caller's attempt, without the answer key."""
    return attempt_service.get_attempt_questions(session, attempt_id, caller.student_id)


@router.post("/submit-attempt/{attempt_id}", response_model=SubmitResponse)
def submit_attempt(
    payload: SubmitRequest,
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
    settings: Settings = Depends(get_settings),
):
    answers = {entry.question_id: entry.answer for entry in payload.answers}
    attempt, outcome = attempt_service.submit_attempt(
        session,
        attempt_id,
        caller.student_id,
        answers,
        reported_violations=payload.violations,
        late_grace_seconds=settings.LATE_GRACE_SECONDS,
    )
    return SubmitResponse(
        attempt_id=attempt.id,
        total_score=outcome.total_score,
        correct_count=outcome.correct_count,
        incorrect_count=outcome.incorrect_count,
        unanswered_count=outcome.unanswered_count,
        is_late=attempt.is_late,
    )


@router.post("/block-exam/{attempt_id}", response_model=BlockResponse)
def block_exam(
    payload: BlockRequest,
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
    settings: Settings = Depends(get_settings),
):
    """Record a proctoring violation that ends the attempt."""
    attempt = attempt_service.block_attempt(
        session,
        attempt_id,
        caller.student_id,
        payload.reason,
        max_reason_length=settings.MAX_BLOCK_REASON_LENGTH,
    )
    return BlockResponse(
        message="Violation recorded and attempt blocked.",
        attempt_id=attempt.id,
        status=attempt.status,
    )


@router.post("/attempts/{attempt_id}/violations", response_model=ViolationResponse)
def report_violation(
    payload: ViolationRequest,
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
    settings: Settings = Depends(get_settings),
):
    """Log a non-terminal proctoring event; blocks once the limit is reached."""
    attempt = attempt_service.record_violation(
        session,
        attempt_id,
        caller.student_id,
        payload.activity_type,
        severity=payload.severity,
        metadata=payload.metadata,
        max_violations=settings.MAX_VIOLATIONS,
    )
    return ViolationResponse(
        attempt_id=attempt.id,
        violation_count=attempt.violation_count,
        status=attempt.status,
    )


# ===================== STUDENT VIEWS =====================


@router.get("/results/{attempt_id}", response_model=AttemptResultOut)
def attempt_result(
    attempt_id: int = Path(..., gt=0, le=MAX_DB_ID),
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
):
    return report_service.get_attempt_result(session, attempt_id, caller.student_id)


@router.get("/student/quizzes", response_model=List[CatalogQuizOut])
def student_quizzes(
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
):
    return report_service.list_student_quizzes(session, caller.student_id)


@router.get("/student/schedule", response_model=List[ScheduleEntryOut])
def student_schedule(
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
):
    return report_service.student_schedule(session, caller.student_id)


@router.get("/student/consolidated-report", response_model=ConsolidatedReportOut)
def consolidated_report(
    session: Session = Depends(get_session),
    caller: CallerIdentity = Depends(require_student),
):
    return report_service.consolidated_report(session, caller.student_id)
