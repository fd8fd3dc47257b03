"""Attempt lifecycle: start, question delivery, submission and blocking.

Every state change finalizes the attempt with a conditional UPDATE
(``... WHERE status = 'in_progress'``) so that of two concurrent requests
only one can win; the loser gets a ConflictError and its transaction is
rolled back.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import List, Mapping, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from quiz_engine.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationFailedError,
)
from quiz_engine.grading import AnswerKeyEntry, GradingOutcome, grade_answers
from quiz_engine.models import (
    ATTEMPT_BLOCKED,
    ATTEMPT_IN_PROGRESS,
    ATTEMPT_SUBMITTED,
    QUIZ_PUBLISHED,
    ExamActivityLog,
    ExamAttempt,
    Question,
    Quiz,
    QuizQuestionLink,
    QuizResult,
    utcnow,
)
from quiz_engine.utils import sanitize_plain_text, serialize_metadata

logger = logging.getLogger(__name__)

OPTION_SLOTS = ("A", "B", "C", "D")


# ===================== HELPERS =====================


def question_options(question: Question) -> dict[str, str]:
    """Option slot -> text, skipping empty slots."""
    options = {}
    for slot in OPTION_SLOTS:
        value = getattr(question, f"option_{slot.lower()}")
        if value:
            options[slot] = value
    return options


def quiz_is_open(quiz: Quiz, now: datetime) -> bool:
    """True when ``now`` lies inside whichever availability bounds are set."""
    if quiz.available_from is not None and now < quiz.available_from:
        return False
    if quiz.available_to is not None and now > quiz.available_to:
        return False
    return True


def get_owned_attempt(
    session: Session, attempt_id: int, student_id: int, for_update: bool = False
) -> ExamAttempt:
    """Load an attempt and check that ``student_id`` owns it.

    Raises:
        NotFoundError: no such attempt
        ForbiddenError: the attempt belongs to another student
    """
    stmt = select(ExamAttempt).where(ExamAttempt.id == attempt_id)
    if for_update:
        stmt = stmt.with_for_update()
    attempt = session.exec(stmt).first()
    if attempt is None:
        raise NotFoundError("Attempt not found")
    if attempt.student_id != student_id:
        logger.warning(
            f"Student {student_id} denied access to attempt {attempt_id} "
            f"owned by student {attempt.student_id}"
        )
        raise ForbiddenError("You do not own this attempt")
    return attempt


def _linked_questions(session: Session, quiz_id: int) -> List[Question]:
    stmt = (
        select(Question)
        .join(QuizQuestionLink, QuizQuestionLink.question_id == Question.id)
        .where(QuizQuestionLink.quiz_id == quiz_id)
        .order_by(QuizQuestionLink.question_order, QuizQuestionLink.id)
    )
    return list(session.exec(stmt).all())


def load_answer_key(session: Session, quiz_id: int) -> List[AnswerKeyEntry]:
    return [
        AnswerKeyEntry(question_id=q.id, correct_option=q.correct_option, marks=q.marks)
        for q in _linked_questions(session, quiz_id)
    ]


def _conditional_update(session: Session, attempt_id: int, **values) -> None:
    """Update an attempt only while it is in progress, or raise ConflictError."""
    stmt = (
        update(ExamAttempt)
        .where(ExamAttempt.id == attempt_id)
        .where(ExamAttempt.status == ATTEMPT_IN_PROGRESS)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if session.exec(stmt).rowcount != 1:
        raise ConflictError("Attempt is no longer in progress")


# ===================== LIFECYCLE =====================


def start_attempt(
    session: Session,
    student_id: int,
    quiz_id: int,
    room_number: Optional[str] = None,
    system_id: Optional[str] = None,
    verification_image: Optional[str] = None,
    allow_retakes: bool = False,
) -> Tuple[ExamAttempt, Quiz]:
    """Open a new in-progress attempt for a published, currently available quiz.

    With ``allow_retakes`` False any earlier attempt for the quiz blocks a
    new one; otherwise only an attempt still in progress does.
    """
    quiz = session.get(Quiz, quiz_id)
    if quiz is None or quiz.status != QUIZ_PUBLISHED:
        raise NotFoundError("Quiz not found")

    now = utcnow()
    if not quiz_is_open(quiz, now):
        raise ConflictError("Quiz is not currently available")

    existing = session.exec(
        select(ExamAttempt).where(
            ExamAttempt.student_id == student_id, ExamAttempt.quiz_id == quiz_id
        )
    ).all()
    if any(a.status == ATTEMPT_IN_PROGRESS for a in existing):
        raise ConflictError("An attempt for this quiz is already in progress")
    if existing and not allow_retakes:
        raise ConflictError("You have already completed this exam")

    attempt = ExamAttempt(
        student_id=student_id,
        quiz_id=quiz_id,
        status=ATTEMPT_IN_PROGRESS,
        start_time=now,
        room_number=room_number,
        system_id=system_id,
        verification_image=verification_image,
    )
    session.add(attempt)
    try:
        session.commit()
    except IntegrityError:
        # A concurrent start won the partial unique index
        session.rollback()
        raise ConflictError("An attempt for this quiz is already in progress")
    session.refresh(attempt)

    logger.info(f"Student {student_id} started attempt {attempt.id} for quiz {quiz_id}")
    return attempt, quiz


def get_attempt_questions(session: Session, attempt_id: int, student_id: int) -> List[dict]:
    """Questions for the attempt's quiz in delivery order, answer key withheld."""
    attempt = get_owned_attempt(session, attempt_id, student_id)
    return [
        {
            "question_id": q.id,
            "question_text": q.question_text,
            "options": question_options(q),
            "marks": q.marks,
        }
        for q in _linked_questions(session, attempt.quiz_id)
    ]


def submit_attempt(
    session: Session,
    attempt_id: int,
    student_id: int,
    answers: Mapping[int, Optional[str]],
    reported_violations: Optional[int] = None,
    late_grace_seconds: int = 0,
) -> Tuple[ExamAttempt, GradingOutcome]:
    """Grade and finalize an attempt in one transaction.

    Submissions past the time limit (plus grace) are accepted and flagged
    ``is_late``; the client timer is what enforces the limit.
    """
    attempt = get_owned_attempt(session, attempt_id, student_id, for_update=True)
    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise ConflictError(f"Attempt already {attempt.status}")

    quiz = session.get(Quiz, attempt.quiz_id)
    outcome = grade_answers(load_answer_key(session, attempt.quiz_id), answers)

    now = utcnow()
    is_late = False
    if quiz is not None:
        deadline = attempt.start_time + timedelta(
            minutes=quiz.time_limit, seconds=late_grace_seconds
        )
        is_late = now > deadline

    violation_count = max(attempt.violation_count, reported_violations or 0)

    try:
        _conditional_update(
            session,
            attempt_id,
            status=ATTEMPT_SUBMITTED,
            end_time=now,
            total_score=outcome.total_score,
            correct_count=outcome.correct_count,
            incorrect_count=outcome.incorrect_count,
            unanswered_count=outcome.unanswered_count,
            violation_count=violation_count,
            is_late=is_late,
        )
        for item in outcome.outcomes:
            session.add(
                QuizResult(
                    attempt_id=attempt_id,
                    question_id=item.question_id,
                    student_answer=item.student_answer,
                    correct_answer=item.correct_answer,
                    is_correct=item.is_correct,
                    marks_obtained=item.marks_obtained,
                )
            )
        session.commit()
    except ConflictError:
        session.rollback()
        raise
    except IntegrityError:
        session.rollback()
        raise ConflictError("Attempt has already been graded")
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"Storage failure while submitting attempt {attempt_id}: {exc}")
        raise InternalError("Could not save the submission") from exc

    session.refresh(attempt)
    logger.info(
        f"Attempt {attempt_id} submitted by student {student_id}: "
        f"score={outcome.total_score} correct={outcome.correct_count} "
        f"incorrect={outcome.incorrect_count} unanswered={outcome.unanswered_count}"
        + (" (late)" if is_late else "")
    )
    return attempt, outcome


def block_attempt(
    session: Session,
    attempt_id: int,
    student_id: int,
    reason: str,
    max_reason_length: int = 500,
) -> ExamAttempt:
    """Terminate an attempt after a proctoring violation. No grading happens."""
    attempt = get_owned_attempt(session, attempt_id, student_id, for_update=True)
    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise ConflictError(f"Attempt already {attempt.status}")

    clean_reason = sanitize_plain_text(reason, max_reason_length)
    if not clean_reason:
        raise ValidationFailedError("A block reason is required")

    try:
        _block(session, attempt, clean_reason)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(attempt)
    logger.warning(
        f"Attempt {attempt_id} of student {student_id} blocked: {clean_reason}"
    )
    return attempt


def _block(
    session: Session, attempt: ExamAttempt, reason: str, count_violation: bool = True
) -> None:
    _conditional_update(
        session,
        attempt.id,
        status=ATTEMPT_BLOCKED,
        end_time=utcnow(),
        block_reason=reason,
        violation_count=ExamAttempt.violation_count + (1 if count_violation else 0),
    )
    session.add(
        ExamActivityLog(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            student_id=attempt.student_id,
            activity_type="blocked",
            activity_metadata=json.dumps({"reason": reason}),
            severity="high",
        )
    )


def record_violation(
    session: Session,
    attempt_id: int,
    student_id: int,
    activity_type: str,
    severity: str = "medium",
    metadata=None,
    max_violations: int = 0,
) -> ExamAttempt:
    """Log a non-terminal proctoring event on an in-progress attempt.

    When ``max_violations`` is positive and the count reaches it, the attempt
    is blocked in the same transaction.
    """
    attempt = get_owned_attempt(session, attempt_id, student_id, for_update=True)
    if attempt.status != ATTEMPT_IN_PROGRESS:
        raise ConflictError(f"Attempt already {attempt.status}")

    clean_type = sanitize_plain_text(activity_type, 50)
    if not clean_type:
        raise ValidationFailedError("activity_type is required")

    try:
        _conditional_update(
            session, attempt_id, violation_count=ExamAttempt.violation_count + 1
        )
        session.add(
            ExamActivityLog(
                attempt_id=attempt_id,
                quiz_id=attempt.quiz_id,
                student_id=student_id,
                activity_type=clean_type,
                activity_metadata=serialize_metadata(metadata),
                severity=severity,
            )
        )
        session.flush()
        session.refresh(attempt)

        if max_violations > 0 and attempt.violation_count >= max_violations:
            _block(
                session,
                attempt,
                f"Violation limit reached ({clean_type})",
                count_violation=False,
            )
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(attempt)
    logger.info(
        f"Violation '{clean_type}' on attempt {attempt_id} "
        f"(count={attempt.violation_count}, status={attempt.status})"
    )
    return attempt


def delete_attempt(session: Session, attempt_id: int) -> None:
    """Remove an attempt with its result rows and activity log (staff only)."""
    attempt = session.get(ExamAttempt, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    try:
        for row in session.exec(select(QuizResult).where(QuizResult.attempt_id == attempt_id)).all():
            session.delete(row)
        for row in session.exec(
            select(ExamActivityLog).where(ExamActivityLog.attempt_id == attempt_id)
        ).all():
            session.delete(row)
        session.flush()
        session.delete(attempt)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Attempt {attempt_id} deleted")
