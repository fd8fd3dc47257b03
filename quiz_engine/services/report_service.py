"""Read-only views over quizzes and finalized attempts."""

from typing import List, Optional

from sqlalchemy import func
from sqlmodel import Session, or_, select

from quiz_engine.errors import ConflictError, NotFoundError
from quiz_engine.models import (
    ATTEMPT_IN_PROGRESS,
    QUIZ_PUBLISHED,
    TERMINAL_STATUSES,
    ExamActivityLog,
    ExamAttempt,
    Question,
    Quiz,
    QuizQuestionLink,
    QuizResult,
    Student,
    utcnow,
)
from quiz_engine.services.attempt_service import (
    get_owned_attempt,
    question_options,
    quiz_is_open,
)


def quiz_max_marks(session: Session, quiz_id: int) -> int:
    """Sum of marks over the quiz's linked questions."""
    total = session.exec(
        select(func.coalesce(func.sum(Question.marks), 0))
        .select_from(Question)
        .join(QuizQuestionLink, QuizQuestionLink.question_id == Question.id)
        .where(QuizQuestionLink.quiz_id == quiz_id)
    ).one()
    return int(total)


def quiz_question_count(session: Session, quiz_id: int) -> int:
    return session.exec(
        select(func.count(QuizQuestionLink.id)).where(QuizQuestionLink.quiz_id == quiz_id)
    ).one()


def _get_student(session: Session, student_id: int) -> Student:
    student = session.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student profile not found")
    return student


def _summary(session: Session, attempt: ExamAttempt) -> dict:
    quiz = session.get(Quiz, attempt.quiz_id)
    return {
        "attempt_id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "quiz_title": quiz.title if quiz else "",
        "student_id": attempt.student_id,
        "status": attempt.status,
        "start_time": attempt.start_time,
        "end_time": attempt.end_time,
        "total_score": attempt.total_score,
        "max_marks": quiz_max_marks(session, attempt.quiz_id),
        "correct_count": attempt.correct_count,
        "incorrect_count": attempt.incorrect_count,
        "unanswered_count": attempt.unanswered_count,
        "violation_count": attempt.violation_count,
        "is_late": attempt.is_late,
        "block_reason": attempt.block_reason,
    }


def _details(session: Session, attempt: ExamAttempt) -> List[dict]:
    rows = session.exec(
        select(QuizResult, Question, QuizQuestionLink.question_order)
        .join(Question, Question.id == QuizResult.question_id)
        .join(
            QuizQuestionLink,
            (QuizQuestionLink.question_id == QuizResult.question_id)
            & (QuizQuestionLink.quiz_id == attempt.quiz_id),
            isouter=True,
        )
        .where(QuizResult.attempt_id == attempt.id)
        .order_by(QuizQuestionLink.question_order, QuizResult.id)
    ).all()
    return [
        {
            "question_id": question.id,
            "question_text": question.question_text,
            "options": question_options(question),
            "marks": question.marks,
            "student_answer": result.student_answer,
            "correct_answer": result.correct_answer,
            "is_correct": result.is_correct,
            "marks_obtained": result.marks_obtained,
        }
        for result, question, _order in rows
    ]


# ===================== STUDENT VIEWS =====================


def get_attempt_result(session: Session, attempt_id: int, student_id: int) -> dict:
    """Result sheet for the owner of a finalized attempt."""
    attempt = get_owned_attempt(session, attempt_id, student_id)
    if attempt.status == ATTEMPT_IN_PROGRESS:
        raise ConflictError("Results are available once the attempt is finished")
    return {"summary": _summary(session, attempt), "details": _details(session, attempt)}


def list_student_quizzes(session: Session, student_id: int) -> List[dict]:
    """Published quizzes for the student's course, plus course-less ones."""
    student = _get_student(session, student_id)
    now = utcnow()

    quizzes = session.exec(
        select(Quiz)
        .where(Quiz.status == QUIZ_PUBLISHED)
        .where(or_(Quiz.course_id == student.course_id, Quiz.course_id.is_(None)))
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
    ).all()

    catalog = []
    for quiz in quizzes:
        latest: Optional[ExamAttempt] = session.exec(
            select(ExamAttempt)
            .where(ExamAttempt.quiz_id == quiz.id, ExamAttempt.student_id == student_id)
            .order_by(ExamAttempt.start_time.desc(), ExamAttempt.id.desc())
        ).first()
        catalog.append(
            {
                "quiz_id": quiz.id,
                "title": quiz.title,
                "subject": quiz.subject,
                "assessment_type": quiz.assessment_type,
                "time_limit": quiz.time_limit,
                "total_questions": quiz_question_count(session, quiz.id),
                "max_marks": quiz_max_marks(session, quiz.id),
                "available_from": quiz.available_from,
                "available_to": quiz.available_to,
                "is_open": quiz_is_open(quiz, now),
                "attempt_status": latest.status if latest else None,
            }
        )
    return catalog


def student_schedule(session: Session, student_id: int) -> List[dict]:
    student = _get_student(session, student_id)
    if student.course_id is None:
        return []
    quizzes = session.exec(
        select(Quiz)
        .where(Quiz.status == QUIZ_PUBLISHED, Quiz.course_id == student.course_id)
        .order_by(Quiz.available_from, Quiz.id)
    ).all()
    return [
        {
            "quiz_id": q.id,
            "title": q.title,
            "subject": q.subject,
            "assessment_type": q.assessment_type,
            "time_limit": q.time_limit,
            "available_from": q.available_from,
            "available_to": q.available_to,
        }
        for q in quizzes
    ]


def consolidated_report(session: Session, student_id: int) -> dict:
    """Every finalized attempt of the student, newest first."""
    student = _get_student(session, student_id)
    rows = session.exec(
        select(ExamAttempt, Quiz)
        .join(Quiz, Quiz.id == ExamAttempt.quiz_id)
        .where(ExamAttempt.student_id == student_id)
        .where(ExamAttempt.status.in_(TERMINAL_STATUSES))
        .order_by(ExamAttempt.end_time.desc(), ExamAttempt.id.desc())
    ).all()
    return {
        "student_id": student.id,
        "student_name": student.name,
        "roll_number": student.roll_number,
        "results": [
            {
                "attempt_id": attempt.id,
                "quiz_title": quiz.title,
                "subject": quiz.subject,
                "status": attempt.status,
                "total_score": attempt.total_score,
                "max_marks": quiz_max_marks(session, quiz.id),
                "end_time": attempt.end_time,
            }
            for attempt, quiz in rows
        ],
    }


# ===================== STAFF VIEWS =====================


def list_quiz_attempts(session: Session, quiz_id: int) -> List[dict]:
    if session.get(Quiz, quiz_id) is None:
        raise NotFoundError("Quiz not found")
    max_marks = quiz_max_marks(session, quiz_id)
    rows = session.exec(
        select(ExamAttempt, Student)
        .join(Student, Student.id == ExamAttempt.student_id)
        .where(ExamAttempt.quiz_id == quiz_id)
        .order_by(ExamAttempt.total_score.desc(), ExamAttempt.id)
    ).all()
    return [
        {
            "attempt_id": attempt.id,
            "student_id": student.id,
            "student_name": student.name,
            "roll_number": student.roll_number,
            "status": attempt.status,
            "total_score": attempt.total_score,
            "max_marks": max_marks,
            "start_time": attempt.start_time,
            "end_time": attempt.end_time,
            "violation_count": attempt.violation_count,
        }
        for attempt, student in rows
    ]


def get_marksheet(session: Session, attempt_id: int) -> dict:
    """Full staff view of one attempt, including answer key and activity log."""
    attempt = session.get(ExamAttempt, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt record not found")
    activity = session.exec(
        select(ExamActivityLog)
        .where(ExamActivityLog.attempt_id == attempt_id)
        .order_by(ExamActivityLog.timestamp, ExamActivityLog.id)
    ).all()
    return {
        "summary": _summary(session, attempt),
        "details": _details(session, attempt),
        "activity": [
            {
                "activity_type": log.activity_type,
                "severity": log.severity,
                "timestamp": log.timestamp,
                "activity_metadata": log.activity_metadata,
            }
            for log in activity
        ],
    }
