"""SQLModel models for the proctored quiz attempt engine."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel

# Quiz publication status
QUIZ_DRAFT = "draft"
QUIZ_PUBLISHED = "published"

# Attempt lifecycle status
ATTEMPT_IN_PROGRESS = "in_progress"
ATTEMPT_SUBMITTED = "submitted"
ATTEMPT_BLOCKED = "blocked"
TERMINAL_STATUSES = (ATTEMPT_SUBMITTED, ATTEMPT_BLOCKED)

# Roles handed to us by the identity layer
ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"
ROLE_ADMIN = "admin"
STAFF_ROLES = [ROLE_TEACHER, ROLE_ADMIN]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ===================== REFERENCE DATA (owned by academic admin) =====================


class Course(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("code", name="uq_course_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str
    name: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())


class Student(SQLModel, table=True):
    """Student record; the course drives which quizzes the student can see."""

    __table_args__ = (UniqueConstraint("roll_number", name="uq_student_roll_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    roll_number: str
    course_id: Optional[int] = Field(default=None, foreign_key="course.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())


class User(SQLModel, table=True):
    """Login account. Student accounts link to a Student record."""

    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    password_hash: str
    role: str = Field(default=ROLE_STUDENT)  # "student", "teacher", "admin"
    student_id: Optional[int] = Field(default=None, foreign_key="student.id")
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())


class Quiz(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    subject: Optional[str] = None
    assessment_type: str = Field(default="Quiz")
    course_id: Optional[int] = Field(default=None, foreign_key="course.id")
    time_limit: int = Field(default=60)  # minutes
    available_from: Optional[datetime] = Field(default=None, sa_type=DateTime())
    available_to: Optional[datetime] = Field(default=None, sa_type=DateTime())
    status: str = Field(default=QUIZ_DRAFT)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())


class Question(SQLModel, table=True):
    """Question bank entry. Up to four options; correct_option names one slot."""

    id: Optional[int] = Field(default=None, primary_key=True)
    question_text: str
    option_a: Optional[str] = None
    option_b: Optional[str] = None
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    correct_option: str
    marks: int = Field(default=1)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())


class QuizQuestionLink(SQLModel, table=True):
    """Ordered membership of a question in a quiz."""

    __table_args__ = (
        UniqueConstraint("quiz_id", "question_id", name="uq_quiz_question"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    question_id: int = Field(foreign_key="question.id")
    question_order: int


# ===================== ATTEMPT ENGINE =====================


class ExamAttempt(SQLModel, table=True):
    """One student's instance of taking a quiz."""

    __table_args__ = (
        # Never two in-progress attempts for the same (student, quiz)
        Index(
            "uq_attempt_active",
            "student_id",
            "quiz_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="student.id", index=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    status: str = Field(default=ATTEMPT_IN_PROGRESS)  # in_progress | submitted | blocked
    start_time: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    end_time: Optional[datetime] = Field(default=None, sa_type=DateTime())

    total_score: int = Field(default=0)
    correct_count: int = Field(default=0)
    incorrect_count: int = Field(default=0)
    unanswered_count: int = Field(default=0)
    is_late: bool = Field(default=False)

    # Proctoring metadata
    verification_image: Optional[str] = None
    room_number: Optional[str] = None
    system_id: Optional[str] = None
    violation_count: int = Field(default=0)
    block_reason: Optional[str] = None


class QuizResult(SQLModel, table=True):
    """Per-question grading record written when an attempt is submitted."""

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_result_attempt_question"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="examattempt.id", index=True)
    question_id: int = Field(foreign_key="question.id")
    student_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool = Field(default=False)
    marks_obtained: int = Field(default=0)


class ExamActivityLog(SQLModel, table=True):
    """Proctoring events reported by the exam client."""

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="examattempt.id", index=True)
    quiz_id: int = Field(foreign_key="quiz.id")
    student_id: int = Field(foreign_key="student.id")
    activity_type: str  # e.g. "tab_switch", "fullscreen_exit", "multiple_faces", "blocked"
    timestamp: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    activity_metadata: Optional[str] = None  # JSON string
    severity: str = Field(default="low")  # low, medium, high
