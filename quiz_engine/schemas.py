"""Request/response schemas for the exam API."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

# Largest value a 64-bit signed integer primary key can hold
MAX_DB_ID = 2**63 - 1


# --- Requests ---


class StartAttemptRequest(BaseModel):
    quiz_id: int = Field(gt=0, le=MAX_DB_ID)
    room_number: Optional[str] = Field(default=None, max_length=50)
    system_id: Optional[str] = Field(default=None, max_length=50)
    live_image_data: Optional[str] = None  # verification snapshot reference/data URL


class AnswerEntry(BaseModel):
    question_id: int = Field(gt=0, le=MAX_DB_ID)
    answer: Optional[str] = None


class SubmitRequest(BaseModel):
    answers: List[AnswerEntry]
    violations: Optional[int] = Field(default=None, ge=0)

    @field_validator("answers")
    @classmethod
    def unique_question_ids(cls, value: List[AnswerEntry]) -> List[AnswerEntry]:
        seen = set()
        for entry in value:
            if entry.question_id in seen:
                raise ValueError(f"Duplicate answer for question {entry.question_id}")
            seen.add(entry.question_id)
        return value


class BlockRequest(BaseModel):
    reason: str = Field(min_length=1)


class ViolationRequest(BaseModel):
    activity_type: str = Field(min_length=1, max_length=50)
    severity: str = Field(default="medium", pattern="^(low|medium|high)$")
    metadata: Optional[Any] = None


class LoginRequest(BaseModel):
    email: str
    password: str


# --- Responses ---


class QuizDetails(BaseModel):
    title: str
    time_limit_minutes: int


class StartAttemptResponse(BaseModel):
    attempt_id: int
    quiz_details: QuizDetails


class QuestionOut(BaseModel):
    """Student-facing question; carries no answer key."""

    question_id: int
    question_text: str
    options: dict[str, str]
    marks: int


class SubmitResponse(BaseModel):
    attempt_id: int
    total_score: int
    correct_count: int
    incorrect_count: int
    unanswered_count: int
    is_late: bool


class BlockResponse(BaseModel):
    message: str
    attempt_id: int
    status: str


class ViolationResponse(BaseModel):
    attempt_id: int
    violation_count: int
    status: str


class ResultRowOut(BaseModel):
    question_id: int
    question_text: str
    options: dict[str, str]
    marks: int
    student_answer: Optional[str]
    correct_answer: str
    is_correct: bool
    marks_obtained: int


class AttemptSummaryOut(BaseModel):
    attempt_id: int
    quiz_id: int
    quiz_title: str
    student_id: int
    status: str
    start_time: datetime
    end_time: Optional[datetime]
    total_score: int
    max_marks: int
    correct_count: int
    incorrect_count: int
    unanswered_count: int
    violation_count: int
    is_late: bool
    block_reason: Optional[str] = None


class AttemptResultOut(BaseModel):
    summary: AttemptSummaryOut
    details: List[ResultRowOut]


class CatalogQuizOut(BaseModel):
    quiz_id: int
    title: str
    subject: Optional[str]
    assessment_type: str
    time_limit: int
    total_questions: int
    max_marks: int
    available_from: Optional[datetime]
    available_to: Optional[datetime]
    is_open: bool
    attempt_status: Optional[str]


class ScheduleEntryOut(BaseModel):
    quiz_id: int
    title: str
    subject: Optional[str]
    assessment_type: str
    time_limit: int
    available_from: Optional[datetime]
    available_to: Optional[datetime]


class ReportEntryOut(BaseModel):
    attempt_id: int
    quiz_title: str
    subject: Optional[str]
    status: str
    total_score: int
    max_marks: int
    end_time: Optional[datetime]


class ConsolidatedReportOut(BaseModel):
    student_id: int
    student_name: str
    roll_number: str
    results: List[ReportEntryOut]


class StaffAttemptRowOut(BaseModel):
    attempt_id: int
    student_id: int
    student_name: str
    roll_number: str
    status: str
    total_score: int
    max_marks: int
    start_time: datetime
    end_time: Optional[datetime]
    violation_count: int


class ActivityLogOut(BaseModel):
    activity_type: str
    severity: str
    timestamp: datetime
    activity_metadata: Optional[str]


class MarksheetOut(BaseModel):
    summary: AttemptSummaryOut
    details: List[ResultRowOut]
    activity: List[ActivityLogOut]
