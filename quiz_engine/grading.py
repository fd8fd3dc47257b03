"""Pure grading for multiple-choice attempts.

Grading walks the answer key, not the submission: every quiz question gets
exactly one outcome, and answers for question ids outside the key are
ignored. Scoring is binary per question (full marks or zero).
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional


@dataclass(frozen=True)
class AnswerKeyEntry:
    question_id: int
    correct_option: str
    marks: int


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: int
    student_answer: Optional[str]
    correct_answer: str
    is_correct: bool
    marks_obtained: int

    @property
    def answered(self) -> bool:
        return self.student_answer is not None


@dataclass
class GradingOutcome:
    outcomes: List[QuestionOutcome] = field(default_factory=list)
    total_score: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    unanswered_count: int = 0

    @property
    def question_count(self) -> int:
        return len(self.outcomes)


def normalize_answer(value) -> str:
    """Case-insensitive, whitespace-trimmed form used for comparison."""
    return str(value).strip().lower()


def _present(raw) -> Optional[str]:
    """Return the raw answer as text, or None when it is absent or blank."""
    if raw is None:
        return None
    text = str(raw)
    if not text.strip():
        return None
    return text


def grade_answers(
    answer_key: Iterable[AnswerKeyEntry], answers: Mapping[int, Optional[str]]
) -> GradingOutcome:
    """Grade ``answers`` (question_id -> raw answer) against ``answer_key``.

    Keeps the key's order in ``outcomes``.
    """
    result = GradingOutcome()
    for entry in answer_key:
        raw = _present(answers.get(entry.question_id))
        is_correct = raw is not None and normalize_answer(raw) == normalize_answer(
            entry.correct_option
        )
        marks_obtained = entry.marks if is_correct else 0

        if raw is None:
            result.unanswered_count += 1
        elif is_correct:
            result.correct_count += 1
        else:
            result.incorrect_count += 1
        result.total_score += marks_obtained

        result.outcomes.append(
            QuestionOutcome(
                question_id=entry.question_id,
                student_answer=raw,
                correct_answer=entry.correct_option,
                is_correct=is_correct,
                marks_obtained=marks_obtained,
            )
        )
    return result
