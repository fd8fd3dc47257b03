from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, text

from quiz_engine.auth_utils import hash_password
from quiz_engine.database import get_session
from quiz_engine.main import app
from quiz_engine.models import (
    QUIZ_DRAFT,
    QUIZ_PUBLISHED,
    ROLE_STUDENT,
    ROLE_TEACHER,
    Course,
    Question,
    Quiz,
    QuizQuestionLink,
    Student,
    User,
    utcnow,
)

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

# StaticPool shares the one in-memory database across threads
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

PASSWORD = "testpass123"
# Hashing is slow on purpose; do it once
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield

    # FK-safe order
    with Session(test_engine) as session:
        session.exec(text("DELETE FROM quizresult"))
        session.exec(text("DELETE FROM examactivitylog"))
        session.exec(text("DELETE FROM examattempt"))
        session.exec(text("DELETE FROM quizquestionlink"))
        session.exec(text("DELETE FROM question"))
        session.exec(text("DELETE FROM quiz"))
        session.exec(text("DELETE FROM user"))
        session.exec(text("DELETE FROM student"))
        session.exec(text("DELETE FROM course"))
        session.commit()


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


# ============================================================================
# FASTAPI APP & TEST CLIENTS
# ============================================================================


def _override_get_session():
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def make_client():
    """Factory for logged-in clients; each one keeps its own session cookie."""
    app.dependency_overrides[get_session] = _override_get_session

    def _make(email=None):
        client = TestClient(app)
        if email is not None:
            response = client.post("/auth/login", json={"email": email, "password": PASSWORD})
            assert response.status_code == 200, response.text
        return client

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def alice_client(make_client, alice):
    return make_client(alice["email"])


@pytest.fixture
def bob_client(make_client, bob):
    return make_client(bob["email"])


@pytest.fixture
def teacher_client(make_client, teacher):
    return make_client(teacher["email"])


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


@pytest.fixture
def course():
    with Session(test_engine) as session:
        course = Course(code="CSE101", name="Computer Fundamentals")
        session.add(course)
        session.commit()
        session.refresh(course)
        return course


def _create_student(name, email, roll_number, course_id):
    with Session(test_engine) as session:
        student = Student(name=name, roll_number=roll_number, course_id=course_id)
        session.add(student)
        session.commit()
        session.refresh(student)

        user = User(
            name=name,
            email=email,
            password_hash=PASSWORD_HASH,
            role=ROLE_STUDENT,
            student_id=student.id,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return {"student_id": student.id, "user_id": user.id, "email": email}


@pytest.fixture
def alice(course):
    return _create_student("Alice Tan", "alice@example.com", "R-1001", course.id)


@pytest.fixture
def bob(course):
    return _create_student("Bob Lim", "bob@example.com", "R-1002", course.id)


@pytest.fixture
def teacher():
    with Session(test_engine) as session:
        user = User(
            name="Dr. Rahman",
            email="teacher@example.com",
            password_hash=PASSWORD_HASH,
            role=ROLE_TEACHER,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return {"user_id": user.id, "email": user.email}


def create_quiz(questions, status=QUIZ_PUBLISHED, course_id=None, **quiz_fields):
    """Create a quiz and link ``questions`` (list of (correct_option, marks)) in order.

    Returns (quiz_id, [question_id, ...]) in delivery order.
    """
    with Session(test_engine) as session:
        quiz = Quiz(
            title=quiz_fields.pop("title", "Unit Test Quiz"),
            subject=quiz_fields.pop("subject", "Computer Fundamentals"),
            course_id=course_id,
            status=status,
            time_limit=quiz_fields.pop("time_limit", 30),
            **quiz_fields,
        )
        session.add(quiz)
        session.commit()
        session.refresh(quiz)

        question_ids = []
        for i, (correct_option, marks) in enumerate(questions):
            question = Question(
                question_text=f"Question {i + 1}?",
                option_a=f"Q{i + 1} option A",
                option_b=f"Q{i + 1} option B",
                option_c=f"Q{i + 1} option C",
                option_d=f"Q{i + 1} option D",
                correct_option=correct_option,
                marks=marks,
            )
            session.add(question)
            session.commit()
            session.refresh(question)
            question_ids.append(question.id)

        # Link in reverse insertion order with explicit ordering so that
        # delivery order cannot come from primary keys by accident
        for order, question_id in reversed(list(enumerate(question_ids, start=1))):
            session.add(
                QuizQuestionLink(quiz_id=quiz.id, question_id=question_id, question_order=order)
            )
        session.commit()
        return quiz.id, question_ids


@pytest.fixture
def scenario_quiz(course):
    """Three questions worth 2, 3 and 5 marks with keys B, A, C."""
    return create_quiz([("B", 2), ("A", 3), ("C", 5)], course_id=course.id)


@pytest.fixture
def draft_quiz(course):
    return create_quiz([("A", 1)], status=QUIZ_DRAFT, course_id=course.id)


@pytest.fixture
def expired_quiz(course):
    now = utcnow()
    return create_quiz(
        [("A", 1)],
        course_id=course.id,
        title="Expired Quiz",
        available_from=now - timedelta(days=2),
        available_to=now - timedelta(days=1),
    )
