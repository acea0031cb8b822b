# Pytest configuration file for the schoolhub test suite
import sys
import os
import pytest

# Add the project root to Python path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from schoolhub.db.memory_provider import InMemoryAuthGateway, InMemoryStore

SCHOOL_ID = "school-1"
OTHER_SCHOOL_ID = "school-2"


# Configure pytest markers
def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests for isolated components")
    config.addinivalue_line("markers", "integration: Integration tests for multiple components")
    config.addinivalue_line("markers", "real: Tests that use a real Supabase project")


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def auth():
    """Empty in-memory auth subsystem."""
    return InMemoryAuthGateway()


def add_user(store, auth, email, role, school_id=SCHOOL_ID, full_name="Test User"):
    """Register an identity with a profile row and return (identity, access token)."""
    identity, token = auth.register(email)
    store.seed("users", [{
        "id": identity.id,
        "school_id": school_id,
        "role": role,
        "full_name": full_name,
        "phone": None,
    }])
    return identity, token


@pytest.fixture
def admin(store, auth):
    """School admin of SCHOOL_ID: (identity, token)."""
    return add_user(store, auth, "admin@school.test", "school_admin", full_name="Ada Admin")


@pytest.fixture
def teacher(store, auth):
    """Teacher of SCHOOL_ID: (identity, token)."""
    return add_user(store, auth, "teacher@school.test", "teacher", full_name="Tom Teacher")


@pytest.fixture
def marked_test(store):
    """A 10-mark test in SCHOOL_ID with three questions worth 2, 3 and 5 marks."""
    store.seed("tests", [{"id": "test-1", "school_id": SCHOOL_ID, "title": "Form 2 Algebra", "total_marks": 10}])
    store.seed("questions", [
        {"id": "q1", "school_id": SCHOOL_ID, "correct_answer": "A"},
        {"id": "q2", "school_id": SCHOOL_ID, "correct_answer": "C"},
        {"id": "q3", "school_id": SCHOOL_ID, "correct_answer": "True"},
    ])
    store.seed("test_questions", [
        {"test_id": "test-1", "question_id": "q1", "order_no": 1, "marks": 2},
        {"test_id": "test-1", "question_id": "q2", "order_no": 2, "marks": 3},
        {"test_id": "test-1", "question_id": "q3", "order_no": 3, "marks": 5},
    ])
    return "test-1"
