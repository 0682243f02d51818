"""
Pytest configuration and fixtures.

Provides common test fixtures for all test modules.
"""

import json
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

from quiz_grader.config import Settings
from quiz_grader.grading.ai_grader import is_permanent_error
from quiz_grader.grading.retry import RetryPolicy
from quiz_grader.metrics import GradingMetrics
from quiz_grader.models import Question


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ==============================================================================
# Sample Question Fixtures
# ==============================================================================


@pytest.fixture
def mcq_question() -> Question:
    """An MCQ worth two marks whose answer is B."""
    return Question(
        id="q-mcq",
        text="Which planet is known as the Red Planet?",
        type="mcq",
        options=("Venus", "Mars", "Jupiter", "Saturn"),
        answer="B",
        marks=2,
    )


@pytest.fixture
def descriptive_question() -> Question:
    """A descriptive question worth five marks."""
    return Question(
        id="q-desc",
        text="What is the capital of France?",
        type="descriptive",
        answer="Paris is the capital of France",
        marks=5,
        explanation="Paris has been the capital since 508 AD.",
    )


@pytest.fixture
def sample_questions(mcq_question: Question, descriptive_question: Question) -> list[Question]:
    """A small mixed quiz."""
    return [
        mcq_question,
        descriptive_question,
        Question(id="q-num", text="2 + 2 = ?", type="multiple-choice", answer="3", marks=1),
    ]


@pytest.fixture
def sample_quiz_documents() -> list[dict]:
    """Questions as they come out of the quiz store."""
    return [
        {"_id": 101, "question": "Pick the vowel", "type": "mcq", "options": ["b", "a"], "answer": "B"},
        {
            "_id": 102,
            "questionText": "Name the largest ocean",
            "type": "short-answer",
            "answer": "the Pacific Ocean",
            "marks": 3,
        },
        {"_id": 103, "question": "True or false?", "type": "true-false", "answer": "A", "marks": None},
    ]


# ==============================================================================
# LLM Response Fixtures
# ==============================================================================


@pytest.fixture
def sample_ai_response() -> str:
    """Sample LLM grading response in JSON format."""
    return json.dumps(
        {
            "isCorrect": True,
            "marks": 4.5,
            "confidence": 0.9,
            "feedback": "Correctly identifies Paris as the capital.",
            "keyPointsFound": ["Paris", "capital of France"],
            "keyPointsMissing": [],
        }
    )


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with AI grading configured and no retry delay."""
    return Settings(
        _env_file=None,
        llm_api_key="test-api-key-for-testing",
        llm_base_url="https://test.api.local/",
        llm_model="test-model",
        retry_base_delay_ms=0,
        timeout_ms=5000,
    )


@pytest.fixture
def no_ai_settings() -> Settings:
    """Settings without an API key."""
    return Settings(_env_file=None, llm_api_key=None)


# ==============================================================================
# Mock Fixtures
# ==============================================================================


@pytest.fixture
def metrics() -> GradingMetrics:
    """Fresh metrics collector, isolated per test."""
    return GradingMetrics()


@pytest.fixture
def mock_llm_client(sample_ai_response: str) -> MagicMock:
    """Mock LLM client to avoid actual API calls."""
    client = MagicMock()
    client.generate = AsyncMock(return_value=sample_ai_response)
    client.health_check = AsyncMock(return_value=True)
    client.is_configured = True
    return client


@pytest.fixture
def mock_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records backoff delays."""
    return AsyncMock()


@pytest.fixture
def fast_retry_policy(mock_sleep: AsyncMock) -> RetryPolicy:
    """Three attempts with 1s linear backoff, without actually sleeping."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, give_up=is_permanent_error, sleep=mock_sleep)


# ==============================================================================
# File Fixtures
# ==============================================================================


@pytest.fixture
def quiz_file(temp_dir: Path, sample_questions: list[Question]) -> Path:
    """Quiz JSON file in the shape stored by the quiz service."""
    file_path = temp_dir / "quiz.json"
    payload = {
        "title": "General Knowledge",
        "questions": [q.model_dump(mode="json") for q in sample_questions],
    }
    file_path.write_text(json.dumps(payload), encoding="utf-8")
    return file_path


@pytest.fixture
def answers_file(temp_dir: Path) -> Path:
    """Answers JSON file matching quiz_file."""
    file_path = temp_dir / "answers.json"
    file_path.write_text(json.dumps(["Option B", "paris capital france", "4"]), encoding="utf-8")
    return file_path
