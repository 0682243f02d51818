"""
Grading Pipeline Module.

MCQ and descriptive graders, the LLM client with its retry policy, and the
engine that grades whole quiz attempts.
"""

from quiz_grader.grading.ai_grader import AIGrader, AIGradingError
from quiz_grader.grading.descriptive import DescriptiveGrader
from quiz_grader.grading.engine import (
    GradingEngine,
    InputShapeError,
    PerQuestionGradingError,
    parse_questions,
)
from quiz_grader.grading.llm_client import LLMClient, LLMError
from quiz_grader.grading.mcq import grade_mcq, normalize_mcq_answer
from quiz_grader.grading.prompt_builder import PromptBuilder
from quiz_grader.grading.retry import RetryPolicy
from quiz_grader.grading.scorer import ResponseParser, ScoringError
from quiz_grader.grading.similarity import similarity

__all__ = [
    "AIGrader",
    "AIGradingError",
    "DescriptiveGrader",
    "GradingEngine",
    "InputShapeError",
    "LLMClient",
    "LLMError",
    "PerQuestionGradingError",
    "PromptBuilder",
    "ResponseParser",
    "RetryPolicy",
    "ScoringError",
    "grade_mcq",
    "normalize_mcq_answer",
    "parse_questions",
    "similarity",
]
