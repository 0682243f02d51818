"""
AI grading of descriptive answers.

One grading call is prompt -> LLM -> validated verdict, retried as a whole
so a malformed or out-of-range reply gets another chance just like a
timeout does.
"""

import logging

from quiz_grader.config import Settings, get_settings
from quiz_grader.grading.llm_client import LLMClient, LLMError
from quiz_grader.grading.prompt_builder import PromptBuilder
from quiz_grader.grading.retry import RetryPolicy
from quiz_grader.grading.scorer import ResponseParser
from quiz_grader.models import AIGradingResult, Question

logger = logging.getLogger(__name__)


class AIGradingError(Exception):
    """Raised when AI grading still fails after every retry."""

    def __init__(self, message: str, cause: Exception | None = None, attempts: int = 0):
        self.cause = cause
        self.attempts = attempts
        super().__init__(message)


def is_permanent_error(error: Exception) -> bool:
    """LLM errors flagged non-retryable (bad request, auth, missing key) end the retry loop."""
    return isinstance(error, LLMError) and not error.retryable


class AIGrader:
    """
    Grades a single descriptive answer with the external LLM.

    Args:
        llm_client: Client for the grading model.
        settings: Configuration settings. Uses global settings if not provided.
        retry_policy: Overrides the policy built from settings.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        settings: Settings | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self._settings = settings or get_settings()
        self._llm_client = llm_client
        self._response_parser = ResponseParser()
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=self._settings.max_retries,
            base_delay=self._settings.retry_base_delay_ms / 1000,
            give_up=is_permanent_error,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def grade(self, question: Question, student_answer: str) -> AIGradingResult:
        """
        Grade an answer, retrying on any failure except a permanent LLM error.

        Args:
            question: The question being answered.
            student_answer: The student's answer text.

        Returns:
            Validated AIGradingResult with marks clamped to the question's marks.

        Raises:
            AIGradingError: When all attempts fail, or one fails permanently.
        """
        calls = 0
        system_prompt = PromptBuilder.get_system_prompt()
        user_prompt = PromptBuilder.build_grading_prompt(question, student_answer)

        async def attempt() -> AIGradingResult:
            nonlocal calls
            calls += 1
            raw_response = await self._llm_client.generate(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=self._settings.llm_temperature,
                max_tokens=self._settings.max_response_tokens,
            )
            return self._response_parser.parse(raw_response, question.marks)

        try:
            return await self._retry_policy.run(
                attempt, label=f"AI grading of question {question.id or '?'}"
            )
        except Exception as e:
            raise AIGradingError(
                f"AI grading failed after {calls} attempt(s): {e}",
                cause=e,
                attempts=calls,
            ) from e
