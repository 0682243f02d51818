"""
Response parser for LLM grading output.

Parses the JSON verdict from the LLM and validates it against the
question's limits. A response that fails validation is rejected so the
caller can retry; it is never patched up into a grade.
"""

import json
import math
import re
from typing import Any

from quiz_grader.models import AIGradingResult


class ScoringError(Exception):
    """Raised when response parsing or validation fails."""

    def __init__(self, message: str, raw_response: str | None = None):
        self.raw_response = raw_response
        super().__init__(message)


class ResponseParser:
    """
    Parses and validates LLM grading responses.

    Ensures:
    1. Response is valid JSON, with or without a code fence around it
    2. isCorrect is a boolean and feedback a non-empty string
    3. marks is a number within the question's range
    """

    def parse(self, response: str, max_marks: float) -> AIGradingResult:
        """
        Parse an LLM response into an AIGradingResult.

        Args:
            response: Raw LLM response (expected JSON).
            max_marks: Maximum marks for the question being graded.

        Returns:
            Validated AIGradingResult.

        Raises:
            ScoringError: If parsing or validation fails.
        """
        data = self._load_json(response)

        if not isinstance(data, dict):
            raise ScoringError("Response JSON must be an object", raw_response=response)

        return self._validate_and_convert(data, max_marks, response)

    def _load_json(self, response: str) -> Any:
        """
        Decode the JSON in a response, handling common formats.

        The whole (unfenced) text is tried first. Failing that, the first
        JSON value starting at a "{" is decoded and any trailing prose ignored.

        Args:
            response: Raw response text.

        Returns:
            The decoded JSON value.

        Raises:
            ScoringError: If no JSON object can be decoded.
        """
        text = response.strip()

        # Remove markdown code block if present
        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
        if json_match:
            text = json_match.group(1).strip()

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            first_error = e

        brace_start = text.find("{")
        if brace_start == -1:
            if json_match:
                raise ScoringError(
                    f"Invalid JSON in response: {first_error}", raw_response=response
                ) from first_error
            raise ScoringError("No JSON object found in response", raw_response=response)

        try:
            data, _ = json.JSONDecoder().raw_decode(text, brace_start)
        except json.JSONDecodeError as e:
            raise ScoringError(f"Invalid JSON in response: {e}", raw_response=response) from e
        return data

    def _validate_and_convert(
        self, data: dict[str, Any], max_marks: float, raw_response: str
    ) -> AIGradingResult:
        """
        Validate parsed data and convert to AIGradingResult.

        Args:
            data: Parsed JSON data.
            max_marks: Maximum marks for the question.
            raw_response: Original response for error reporting.

        Returns:
            Validated AIGradingResult.

        Raises:
            ScoringError: If validation fails.
        """
        is_correct = data.get("isCorrect")
        if not isinstance(is_correct, bool):
            raise ScoringError(
                f"Invalid isCorrect field in AI response: {is_correct!r}",
                raw_response=raw_response,
            )

        marks = data.get("marks")
        if not self._is_number(marks) or marks < 0 or marks > max_marks:
            raise ScoringError(
                f"Invalid marks field in AI response: {marks!r}",
                raw_response=raw_response,
            )

        feedback = data.get("feedback")
        if not isinstance(feedback, str) or not feedback.strip():
            raise ScoringError(
                "Invalid feedback field in AI response",
                raw_response=raw_response,
            )

        confidence = data.get("confidence")
        if not self._is_number(confidence):
            confidence = 0.5

        return AIGradingResult(
            is_correct=is_correct,
            marks=min(float(marks), max_marks),
            explanation=feedback.strip(),
            confidence=min(max(float(confidence), 0.0), 1.0),
            key_points_found=self._string_list(data.get("keyPointsFound")),
            key_points_missing=self._string_list(data.get("keyPointsMissing")),
        )

    @staticmethod
    def _is_number(value: Any) -> bool:
        """JSON numbers only; booleans and NaN don't count."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value)

    @staticmethod
    def _string_list(value: Any) -> tuple[str, ...]:
        if not isinstance(value, list):
            return ()
        return tuple(str(item) for item in value if item is not None)
