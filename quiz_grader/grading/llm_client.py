"""
LLM Client for OpenAI-compatible endpoints.

Provides an async wrapper around the OpenAI SDK with a hard per-request
timeout and error classification. Retrying is the caller's job: the AI
grader retries on malformed responses as well as on transport failures.
"""

import asyncio
import logging

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from quiz_grader.config import Settings, get_settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when LLM API call fails."""

    def __init__(self, message: str, cause: Exception | None = None, retryable: bool = False):
        self.cause = cause
        self.retryable = retryable
        super().__init__(message)


class LLMClient:
    """
    Client for an OpenAI-compatible chat completions API.

    The SDK client is created lazily so that an unconfigured client can
    still be constructed and asked whether it is usable.
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the LLM client.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
        """
        self._settings = settings or get_settings()
        self._client: AsyncOpenAI | None = None
        self._timeout = self._settings.timeout_ms / 1000

    @property
    def is_configured(self) -> bool:
        """Whether an API key is available."""
        return self._settings.ai_enabled

    @property
    def model(self) -> str:
        return self._settings.llm_model

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.is_configured:
                raise LLMError("LLM_API_KEY is not set; AI grading is disabled")
            self._client = AsyncOpenAI(
                api_key=self._settings.llm_api_key,
                base_url=self._settings.llm_base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        return self._client

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Generate a response from the LLM.

        Args:
            system_prompt: System message defining the LLM's role.
            user_prompt: User message with the actual request.
            temperature: Override temperature (uses config default if None).
            max_tokens: Maximum tokens in response (uses config default if None).

        Returns:
            The generated text response.

        Raises:
            LLMError: If the request fails, times out or returns nothing.
        """
        client = self._get_client()
        temp = temperature if temperature is not None else self._settings.llm_temperature
        tokens = max_tokens or self._settings.max_response_tokens

        messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self._settings.llm_model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=temp,
                    max_tokens=tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(
                f"LLM request timed out after {self._settings.timeout_ms} ms",
                cause=e,
                retryable=True,
            ) from e
        except RateLimitError as e:
            raise LLMError("Rate limit exceeded", cause=e, retryable=True) from e
        except APIConnectionError as e:
            raise LLMError(f"Connection failed: {e}", cause=e, retryable=True) from e
        except APIStatusError as e:
            # Client errors other than 429 won't fix themselves
            retryable = not (400 <= e.status_code < 500)
            raise LLMError(f"API error: {e.message}", cause=e, retryable=retryable) from e

        if response.choices and response.choices[0].message.content:
            return response.choices[0].message.content

        raise LLMError("Empty response from LLM", retryable=True)

    async def health_check(self) -> bool:
        """
        Check if the API is reachable.

        Returns:
            True if API is healthy, False otherwise.
        """
        try:
            client = self._get_client()
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self._settings.llm_model,
                    messages=[{"role": "user", "content": "ping"}],
                    max_tokens=5,
                ),
                timeout=self._timeout,
            )
            return bool(response.choices)
        except Exception as e:
            logger.warning("LLM health check failed: %s", e)
            return False
