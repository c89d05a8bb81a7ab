"""LLM client abstraction with OpenRouter and Anthropic providers."""

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from openai import OpenAI
from pydantic import BaseModel

from committer.utils.context import IssueContext
from committer.utils.prompts import format_commit_message_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "anthropic/claude-sonnet-4"
DEFAULT_COMMIT_MODEL = "anthropic/claude-3.5-haiku"
FALLBACK_COMMIT_MESSAGE = "AI-generated code changes"


class LLMResponse(BaseModel):
    """LLM response model."""

    content: str
    model: str
    provider: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def generate(
        self,
        prompt: str,
        model: str,
        system_prompt: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Generate a response from the LLM.

        Args:
            prompt: The user prompt.
            model: Model identifier.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.

        Returns:
            LLMResponse with the generated content.
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass


class OpenRouterProvider(BaseLLMProvider):
    """OpenRouter provider using the OpenAI-compatible API."""

    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        """Initialize OpenRouter provider.

        Args:
            api_key: API key. Defaults to OPENROUTER_API_KEY env var.
            base_url: API base URL. Defaults to API_URL env var or OpenRouter.
        """
        self._api_key = api_key or os.environ.get("OPENROUTER_API_KEY", "")
        if not self._api_key:
            raise ValueError("OpenRouter API key is required")

        self._client = OpenAI(
            api_key=self._api_key,
            base_url=base_url or os.environ.get("API_URL", self.BASE_URL),
            default_headers={"X-Title": "Issue Committer"},
        )

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def generate(
        self,
        prompt: str,
        model: str,
        system_prompt: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = self._client.chat.completions.create(
            model=model,
            messages=messages,  # type: ignore[arg-type]
            temperature=temperature,
            max_tokens=max_tokens,
        )

        content = response.choices[0].message.content or ""
        usage = response.usage

        return LLMResponse(
            content=content,
            model=model,
            provider=self.provider_name,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
        )


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Messages API provider."""

    BASE_URL = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"

    def __init__(self, api_key: str | None = None) -> None:
        """Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
        """
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        if not self._api_key:
            raise ValueError("Anthropic API key is required")

        self._client = httpx.Client(
            base_url=self.BASE_URL,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": self.API_VERSION,
                "Content-Type": "application/json",
            },
            timeout=300.0,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def generate(
        self,
        prompt: str,
        model: str,
        system_prompt: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        # OpenRouter-style ids carry a vendor prefix the native API rejects
        model_id = model.removeprefix("anthropic/")
        payload: dict[str, Any] = {
            "model": model_id,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            response = self._client.post("/messages", json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise
        except httpx.ConnectError as e:
            logger.error(f"Anthropic API connection error: {e}")
            raise

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after", "60")
            logger.warning(f"Anthropic API rate limited. Retry after: {retry_after}s")
            raise httpx.HTTPStatusError(
                f"Rate limited. Retry after {retry_after}s",
                request=response.request,
                response=response,
            )

        response.raise_for_status()

        try:
            data = response.json()
        except Exception as e:
            logger.error(f"Failed to parse Anthropic API response: {e}")
            logger.error(f"Response text: {response.text[:500]}")
            raise ValueError(f"Invalid JSON response from Anthropic API: {e}") from e

        blocks = data.get("content") or []
        content = "".join(
            block.get("text", "") for block in blocks if block.get("type") == "text"
        )
        if not content:
            logger.warning("Anthropic API returned empty content")

        usage = data.get("usage", {})
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)

        return LLMResponse(
            content=content,
            model=model_id,
            provider=self.provider_name,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )


class LLMClient:
    """Factory class that selects provider based on config."""

    PROVIDERS: dict[str, type[BaseLLMProvider]] = {
        "openrouter": OpenRouterProvider,
        "anthropic": AnthropicProvider,
    }

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        commit_model: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        """Initialize LLM client.

        Args:
            provider: Provider name. Defaults to LLM_PROVIDER env var, then
                anthropic if ANTHROPIC_API_KEY is set, else openrouter.
            model: Code generation model. Defaults to MODEL env var.
            commit_model: Commit message model. Defaults to COMMIT_MODEL env var.
            max_retries: Maximum number of retries on failure.
            retry_delay: Initial delay between retries (exponential backoff).
        """
        provider_name = provider or os.environ.get("LLM_PROVIDER")
        if not provider_name:
            provider_name = (
                "anthropic" if os.environ.get("ANTHROPIC_API_KEY") else "openrouter"
            )

        if provider_name not in self.PROVIDERS:
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available: {list(self.PROVIDERS.keys())}"
            )

        self._provider = self.PROVIDERS[provider_name]()
        self._model = model or os.environ.get("MODEL", DEFAULT_MODEL)
        self._commit_model = commit_model or os.environ.get(
            "COMMIT_MODEL", DEFAULT_COMMIT_MODEL
        )
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._total_tokens_used = 0

        logger.info(f"Using {provider_name} with model {self._model}")

    @property
    def provider(self) -> BaseLLMProvider:
        """Get the underlying provider."""
        return self._provider

    @property
    def model(self) -> str:
        return self._model

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all requests."""
        return self._total_tokens_used

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Generate a response with retry logic.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system prompt.
            model: Model override. Defaults to the code generation model.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.

        Returns:
            LLMResponse with the generated content.

        Raises:
            Exception: If all retries fail.
        """
        model = model or self._model
        last_error: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                response = self._provider.generate(
                    prompt=prompt,
                    model=model,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
                self._total_tokens_used += response.total_tokens

                logger.info(
                    f"LLM response: {response.total_tokens} tokens "
                    f"(total: {self._total_tokens_used})"
                )
                return response

            except httpx.HTTPStatusError as e:
                last_error = e
                # Longer delay for rate limiting
                if e.response.status_code == 429:
                    retry_after = e.response.headers.get("retry-after")
                    delay = int(retry_after) if retry_after else 60
                    logger.warning(
                        f"Rate limited (attempt {attempt + 1}/{self._max_retries}). "
                        f"Waiting {delay}s..."
                    )
                else:
                    delay = self._retry_delay * (2**attempt)
                    logger.warning(
                        f"HTTP error {e.response.status_code} "
                        f"(attempt {attempt + 1}/{self._max_retries}): {e}. "
                        f"Retrying in {delay}s..."
                    )
                time.sleep(delay)

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    f"Connection error (attempt {attempt + 1}/{self._max_retries}): "
                    f"{e}. Retrying in {delay}s..."
                )
                time.sleep(delay)

            except Exception as e:
                last_error = e
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    f"LLM request failed (attempt {attempt + 1}/{self._max_retries}): "
                    f"{e}. Retrying in {delay}s..."
                )
                time.sleep(delay)

        logger.error(
            f"All {self._max_retries} LLM retries failed. Last error: {last_error}"
        )
        raise last_error or Exception("All retries failed")

    def generate_code(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate a structured code response.

        Args:
            prompt: The code generation prompt.
            system_prompt: Optional system prompt.
            max_tokens: Maximum tokens. Defaults to MAX_TOKENS env var.

        Returns:
            Raw response text.
        """
        response = self.generate(
            prompt=prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens or int(os.environ.get("MAX_TOKENS", "16000")),
        )
        return response.content

    def generate_commit_message(self, files: list[str], issue: IssueContext) -> str:
        """Generate a one-line commit message with the commit model.

        Args:
            files: Paths of the changed files.
            issue: The task context.

        Returns:
            The commit message, or a generic fallback if generation fails.
        """
        prompt = format_commit_message_prompt(files, issue)
        try:
            response = self.generate(
                prompt=prompt,
                model=self._commit_model,
                max_tokens=200,
            )
        except Exception as e:
            logger.warning(f"Failed to generate commit message: {e}")
            return FALLBACK_COMMIT_MESSAGE

        message = response.content.strip().strip("`\"'").strip()
        return message or FALLBACK_COMMIT_MESSAGE
