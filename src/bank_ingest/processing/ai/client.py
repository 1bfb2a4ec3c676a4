"""Anthropic API client wrapper with a single fixed-delay retry."""

import json
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console

from bank_ingest.processing.ai.models import AIUsageStats
from bank_ingest.utils.logging_config import get_logger

logger = get_logger(__name__)
_console = Console(stderr=True)  # stderr keeps stdout clean for the summary table


class AIClientError(Exception):
    """Base exception for AI client errors."""


class APIKeyNotFoundError(AIClientError):
    """Raised when API key is not found."""


@dataclass
class AIClientConfig:
    """Configuration for the AI client.

    Attributes:
        api_key_env: Environment variable name for API key.
        model: Model to use for requests.
        max_tokens: Maximum tokens for response.
        max_retries: Retries after the first failed attempt.
        retry_delay: Fixed delay in seconds before a retry.
        timeout: Request timeout in seconds.
    """

    api_key_env: str = "ANTHROPIC_API_KEY"
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 1024
    max_retries: int = 1
    retry_delay: float = 1.0
    timeout: float = 60.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AIClientConfig":
        defaults = cls()
        return cls(
            api_key_env=str(data.get("api_key_env", defaults.api_key_env)),
            model=str(data.get("model", defaults.model)),
            max_tokens=int(data.get("max_tokens", defaults.max_tokens)),
            max_retries=max(0, int(data.get("max_retries", defaults.max_retries))),
            retry_delay=float(data.get("retry_delay", defaults.retry_delay)),
            timeout=float(data.get("timeout", defaults.timeout)),
        )


@dataclass
class AIClient:
    """Wrapper for the Anthropic API.

    This client provides:
    - Lazy initialization (only connects when first used)
    - One retry after a fixed delay
    - JSON extraction from free-form responses
    - Token usage tracking
    """

    config: AIClientConfig = field(default_factory=AIClientConfig)
    usage_stats: AIUsageStats = field(default_factory=AIUsageStats)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    _client: Any = field(default=None, init=False, repr=False)
    _initialized: bool = field(default=False, init=False)

    @property
    def is_available(self) -> bool:
        """Check if AI client can be initialized (API key exists)."""
        return bool(os.environ.get(self.config.api_key_env))

    def _ensure_initialized(self) -> None:
        """Lazily initialize the Anthropic client."""
        if self._initialized:
            return

        api_key = os.environ.get(self.config.api_key_env)
        if not api_key:
            raise APIKeyNotFoundError(
                f"API key not found in environment variable: {self.config.api_key_env}"
            )

        try:
            import anthropic

            # Retries are handled by send_message, not the SDK
            self._client = anthropic.Anthropic(api_key=api_key, max_retries=0)
            self._initialized = True
            logger.info(f"AI client initialized with model: {self.config.model}")
        except ImportError as err:
            raise AIClientError(
                "anthropic package not installed. Run: pip install anthropic"
            ) from err

    def send_message(self, system_prompt: str, user_prompt: str) -> str:
        """Send a message and return the response text.

        Args:
            system_prompt: The system prompt.
            user_prompt: The user prompt.

        Returns:
            The text of the first content block ("" if none).

        Raises:
            APIKeyNotFoundError: If no API key is configured.
            AIClientError: If the request fails after the retry.
        """
        self._ensure_initialized()

        attempts = self.config.max_retries + 1
        for attempt in range(attempts):
            try:
                response = self._client.messages.create(
                    model=self.config.model,
                    max_tokens=self.config.max_tokens,
                    system=system_prompt,
                    messages=[{"role": "user", "content": user_prompt}],
                    timeout=self.config.timeout,
                )
            except Exception as e:
                self.usage_stats.failed_requests += 1
                if attempt < attempts - 1:
                    _console.print(
                        f"[yellow]Request failed, retrying in {self.config.retry_delay:.0f}s...[/yellow]"
                    )
                    logger.warning(f"Request failed: {e}, retrying in {self.config.retry_delay}s")
                    self.sleep(self.config.retry_delay)
                    continue
                raise AIClientError(f"Request failed after {attempt + 1} attempts: {e}") from e

            content = response.content[0].text if response.content else ""
            input_tokens = response.usage.input_tokens
            output_tokens = response.usage.output_tokens
            self.usage_stats.add_request(input_tokens, output_tokens)
            logger.debug(f"Request completed: {input_tokens} in, {output_tokens} out")
            return content

        raise AIClientError("Request failed: no attempts made")

    def parse_json_response(self, response: str) -> dict[str, Any] | list[Any]:
        """Parse a JSON response from the AI.

        Handles cases where the response contains extra text around the JSON.

        Args:
            response: The response string.

        Returns:
            Parsed JSON as a dictionary or list.

        Raises:
            ValueError: If JSON cannot be parsed.
        """
        try:
            result = json.loads(response)
            if isinstance(result, (dict, list)):
                return result
            raise ValueError(f"JSON parsed to unexpected type: {type(result)}")
        except json.JSONDecodeError:
            pass

        starts = [i for i in (response.find("{"), response.find("[")) if i != -1]
        if not starts:
            raise ValueError(f"No JSON found in response: {response[:100]}")
        start = min(starts)

        depth = 0
        for i, char in enumerate(response[start:], start):
            if char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    try:
                        result = json.loads(response[start : i + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(result, (dict, list)):
                        return result
                    break

        raise ValueError(f"Could not parse JSON from response: {response[:200]}")

    def get_usage_summary(self) -> str:
        """Human-readable usage summary."""
        stats = self.usage_stats
        return (
            f"AI Usage Summary:\n"
            f"  Total requests: {stats.total_requests}\n"
            f"  Failed requests: {stats.failed_requests}\n"
            f"  Input tokens: {stats.total_input_tokens:,}\n"
            f"  Output tokens: {stats.total_output_tokens:,}\n"
            f"  Categorizations: {stats.categorizations_performed}"
        )
