"""
OpenAI provider implementation.
"""
import logging
from typing import Optional, Dict
from openai import (
    OpenAI,
    APIError,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    RateLimitError,
)

from app.core.config import OPENAI_API_KEY, OPENAI_BASE_URL
from app.llm.provider import LLMProvider, LLMResponse, ProviderError
from app.resilience.errors import ErrorType

logger = logging.getLogger(__name__)

# Model pricing per 1M tokens (input/output)
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
}


def translate_openai_error(error: APIError) -> ProviderError:
    """Map an SDK exception onto the error taxonomy."""
    if isinstance(error, APITimeoutError):
        error_type = ErrorType.TIMEOUT
    elif isinstance(error, APIConnectionError):
        error_type = ErrorType.NETWORK
    elif isinstance(error, RateLimitError):
        error_type = ErrorType.RATE_LIMIT
    elif isinstance(error, AuthenticationError):
        error_type = ErrorType.MISSING_API_KEY
    elif isinstance(error, (BadRequestError, NotFoundError)):
        error_type = ErrorType.VALIDATION
    elif isinstance(error, APIStatusError) and error.status_code >= 500:
        error_type = ErrorType.SERVER_ERROR
    else:
        error_type = ErrorType.UNKNOWN
    return ProviderError(f"OpenAI API error: {error}", error_type=error_type)


class OpenAIProvider(LLMProvider):
    """OpenAI provider using official OpenAI SDK."""

    name = "openai"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = OPENAI_BASE_URL):
        """Initialize OpenAI client."""
        self.api_key = api_key or OPENAI_API_KEY
        if not self.api_key:
            raise ProviderError("OPENAI_API_KEY not configured", error_type=ErrorType.MISSING_API_KEY)
        # Retries are owned by the match queue's retry policy
        self.client = OpenAI(api_key=self.api_key, base_url=base_url, max_retries=0)
        logger.info("OpenAI provider initialized")

    def chat(
        self,
        messages: list[Dict[str, str]],
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        json_mode: bool = False,
        **kwargs
    ) -> LLMResponse:
        """Generate a chat completion."""
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens or 2000,
                timeout=timeout,
                **kwargs
            )
        except APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise translate_openai_error(e) from e

        if not response.choices:
            raise ProviderError("OpenAI returned no choices", error_type=ErrorType.NO_OBJECT)

        content = response.choices[0].message.content or ""
        tokens_in = response.usage.prompt_tokens if response.usage else 0
        tokens_out = response.usage.completion_tokens if response.usage else 0

        return LLMResponse(
            content=content,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            model=model,
            cost_estimate=self.estimate_cost(tokens_in, tokens_out, model),
            metadata={
                "finish_reason": response.choices[0].finish_reason,
            }
        )

    def estimate_cost(self, tokens_in: int, tokens_out: int, model: str) -> float:
        """Estimate cost in USD."""
        pricing = MODEL_PRICING.get(model, {"input": 0.15, "output": 0.60})
        cost_input = (tokens_in / 1_000_000) * pricing["input"]
        cost_output = (tokens_out / 1_000_000) * pricing["output"]
        return cost_input + cost_output
