"""Shared OpenRouter model for all agents.

Agents are declared without a model and receive `get_model()` at run time, so
a missing API key only fails the AI flow that needs it.
"""

import logging
import re

from pydantic_ai.models import Model
from pydantic_ai.models.openrouter import OpenRouterModel, OpenRouterModelSettings
from pydantic_ai.providers.openrouter import OpenRouterProvider

from src.core.config import settings


logger = logging.getLogger(__name__)

# Regex pattern to strip special tokens from LLM output
# These tokens can leak from various models (Qwen, DeepSeek, etc.)
_SPECIAL_TOKEN_PATTERN = re.compile(
    r"<\|(?:FunctionCallEnd|endoftext|im_start|im_end|pad|eos|bos|assistant|user|system)\|>",
    re.IGNORECASE,
)


class _ModelState:
    """Singleton state for the model instance."""

    instance: Model | None = None


def _create_model() -> Model:
    api_key = settings.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)

    # Configure provider routing if specified
    model_settings: OpenRouterModelSettings | None = None
    if settings.model_provider:
        model_settings = OpenRouterModelSettings(openrouter_provider={"only": [settings.model_provider]})

    logger.info("Creating OpenRouter model", extra={"model_id": settings.model_id})
    return OpenRouterModel(
        model_name=settings.model_id,
        provider=provider,
        settings=model_settings,
    )


def get_model() -> Model:
    """Get or create the model instance.

    Raises:
        ValueError: If the OpenRouter API key is not configured
    """
    if _ModelState.instance is None:
        _ModelState.instance = _create_model()
    return _ModelState.instance


def sanitize_llm_output(text: str) -> str:
    """Remove leaked special tokens from LLM output.

    Line breaks are kept since replies are rendered as Markdown.
    """
    sanitized = _SPECIAL_TOKEN_PATTERN.sub("", text)
    sanitized = re.sub(r"[ \t]{2,}", " ", sanitized)
    return sanitized.strip()
