"""AI provider configuration for CostScan.

Resolves which document-analysis provider (if any) is used. Resolution runs
once per process and yields either a validated AIConfig or None. None is a
supported configuration: the pipeline then runs in simulation mode.

Precedence:
1. AI_PROVIDER set explicitly -> that provider, using its own API key only.
   A missing key for the chosen provider means "not configured".
2. AI_PROVIDER unset -> first provider with a key, in PROVIDER_PRECEDENCE order.
3. No keys at all -> None.
"""

from enum import Enum
from functools import lru_cache
from typing import Dict, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from config.errors import ErrorCode, ValidationError
from config.settings import settings

logger = structlog.get_logger(__name__)


class AIProvider(str, Enum):
    """Supported document-analysis providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


PROVIDER_PRECEDENCE = (AIProvider.OPENAI, AIProvider.ANTHROPIC, AIProvider.GOOGLE)

DEFAULT_MODELS: Dict[AIProvider, str] = {
    AIProvider.OPENAI: "gpt-4o",
    AIProvider.ANTHROPIC: "claude-3-5-sonnet-latest",
    AIProvider.GOOGLE: "gemini-1.5-pro",
}


class AIConfig(BaseModel):
    """Validated provider configuration."""

    model_config = ConfigDict(frozen=True)

    provider: AIProvider = Field(..., description="Provider backing document analysis")
    model: str = Field(..., min_length=1, description="Model name passed to the provider")
    api_key: str = Field(..., min_length=1, repr=False, description="Provider API key")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)


def _provider_keys() -> Dict[str, Optional[str]]:
    """Look up every provider key through the secrets module."""
    from config.secrets import get_provider_api_keys

    return get_provider_api_keys()


def resolve_ai_config(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    api_keys: Optional[Dict[str, Optional[str]]] = None,
    temperature: Optional[float] = None,
) -> Optional[AIConfig]:
    """Resolve the AI configuration.

    Args:
        provider: Explicit provider name (defaults to settings.ai_provider).
        model: Explicit model name (defaults to settings.ai_model, then the
            provider's default model).
        api_keys: Provider name -> key mapping (defaults to the secrets module).
        temperature: Sampling temperature (defaults to settings.llm_temperature).

    Returns:
        AIConfig, or None when no provider is usable.

    Raises:
        ValidationError: If an unknown provider name is configured.
    """
    provider = provider if provider is not None else settings.ai_provider
    model = model or settings.ai_model
    keys = api_keys if api_keys is not None else _provider_keys()
    temperature = temperature if temperature is not None else settings.llm_temperature

    if provider:
        name = provider.strip().lower()
        try:
            chosen = AIProvider(name)
        except ValueError:
            raise ValidationError(
                message=f"Unsupported AI provider: {provider}",
                field="AI_PROVIDER",
                details={"supported": [p.value for p in AIProvider]},
                code=ErrorCode.INVALID_FIELD,
            )

        api_key = keys.get(chosen.value)
        if not api_key:
            logger.warning("ai_provider_key_missing", provider=chosen.value)
            return None

        return AIConfig(
            provider=chosen,
            model=model or DEFAULT_MODELS[chosen],
            api_key=api_key,
            temperature=temperature,
        )

    for candidate in PROVIDER_PRECEDENCE:
        api_key = keys.get(candidate.value)
        if api_key:
            logger.info("ai_provider_selected", provider=candidate.value)
            return AIConfig(
                provider=candidate,
                model=model or DEFAULT_MODELS[candidate],
                api_key=api_key,
                temperature=temperature,
            )

    logger.info("ai_not_configured", mode="simulation")
    return None


@lru_cache(maxsize=1)
def get_ai_config() -> Optional[AIConfig]:
    """Process-wide AI configuration, resolved on first use."""
    return resolve_ai_config()
