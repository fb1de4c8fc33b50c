"""LLM service for CostScan.

Provides LangChain chat-model integration for document analysis and the
project assistant. One LLMService wraps one provider (OpenAI, Anthropic or
Google) behind the same generate interface.
"""

from typing import Dict, Any, Optional, List

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from config.ai_config import AIConfig, AIProvider, DEFAULT_MODELS
from config.settings import settings
from config.errors import CostScanError, ErrorCode

logger = structlog.get_logger()


def create_chat_model(
    provider: AIProvider,
    model: str,
    temperature: float,
    api_key: str,
    max_tokens: Optional[int] = None,
) -> BaseChatModel:
    """Create the LangChain chat model for a provider."""
    max_tokens = max_tokens or settings.llm_max_tokens

    if provider == AIProvider.OPENAI:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=model, temperature=temperature, api_key=api_key, max_tokens=max_tokens)

    if provider == AIProvider.ANTHROPIC:
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(model=model, temperature=temperature, api_key=api_key, max_tokens=max_tokens)

    if provider == AIProvider.GOOGLE:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            temperature=temperature,
            google_api_key=api_key,
            max_output_tokens=max_tokens,
        )

    raise CostScanError(
        code=ErrorCode.LLM_ERROR,
        message=f"Unsupported provider: {provider}",
        details={"provider": str(provider)}
    )


class LLMService:
    """Service for LLM operations using LangChain.

    Provides a wrapper around the provider's chat model with token tracking
    and error handling.
    """

    def __init__(
        self,
        provider: AIProvider,
        api_key: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None
    ):
        """Initialize LLMService.

        Args:
            provider: Provider backing this service.
            api_key: Provider API key.
            model: Model name (default: the provider's default model).
            temperature: Temperature (default from settings).
        """
        self.provider = AIProvider(provider)
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.provider]
        self.temperature = temperature if temperature is not None else settings.llm_temperature

        self._client: Optional[BaseChatModel] = None
        self._total_tokens_used = 0

    @classmethod
    def from_config(cls, config: AIConfig) -> "LLMService":
        return cls(
            provider=config.provider,
            api_key=config.api_key,
            model=config.model,
            temperature=config.temperature,
        )

    @property
    def client(self) -> BaseChatModel:
        """Get LangChain chat model (lazy initialization)."""
        if self._client is None:
            self._client = create_chat_model(
                provider=self.provider,
                model=self.model,
                temperature=self.temperature,
                api_key=self.api_key
            )
        return self._client

    @property
    def total_tokens_used(self) -> int:
        """Get total tokens used across all calls."""
        return self._total_tokens_used

    @staticmethod
    def _tokens_from(response: Any) -> int:
        usage = getattr(response, "usage_metadata", None)
        if isinstance(usage, dict) and usage.get("total_tokens"):
            return int(usage["total_tokens"])
        metadata = getattr(response, "response_metadata", None)
        if isinstance(metadata, dict):
            usage = metadata.get("token_usage") or metadata.get("usage") or {}
            if isinstance(usage, dict):
                return int(usage.get("total_tokens", 0) or 0)
        return 0

    @staticmethod
    def _content_text(content: Any) -> str:
        """Flatten list-style message content into text."""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, str):
                    parts.append(part)
                elif isinstance(part, dict) and part.get("type") == "text":
                    parts.append(part.get("text", ""))
            return "".join(parts)
        return str(content or "")

    async def generate(
        self,
        messages: List[BaseMessage],
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response from the LLM.

        Args:
            messages: List of LangChain messages.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.

        Raises:
            CostScanError: If LLM call fails.
        """
        try:
            kwargs = {}
            if max_tokens:
                kwargs["max_tokens"] = max_tokens

            response = await self.client.ainvoke(messages, **kwargs)

            tokens_used = self._tokens_from(response)
            self._total_tokens_used += tokens_used
            content = self._content_text(response.content)

            logger.info(
                "llm_generated",
                provider=self.provider.value,
                model=self.model,
                tokens_used=tokens_used,
                content_length=len(content)
            )

            return {
                "content": content,
                "tokens_used": tokens_used
            }

        except CostScanError:
            raise
        except Exception as e:
            error_msg = str(e)
            lowered = error_msg.lower()

            if "rate_limit" in lowered or "rate limit" in lowered or "429" in lowered:
                raise CostScanError(
                    code=ErrorCode.LLM_RATE_LIMIT,
                    message=f"{self.provider.value} rate limit exceeded",
                    details={"original_error": error_msg}
                )
            elif "context_length" in lowered or "maximum context" in lowered or "too many tokens" in lowered:
                raise CostScanError(
                    code=ErrorCode.LLM_CONTEXT_TOO_LONG,
                    message="Input too long for model context",
                    details={"original_error": error_msg}
                )
            else:
                raise CostScanError(
                    code=ErrorCode.LLM_ERROR,
                    message=f"LLM generation failed: {error_msg}",
                    details={"original_error": error_msg, "provider": self.provider.value}
                )

    async def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> Dict[str, Any]:
        """Generate a response with system prompt.

        Args:
            system_prompt: System prompt for context.
            user_message: User message/query.
            max_tokens: Optional max tokens for response.

        Returns:
            Dict with content and token usage.
        """
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_message)
        ]
        return await self.generate(messages, max_tokens)
