"""
Base Provider Interface

Abstract interface for the language-model client used by story generation.
Concrete clients (Anthropic, OpenAI, ...) live with the application that
deploys the engine; the engine only needs the reported usage.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from ..credit_accounting.models import TokenUsage


class ProviderConfig(BaseModel):
    """Base configuration for providers."""

    model: str = Field(..., description="Model identifier")
    timeout: float = Field(60.0, ge=1.0, description="Request timeout in seconds")
    temperature: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature")


class CompletionResponse(BaseModel):
    """Standardized completion response."""

    content: str = Field(..., description="Generated content")
    usage: TokenUsage = Field(..., description="Token usage reported by the provider")
    model: str = Field(..., description="Model used")
    finish_reason: str = Field("stop", description="Why generation stopped")
    latency_ms: float = Field(0.0, ge=0.0, description="Request latency in milliseconds")


class BaseProvider(ABC):
    """
    Abstract base class for model providers.

    Implementations must report the actual token usage of every call; that
    usage is what gets charged.
    """

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'anthropic')."""

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: int | None = None) -> CompletionResponse:
        """
        Generate a completion for the prompt.

        Args:
            prompt: Optimized prompt text
            max_tokens: Maximum tokens to generate

        Returns:
            Completion with the reported token usage

        Raises:
            ProviderError: If the call fails
        """

    async def close(self) -> None:
        """Clean up resources. Override if needed."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, model={self.config.model})"
