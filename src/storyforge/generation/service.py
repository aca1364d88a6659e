"""
Story Generation Service

Runs one generation call end to end:

1. Serve repeated foundation requests from the generation cache (zero cost)
2. Optimize the story context for the operation
3. Check the balance covers the estimated credits for the prompt as sent
4. Call the provider
5. Charge the usage the provider actually reported
6. Cache the new foundation

Balances are passed in and returned; persisting them is the caller's job.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..cache.generation_cache import CachedGeneration, GenerationCache, create_generation_cache
from ..config import StoryforgeConfig, get_config
from ..context_optimization.compression import get_optimal_compression_settings
from ..context_optimization.models import OperationKind, OptimizationOptions, OptimizationResult, StoryContext
from ..context_optimization.optimizer import OPERATION_PRESETS, ContextOptimizer
from ..credit_accounting.config import SubscriptionTier
from ..credit_accounting.cost_estimator import ComplexityTier, OperationCategory
from ..credit_accounting.ledger import CostLedger
from ..credit_accounting.models import CreditLedgerEntry
from ..errors import CacheError, InsufficientCreditsError, ProviderError, StoryforgeError, ValidationError
from ..observability.logging import generate_trace_id, get_trace_id, trace_span
from ..providers.base import BaseProvider
from ..token_optimization.counter import estimate_tokens

logger = logging.getLogger(__name__)

OPERATION_INSTRUCTIONS: dict[OperationKind, str] = {
    OperationKind.FOUNDATION: "Develop the story foundation: world, central conflict and character arcs.",
    OperationKind.CHAPTER: "Write the next chapter, continuing from the context below.",
    OperationKind.IMPROVEMENT: "Revise the story below for pacing, clarity and voice.",
}


class GenerationRequest(BaseModel):
    """One generation call on behalf of a user."""

    user_id: str = Field(..., min_length=1)
    balance: int = Field(..., ge=0, description="Credit balance before the call")
    subscription_tier: SubscriptionTier = Field(default=SubscriptionTier.BASIC)
    context: StoryContext
    operation: OperationKind = Field(default=OperationKind.CHAPTER)
    complexity: ComplexityTier = Field(default=ComplexityTier.MEDIUM)
    chapter_number: int | None = Field(default=None, ge=0, description="Window the context for this chapter")
    options: OptimizationOptions | None = Field(default=None, description="Overrides the tier preset")
    max_output_tokens: int | None = Field(default=None, ge=1, description="Defaults to the operation estimate")
    use_cache: bool = Field(default=True)


class GenerationOutcome(BaseModel):
    """Generated content with the optimization and charge behind it."""

    content: str
    model: str
    from_cache: bool = False
    optimization: OptimizationResult | None = None
    ledger_entry: CreditLedgerEntry | None = None
    credits_charged: int = Field(default=0, ge=0)
    balance: int = Field(..., ge=0, description="Balance after the call")


class StoryGenerationService:
    """Optimize, generate and charge in one call."""

    def __init__(
        self,
        provider: BaseProvider,
        optimizer: ContextOptimizer | None = None,
        ledger: CostLedger | None = None,
        cache: GenerationCache | None = None,
    ):
        """
        Args:
            provider: Model client
            optimizer: Context optimizer (global config if not provided)
            ledger: Credit ledger (global config if not provided)
            cache: Generation cache; None disables caching
        """
        self.provider = provider
        self.optimizer = optimizer or ContextOptimizer()
        self.ledger = ledger or CostLedger()
        self.cache = cache

    @classmethod
    def from_config(cls, provider: BaseProvider, config: StoryforgeConfig | None = None) -> "StoryGenerationService":
        """
        Build a service wired from configuration.

        Compression, billing and cache sections configure their components;
        the cache is omitted when disabled.
        """
        config = config or get_config()
        return cls(
            provider,
            optimizer=ContextOptimizer(config=config.compression),
            ledger=CostLedger(config=config.billing),
            cache=create_generation_cache(config.cache),
        )

    async def generate(self, request: GenerationRequest | dict[str, Any]) -> GenerationOutcome:
        """
        Generate content for a request.

        Raises:
            ValidationError: If the request is invalid
            InsufficientCreditsError: If the balance can't cover the estimate
            ProviderError: If the provider call fails
        """
        if not isinstance(request, GenerationRequest):
            try:
                request = GenerationRequest.model_validate(request)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e, "generation request") from e

        if get_trace_id() is None:
            generate_trace_id()

        cached = await self._lookup_cache(request)
        if cached is not None:
            logger.info(
                f"Serving {request.operation.value} for {request.user_id} from cache",
                extra={"user_id": request.user_id, "title": request.context.title},
            )
            return GenerationOutcome(
                content=cached.content,
                model=cached.model,
                from_cache=True,
                balance=request.balance,
            )

        with trace_span("generation.optimize", logger):
            optimization = self._optimize(request)

        prompt = f"{OPERATION_INSTRUCTIONS[request.operation]}\n\n{optimization.compressed_text}"
        prompt_tokens = estimate_tokens(prompt)

        estimate = self.ledger.estimate_cost(
            OperationCategory(request.operation.value),
            request.complexity,
            input_tokens=prompt_tokens,
        )
        if not self.ledger.can_afford(request.balance, estimate):
            raise InsufficientCreditsError(
                balance=request.balance,
                credits_required=estimate.credits_required,
                details={
                    "user_id": request.user_id,
                    "operation": request.operation.value,
                    "prompt_tokens": prompt_tokens,
                },
            )

        max_tokens = request.max_output_tokens or estimate.output_tokens

        with trace_span("generation.provider", logger):
            try:
                response = await self.provider.complete(prompt, max_tokens)
            except StoryforgeError:
                raise
            except Exception as e:
                raise ProviderError(
                    f"Provider {self.provider.name} failed: {e}",
                    details={"provider": self.provider.name},
                ) from e

        entry = self.ledger.record_charge(
            request.user_id,
            request.balance,
            response.usage,
            request.subscription_tier,
        )

        await self._store_cache(
            request,
            CachedGeneration(content=response.content, model=response.model, usage=response.usage),
        )

        return GenerationOutcome(
            content=response.content,
            model=response.model,
            optimization=optimization,
            ledger_entry=entry,
            credits_charged=entry.credits,
            balance=entry.resulting_balance,
        )

    def _optimize(self, request: GenerationRequest) -> OptimizationResult:
        options = request.options
        if options is None:
            preset = get_optimal_compression_settings(request.subscription_tier, OPERATION_PRESETS[request.operation])
            options = OptimizationOptions(
                **preset.model_dump(),
                prioritize_characters=request.operation == OperationKind.CHAPTER,
                prioritize_plot=request.operation == OperationKind.FOUNDATION,
                maintain_tone=True,
            )
        if request.chapter_number is not None:
            return self.optimizer.optimize_chapter_context(request.context, request.chapter_number, options)
        return self.optimizer.optimize_story_context(request.context, options)

    def _cacheable(self, request: GenerationRequest) -> bool:
        return self.cache is not None and request.use_cache and request.operation == OperationKind.FOUNDATION

    async def _lookup_cache(self, request: GenerationRequest) -> CachedGeneration | None:
        if not self._cacheable(request):
            return None
        context = request.context
        return await self.cache.lookup(context.genre, context.premise, context.title)

    async def _store_cache(self, request: GenerationRequest, generation: CachedGeneration) -> None:
        if not self._cacheable(request):
            return
        context = request.context
        try:
            await self.cache.store(context.genre, context.premise, context.title, generation)
        except CacheError as e:
            # The charge already happened; a cache miss next time is acceptable
            logger.error(f"Failed to cache generation: {e}", extra={"user_id": request.user_id, **e.details})
