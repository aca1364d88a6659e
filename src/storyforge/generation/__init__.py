"""
Generation Module

End-to-end generation: cache check, context optimization, affordability
check, provider call and credit charge.
"""

from .service import GenerationOutcome, GenerationRequest, StoryGenerationService

__all__ = [
    "GenerationOutcome",
    "GenerationRequest",
    "StoryGenerationService",
]
