"""
Storyforge - Test Configuration and Shared Fixtures

Provides shared story contexts, component fixtures and a scripted provider
for unit and integration tests.
"""

import os
from collections.abc import Generator
from typing import Any

import pytest

from storyforge.config import loader
from storyforge.context_optimization import (
    CompressionConfig,
    CompressionEngine,
    ContextOptimizer,
    StoryContextAnalyzer,
)
from storyforge.credit_accounting import BillingConfig, CostLedger, TokenUsage
from storyforge.providers import BaseProvider, CompletionResponse, ProviderConfig

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"


class ScriptedProvider(BaseProvider):
    """Provider returning a fixed completion and recording prompts."""

    def __init__(
        self,
        content: str = "The lighthouse keeper climbed the stairs one last time.",
        usage: TokenUsage | None = None,
        error: Exception | None = None,
    ) -> None:
        super().__init__(ProviderConfig(model="test-model"))
        self.content = content
        self.usage = usage or TokenUsage(input_tokens=1000, output_tokens=500)
        self.error = error
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return "scripted"

    async def complete(self, prompt: str, max_tokens: int | None = None) -> CompletionResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return CompletionResponse(content=self.content, usage=self.usage, model=self.config.model)


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the configuration singleton after each test to prevent state leakage."""
    yield
    loader._config_instance = None


@pytest.fixture
def compression_config() -> CompressionConfig:
    return CompressionConfig()


@pytest.fixture
def engine(compression_config: CompressionConfig) -> CompressionEngine:
    """Fresh engine with its own statistics."""
    return CompressionEngine(config=compression_config)


@pytest.fixture
def analyzer(compression_config: CompressionConfig) -> StoryContextAnalyzer:
    return StoryContextAnalyzer(config=compression_config)


@pytest.fixture
def optimizer(compression_config: CompressionConfig) -> ContextOptimizer:
    return ContextOptimizer(config=compression_config)


@pytest.fixture
def ledger() -> CostLedger:
    return CostLedger(BillingConfig())


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def provider_factory() -> type[ScriptedProvider]:
    """Build providers with custom content, usage or errors."""
    return ScriptedProvider


@pytest.fixture
def simple_story() -> dict[str, Any]:
    """Three characters (importance 9, 5, 2), one critical and one minor plot point."""
    return {
        "title": "The Lantern Road",
        "genre": "Fantasy",
        "premise": "A young cartographer maps a road that only appears at night.",
        "story_tone": "wistful",
        "current_chapter": 3,
        "total_chapters": 12,
        "previous_content": [
            "Mira found the lantern in her grandmother's attic. It glowed when she whispered the old rhyme.",
            "The road appeared at midnight, paved with silver stones. Mira followed it past the mill.",
        ],
        "characters": [
            {
                "name": "Mira",
                "role": "protagonist",
                "description": "A careful cartographer with a borrowed lantern.",
                "importance": 9,
                "last_mentioned": 2,
            },
            {
                "name": "Tobin",
                "role": "supporting",
                "description": "The miller's son who keeps her secrets.",
                "importance": 5,
                "last_mentioned": 2,
            },
            {
                "name": "Warden Hale",
                "role": "antagonist",
                "description": "Guardian of the road's toll gate.",
                "importance": 2,
                "last_mentioned": 1,
            },
        ],
        "plot_points": [
            {
                "id": "p1",
                "description": "Mira discovers the nocturnal road",
                "chapter": 1,
                "importance": "critical",
            },
            {
                "id": "p2",
                "description": "Tobin loses his cap",
                "chapter": 2,
                "importance": "minor",
                "dependencies": ["p1"],
            },
        ],
        "current_scene": "Mira reaches the toll gate as the moon rises.",
    }


@pytest.fixture
def complex_story() -> dict[str, Any]:
    """Eight characters and five critical plot points."""
    names = ["Aldric", "Brenna", "Cassius", "Delphine", "Emeric", "Fenna", "Gideon", "Halvard"]
    return {
        "title": "Crown of Ash",
        "genre": "Fantasy",
        "premise": "Five houses vie for a throne that burns whoever sits on it.",
        "story_tone": "grim",
        "characters": [
            {
                "name": name,
                "role": "supporting",
                "description": f"{name} leads a minor house and trusts no one.",
                "importance": 10 - index,
            }
            for index, name in enumerate(names)
        ],
        "plot_points": [
            {
                "id": f"c{index}",
                "description": f"House {names[index]} betrays the regent council",
                "chapter": index + 1,
                "importance": "critical",
            }
            for index in range(5)
        ],
        "previous_content": [
            "The regent fell silent when the crown ignited. Aldric stepped back from the dais. "
            "Then Brenna drew her knife because the council had already decided her fate. "
            "Outside the hall the rain kept falling on the ash.",
        ],
    }


@pytest.fixture
def narrative_text() -> str:
    """Multi-paragraph narrative with filler, repetition and dialogue."""
    return (
        "It was very dark in the forest when Mira arrived. She said nothing to Tobin. "
        "The lantern flickered because the wind was really strong. Then the road appeared "
        "suddenly beneath her feet. The lantern flickered because the wind was really strong.\n\n"
        'Tobin whispered, "We should turn back before the warden sees us." Mira shook her head '
        "and walked toward the gate. In the distance a bell rang twice. After a long silence "
        "the gate creaked open and a cold light spilled across the silver stones.\n\n"
        "The atmosphere was cold and the mood was tense. Mira said with a quiet voice that "
        "she would pay the toll in order to reach the far side of the valley."
    )
