"""
Search Strategy Selection

Static table mapping each Intent to an ordered backend list, a quality
threshold that gates refinement, and whether refinement is enabled.
Q&A and code-host backends lead for Technical/Troubleshooting; the
scholarly index and encyclopedia lead for Academic.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .models import Intent

logger = logging.getLogger("websearch.strategy")

DEFAULT_MAX_ITERATIONS = 8


@dataclass(frozen=True)
class Strategy:
    """How one search call fans out"""
    intent: Intent
    engines: List[str] = field(default_factory=list)
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    quality_threshold: float = 0.6
    refinement_enabled: bool = True

    def to_dict(self) -> Dict:
        return {
            "intent": self.intent.value,
            "engines": list(self.engines),
            "max_iterations": self.max_iterations,
            "quality_threshold": self.quality_threshold,
            "refinement_enabled": self.refinement_enabled,
        }


# intent -> (engines, quality_threshold, refinement_enabled)
STRATEGY_TABLE: Dict[Intent, Tuple[Tuple[str, ...], float, bool]] = {
    Intent.TECHNICAL: (
        ("stackoverflow", "github", "duckduckgo", "bing", "wikipedia"), 0.65, True
    ),
    Intent.TROUBLESHOOTING: (
        ("stackoverflow", "github", "reddit", "duckduckgo", "bing"), 0.65, True
    ),
    Intent.TUTORIAL: (
        ("duckduckgo", "stackoverflow", "bing", "github"), 0.6, True
    ),
    Intent.ACADEMIC: (
        ("semantic_scholar", "wikipedia", "duckduckgo"), 0.7, False
    ),
    Intent.FACTUAL: (
        ("wikipedia", "duckduckgo", "bing", "semantic_scholar"), 0.6, True
    ),
    Intent.COMPARISON: (
        ("duckduckgo", "reddit", "bing", "wikipedia"), 0.6, True
    ),
    Intent.NEWS: (
        ("bing", "duckduckgo", "reddit"), 0.5, False
    ),
    Intent.SHOPPING: (
        ("bing", "duckduckgo", "reddit"), 0.5, False
    ),
    Intent.LOCAL: (
        ("bing", "duckduckgo"), 0.5, False
    ),
    Intent.GENERAL: (
        ("duckduckgo", "bing", "wikipedia", "reddit"), 0.55, True
    ),
}


def select_strategy(
    intent: Intent,
    max_uses: Optional[int] = None,
    iteration_cap: int = DEFAULT_MAX_ITERATIONS,
    extra_engines: Optional[List[str]] = None,
) -> Strategy:
    """
    Pick the strategy for an intent.

    Args:
        intent: Classified intent
        max_uses: Caller-supplied bound on backend calls (only ever lowers the cap)
        iteration_cap: Configured maximum number of backend calls
        extra_engines: Optional backends appended to every list (e.g. searxng)

    Returns:
        Strategy with a fresh engine list
    """
    engines, threshold, refine = STRATEGY_TABLE.get(intent, STRATEGY_TABLE[Intent.GENERAL])
    engine_list = list(engines)
    for name in extra_engines or []:
        if name not in engine_list:
            engine_list.append(name)

    max_iterations = iteration_cap
    if max_uses is not None:
        max_iterations = min(max_iterations, max_uses)
    max_iterations = max(1, max_iterations)

    strategy = Strategy(
        intent=intent,
        engines=engine_list,
        max_iterations=max_iterations,
        quality_threshold=threshold,
        refinement_enabled=refine,
    )
    logger.debug(f"Strategy for {intent.value}: {engine_list} (max {max_iterations} calls)")
    return strategy
