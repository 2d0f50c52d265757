"""Prompt-to-provider selection by keyword heuristics.

Each use case (logo, text-heavy, photorealistic, ...) has weighted keywords and a
provider ranking. A prompt is scored against every use case; the best one above
the confidence floor decides which provider to prefer.

Scoring is a noisy-or over matched keyword weights: ``1 - prod(1 - w)``. One strong
keyword ("logo", 0.8) is enough on its own, weak hints ("background", 0.3) only
count together with others.
"""

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from models.image_generation import PromptAnalysis, ProviderRecommendations, UseCase

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.35
AUTO_PROVIDER = "auto"

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class UseCasePolicy:
    """Keywords that signal a use case and the providers best suited to it."""

    keywords: Mapping[str, float]
    primary: tuple[str, ...]
    secondary: tuple[str, ...]

    @property
    def ranking(self) -> tuple[str, ...]:
        return self.primary + self.secondary


def _policy(keywords: dict, primary: Sequence[str], secondary: Sequence[str]) -> UseCasePolicy:
    return UseCasePolicy(MappingProxyType(keywords), tuple(primary), tuple(secondary))


# Catalog order breaks confidence ties
DEFAULT_POLICIES: Mapping[UseCase, UseCasePolicy] = MappingProxyType({
    UseCase.LOGO: _policy(
        {
            "logo": 0.8, "logos": 0.8, "logotype": 0.8, "wordmark": 0.8,
            "brand identity": 0.7, "emblem": 0.6, "monogram": 0.6,
            "brand": 0.5, "branding": 0.5, "icon": 0.5, "mascot": 0.4,
        },
        primary=["IDEOGRAM", "OPENAI"],
        secondary=["BFL", "STABILITY"],
    ),
    UseCase.TEXT_HEAVY: _policy(
        {
            "typography": 0.8, "that says": 0.8, "with the words": 0.8,
            "lettering": 0.7, "text": 0.6, "saying": 0.6, "headline": 0.6,
            "signage": 0.6, "infographic": 0.6, "poster": 0.5, "banner": 0.5,
            "flyer": 0.5, "caption": 0.5, "quote": 0.5,
        },
        primary=["IDEOGRAM", "OPENAI"],
        secondary=["GEMINI", "BFL"],
    ),
    UseCase.PHOTOREALISTIC: _policy(
        {
            "photorealistic": 0.9, "hyperrealistic": 0.8, "photograph": 0.7,
            "professional photo": 0.7, "lifelike": 0.7, "dslr": 0.7,
            "photo": 0.6, "photography": 0.6, "realistic": 0.6, "headshot": 0.6,
            "portrait": 0.5, "cinematic": 0.4, "high quality": 0.3,
            "professional": 0.3, "4k": 0.3, "8k": 0.3,
        },
        primary=["BFL", "STABILITY"],
        secondary=["OPENAI", "GEMINI", "REPLICATE"],
    ),
    UseCase.CAROUSEL: _policy(
        {
            "carousel": 0.8, "same character": 0.7, "consistent characters": 0.6,
            "consistent character": 0.6, "slideshow": 0.6, "storyboard": 0.6,
            "consistent": 0.5, "slides": 0.5, "instagram": 0.5, "series": 0.4,
        },
        primary=["LEONARDO"],
        secondary=["GEMINI", "OPENAI"],
    ),
    UseCase.QUICK_DRAFT: _policy(
        {
            "draft": 0.7, "quick": 0.6, "quickly": 0.6, "placeholder": 0.6,
            "sketch": 0.5, "rough": 0.5, "prototype": 0.5, "mockup": 0.5,
            "fast": 0.5, "thumbnail": 0.4, "concept": 0.3,
        },
        primary=["FAL"],
        secondary=["REPLICATE", "STABILITY"],
    ),
    UseCase.POST_PROCESS: _policy(
        {
            "remove background": 0.9, "background removal": 0.9,
            "transparent background": 0.8, "upscale": 0.8, "upscaling": 0.8,
            "retouch": 0.6, "cutout": 0.6, "cleanup": 0.6, "clean up": 0.6,
            "erase": 0.5, "remove": 0.4, "enhance": 0.4, "background": 0.3,
        },
        primary=["CLIPDROP"],
        secondary=["STABILITY", "GEMINI"],
    ),
    UseCase.ARTISTIC: _policy(
        {
            "anime": 0.8, "manga": 0.8, "oil painting": 0.8, "pixel art": 0.8,
            "illustration": 0.7, "watercolor": 0.7, "cartoon": 0.7,
            "digital art": 0.7, "concept art": 0.7, "painting": 0.6,
            "artistic": 0.6, "comic": 0.6, "fantasy": 0.5, "stylized": 0.5,
        },
        primary=["LEONARDO", "STABILITY"],
        secondary=["REPLICATE", "FAL"],
    ),
    UseCase.RENDER_3D: _policy(
        {
            "3d render": 0.8, "3d": 0.7, "3d model": 0.7, "low poly": 0.7,
            "unreal engine": 0.7, "isometric": 0.6, "blender": 0.6,
            "octane": 0.6, "cgi": 0.6, "render": 0.5, "rendered": 0.5,
        },
        primary=["STABILITY", "BFL"],
        secondary=["LEONARDO", "REPLICATE"],
    ),
})

# Global order when no preferred provider is available
FALLBACK_CHAIN = (
    "GEMINI", "OPENAI", "STABILITY", "BFL", "IDEOGRAM",
    "LEONARDO", "FAL", "REPLICATE", "CLIPDROP",
)

# Recommendations for prompts without a detectable use case
GENERIC_PRIMARY = ("OPENAI", "STABILITY", "BFL")
GENERIC_SECONDARY = ("GEMINI", "LEONARDO", "FAL")


@dataclass(frozen=True)
class _IndexEntry:
    use_case: UseCase
    keyword: str
    tokens: tuple[str, ...]
    weight: float


def tokenize(text: str) -> list[str]:
    return TOKEN_PATTERN.findall(text.lower())


class ProviderSelector:
    """Chooses a provider for a prompt from an immutable policy table.

    The keyword index (first token -> candidate keywords) is built once here, so
    analysis cost grows with prompt length only.
    """

    def __init__(
        self,
        policies: Mapping[UseCase, UseCasePolicy] = DEFAULT_POLICIES,
        fallback_chain: Sequence[str] = FALLBACK_CHAIN,
        generic_primary: Sequence[str] = GENERIC_PRIMARY,
        generic_secondary: Sequence[str] = GENERIC_SECONDARY,
        min_confidence: float = MIN_CONFIDENCE,
    ):
        self.policies = policies
        self.fallback_chain = tuple(fallback_chain)
        self.generic_primary = tuple(generic_primary)
        self.generic_secondary = tuple(generic_secondary)
        self.min_confidence = min_confidence
        self._index = self._build_index(policies)

    @staticmethod
    def _build_index(
        policies: Mapping[UseCase, UseCasePolicy],
    ) -> Mapping[str, tuple[_IndexEntry, ...]]:
        index: dict[str, list[_IndexEntry]] = {}
        for use_case, policy in policies.items():
            for keyword, weight in policy.keywords.items():
                tokens = tuple(tokenize(keyword))
                if not tokens:
                    continue
                index.setdefault(tokens[0], []).append(
                    _IndexEntry(use_case, keyword, tokens, weight)
                )
        return MappingProxyType({token: tuple(entries) for token, entries in index.items()})

    def analyze_prompt(self, prompt: str) -> Optional[PromptAnalysis]:
        """Detect the most likely use case for a prompt.

        Returns:
            PromptAnalysis, or None when nothing clears the confidence floor
        """
        tokens = tokenize(prompt or "")
        if not tokens:
            return None

        matches: dict[UseCase, dict[str, float]] = {}
        for position, token in enumerate(tokens):
            for entry in self._index.get(token, ()):
                if tuple(tokens[position:position + len(entry.tokens)]) == entry.tokens:
                    matches.setdefault(entry.use_case, {})[entry.keyword] = entry.weight

        best: Optional[PromptAnalysis] = None
        for use_case in self.policies:
            matched = matches.get(use_case)
            if not matched:
                continue
            confidence = self._confidence(matched.values())
            if best is None or confidence > best.confidence:
                best = PromptAnalysis(use_case, confidence, tuple(matched))

        if best is None or best.confidence < self.min_confidence:
            return None
        return best

    @staticmethod
    def _confidence(weights: Iterable[float]) -> float:
        miss = 1.0
        for weight in weights:
            miss *= 1.0 - weight
        return round(1.0 - miss, 4)

    def select_provider(
        self,
        prompt: str,
        available_providers: Sequence[str],
        requested_provider: Optional[str] = None,
    ) -> Optional[str]:
        """Pick a provider from ``available_providers``.

        An explicitly requested provider wins when available; otherwise the detected
        use case's ranking, then the global fallback chain, then the first available.
        """
        if not available_providers:
            return None

        by_name = {name.upper(): name for name in available_providers}

        if requested_provider and requested_provider.lower() != AUTO_PROVIDER:
            match = by_name.get(requested_provider.upper())
            if match is not None:
                return match
            logger.info(f"Requested provider {requested_provider} unavailable, auto-selecting")

        analysis = self.analyze_prompt(prompt)
        if analysis is not None:
            for name in self.policies[analysis.use_case].ranking:
                if name in by_name:
                    logger.debug(
                        f"Selected {name} for {analysis.use_case.value} "
                        f"({analysis.confidence:.0%} confidence)"
                    )
                    return by_name[name]

        for name in self.fallback_chain:
            if name in by_name:
                return by_name[name]

        return available_providers[0]

    def get_provider_recommendations(self, prompt: str) -> ProviderRecommendations:
        """Rank providers for a prompt with a human-readable reason."""
        analysis = self.analyze_prompt(prompt)
        if analysis is None:
            return ProviderRecommendations(
                primary=list(self.generic_primary),
                secondary=list(self.generic_secondary),
                reason="No specific use case detected; using general-purpose providers",
            )

        policy = self.policies[analysis.use_case]
        return ProviderRecommendations(
            primary=list(policy.primary),
            secondary=list(policy.secondary),
            reason=(
                f"Detected {analysis.use_case.value} use case "
                f"({round(analysis.confidence * 100)}% confidence)"
            ),
        )


default_selector = ProviderSelector()


def analyze_prompt(prompt: str) -> Optional[PromptAnalysis]:
    return default_selector.analyze_prompt(prompt)


def select_provider(
    prompt: str,
    available_providers: Sequence[str],
    requested_provider: Optional[str] = None,
) -> Optional[str]:
    return default_selector.select_provider(prompt, available_providers, requested_provider)


def get_provider_recommendations(prompt: str) -> ProviderRecommendations:
    return default_selector.get_provider_recommendations(prompt)
