"""Tests for prompt analysis and provider selection."""

from types import MappingProxyType

import pytest

from models.image_generation import UseCase
from services.provider_selector import (
    DEFAULT_POLICIES,
    FALLBACK_CHAIN,
    MIN_CONFIDENCE,
    ProviderSelector,
    analyze_prompt,
    get_provider_recommendations,
    select_provider,
    tokenize,
)

pytestmark = pytest.mark.unit

ALL = list(FALLBACK_CHAIN)


class TestAnalyzePrompt:
    """Tests for use case detection."""

    @pytest.mark.parametrize(
        "prompt,use_case",
        [
            ("Create a minimalist logo for a coffee shop", UseCase.LOGO),
            ("A poster with the words SUMMER SALE", UseCase.TEXT_HEAVY),
            ("photorealistic portrait of an old fisherman", UseCase.PHOTOREALISTIC),
            ("instagram carousel with consistent characters", UseCase.CAROUSEL),
            ("quick draft for testing", UseCase.QUICK_DRAFT),
            ("remove background from image", UseCase.POST_PROCESS),
            ("anime style illustration of a fox", UseCase.ARTISTIC),
            ("low poly 3d render of a house", UseCase.RENDER_3D),
        ],
    )
    def test_detects_use_case(self, prompt, use_case):
        analysis = analyze_prompt(prompt)
        assert analysis is not None
        assert analysis.use_case == use_case
        assert analysis.confidence >= 0.5

    def test_confidence_combines_keywords(self):
        """Several hints reinforce each other: 1 - (0.2 * 0.4 * 0.5)."""
        analysis = analyze_prompt("carousel with consistent characters")
        assert analysis.use_case == UseCase.CAROUSEL
        assert analysis.confidence == pytest.approx(0.96)
        assert set(analysis.matched_keywords) == {
            "carousel",
            "consistent",
            "consistent characters",
        }

    def test_photorealistic_confidence(self):
        assert analyze_prompt("photorealistic portrait").confidence == pytest.approx(0.95)

    def test_strongest_use_case_wins(self):
        """The 3d render phrase outweighs both realistic and logo hints."""
        analysis = analyze_prompt("create a realistic 3d render of a logo")
        assert analysis.use_case == UseCase.RENDER_3D

    def test_case_insensitive(self):
        assert analyze_prompt("A LOGO FOR MY BAND").use_case == UseCase.LOGO

    def test_phrase_requires_adjacent_tokens(self):
        """Words split apart do not count as the two-word phrase."""
        analysis = analyze_prompt("remove the old background")
        assert analysis is not None
        assert "remove background" not in analysis.matched_keywords

    def test_weak_keyword_alone_is_below_floor(self):
        """A single 0.3 hint does not clear the confidence floor."""
        assert 0.3 < MIN_CONFIDENCE
        assert analyze_prompt("a background") is None

    @pytest.mark.parametrize("prompt", ["something nice", "beautiful sunset", "", "!!! ???"])
    def test_no_use_case(self, prompt):
        assert analyze_prompt(prompt) is None

    def test_substrings_do_not_match(self):
        """Whole tokens only: "logos" matches, "catalogue" does not contain "logo"."""
        assert analyze_prompt("a catalogue of shoes") is None

    def test_tokenize(self):
        assert tokenize("A 3D-Render, please!") == ["a", "3d", "render", "please"]


class TestSelectProvider:
    """Tests for provider selection."""

    def test_logo_prefers_ideogram(self):
        assert select_provider("Create a minimalist logo", ALL) == "IDEOGRAM"
        assert select_provider("create a logo for my brand", ALL) == "IDEOGRAM"

    def test_carousel_prefers_leonardo(self):
        assert select_provider("carousel with consistent characters", ALL) == "LEONARDO"

    def test_quick_draft_prefers_fal(self):
        assert select_provider("quick draft for testing", ALL) == "FAL"

    def test_post_process_prefers_clipdrop(self):
        assert select_provider("remove background from image", ALL) == "CLIPDROP"

    def test_photograph_prefers_bfl(self):
        assert select_provider("high quality professional photograph", ALL) == "BFL"

    def test_falls_through_ranking(self):
        """Without IDEOGRAM the next ranked logo provider is used."""
        assert select_provider("create a logo", ["STABILITY", "OPENAI"]) == "OPENAI"

    def test_secondary_ranking(self):
        assert select_provider("create a logo", ["STABILITY", "GEMINI"]) == "STABILITY"

    def test_fallback_chain_when_no_ranked_provider(self):
        """No logo provider available: the fallback chain starts with GEMINI."""
        assert select_provider("create a logo", ["FAL", "GEMINI"]) == "GEMINI"

    def test_generic_prompt_uses_fallback_chain(self):
        assert select_provider("nice image", ["OPENAI", "GEMINI"]) == "GEMINI"

    def test_requested_provider_wins(self):
        assert select_provider("create a logo", ALL, "BFL") == "BFL"

    def test_requested_provider_case_insensitive(self):
        assert select_provider("create a logo", ["BFL", "OPENAI"], "bfl") == "BFL"

    def test_requested_unavailable_auto_selects(self):
        result = select_provider("generate an image", ["OPENAI", "STABILITY"], "LEONARDO")
        assert result == "OPENAI"

    def test_auto_is_ignored(self):
        assert select_provider("create a logo", ALL, "auto") == "IDEOGRAM"

    def test_no_providers(self):
        assert select_provider("create a logo", []) is None

    def test_unknown_providers_use_first_available(self):
        assert select_provider("create a logo", ["CUSTOM", "OTHER"]) == "CUSTOM"

    def test_result_is_always_available(self):
        for prompt in ("create a logo", "quick draft", "nice", "3d render"):
            assert select_provider(prompt, ["FAL", "CLIPDROP"]) in ("FAL", "CLIPDROP")


class TestRecommendations:
    """Tests for provider recommendations."""

    def test_logo_recommendations(self):
        recs = get_provider_recommendations("design a logo for a bakery")
        assert recs.primary == ["IDEOGRAM", "OPENAI"]
        assert recs.secondary == ["BFL", "STABILITY"]
        assert recs.reason == "Detected logo use case (80% confidence)"

    def test_photorealistic_reason(self):
        recs = get_provider_recommendations("photorealistic portrait")
        assert recs.reason == "Detected photorealistic use case (95% confidence)"

    def test_generic_recommendations(self):
        recs = get_provider_recommendations("something nice")
        assert recs.primary == ["OPENAI", "STABILITY", "BFL"]
        assert recs.secondary == ["GEMINI", "LEONARDO", "FAL"]
        assert "No specific use case" in recs.reason

    def test_recommendations_do_not_share_policy_lists(self):
        recs = get_provider_recommendations("design a logo")
        recs.primary.append("FAL")
        assert "FAL" not in get_provider_recommendations("design a logo").primary


class TestPolicyTable:
    """Tests for the immutable policy table."""

    def test_policies_cover_every_use_case(self):
        assert set(DEFAULT_POLICIES) == set(UseCase)

    def test_policies_are_read_only(self):
        assert isinstance(DEFAULT_POLICIES, MappingProxyType)
        with pytest.raises(TypeError):
            DEFAULT_POLICIES[UseCase.LOGO] = None
        with pytest.raises(TypeError):
            DEFAULT_POLICIES[UseCase.LOGO].keywords["logo"] = 0.1

    def test_weights_in_range(self):
        for policy in DEFAULT_POLICIES.values():
            assert all(0 < w < 1 for w in policy.keywords.values())
            assert policy.primary

    def test_custom_min_confidence(self):
        strict = ProviderSelector(min_confidence=0.9)
        assert strict.analyze_prompt("create a logo") is None
        assert strict.select_provider("create a logo", ["IDEOGRAM", "GEMINI"]) == "GEMINI"
