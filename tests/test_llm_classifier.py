"""Tests for the two-stage LLM classifier engine."""

import json

import pytest

from llm_router.catalog import DEFAULT_MODELS, ModelCatalog
from llm_router.config import Settings
from llm_router.engines.base import RoutingContext, UserPreferences
from llm_router.engines.llm_classifier import (
    FALLBACK_CLASSIFICATION,
    MAX_CLASSIFIED_PROMPT_LENGTH,
    ClassificationResult,
    LLMClassifierEngine,
    LLMClassifierOptions,
    Tier,
    build_classification_prompt,
    extract_json_object,
    fingerprint,
    parse_classification,
)
from llm_router.exceptions import ClassificationError
from stubs import FakeClock, StubBackend, classification_json

PROMPT = "Please write a short poem about the ocean at night."


def ctx(prompt: str = PROMPT, **kwargs) -> RoutingContext:
    return RoutingContext(prompt=prompt, **kwargs)


def make_engine(
    backend: StubBackend,
    clock: FakeClock | None = None,
    catalog: ModelCatalog | None = None,
    **options,
) -> LLMClassifierEngine:
    return LLMClassifierEngine(
        options=LLMClassifierOptions(**options),
        catalog=catalog,
        backend=backend,
        clock=clock or FakeClock(),
    )


class TestExtractJsonObject:
    """Tests for extract_json_object."""

    def test_surrounding_commentary(self) -> None:
        """Test JSON is found inside chatter."""
        assert extract_json_object('Here you go: {"a": 1} hope it helps') == '{"a": 1}'

    def test_nested_object(self) -> None:
        """Test only the first balanced object is returned."""
        text = 'x {"a": {"b": 1}} y {"c": 2}'
        assert extract_json_object(text) == '{"a": {"b": 1}}'

    def test_braces_inside_strings(self) -> None:
        """Test braces in string literals do not affect balance."""
        text = '{"reasoning": "uses } and { chars", "tier": "simple"} trailing }'
        assert extract_json_object(text) == '{"reasoning": "uses } and { chars", "tier": "simple"}'

    def test_escaped_quote_in_string(self) -> None:
        """Test escaped quotes keep the scanner inside the string."""
        text = r'{"reasoning": "say \"}\" twice"}'
        assert extract_json_object(text) == text

    def test_unbalanced(self) -> None:
        """Test unbalanced input yields None."""
        assert extract_json_object('{"tier": "simple"') is None
        assert extract_json_object("no json here") is None


class TestParseClassification:
    """Tests for parse_classification."""

    def test_valid(self) -> None:
        """Test a well-formed classification."""
        result = parse_classification(
            classification_json("complex", 0.7, "debugging", ["stack trace"])
        )
        assert result == ClassificationResult(
            tier=Tier.COMPLEX,
            confidence=0.7,
            rationale="debugging",
            indicators=("stack trace",),
        )

    def test_markdown_fenced(self) -> None:
        """Test JSON wrapped in a markdown fence."""
        raw = "```json\n" + classification_json("reasoning", 0.95) + "\n```"
        assert parse_classification(raw).tier is Tier.REASONING

    def test_invalid_tier_coerced(self) -> None:
        """Test unknown tiers become medium."""
        result = parse_classification(classification_json("galaxy-brain", 0.9))
        assert result.tier is Tier.MEDIUM
        assert result.confidence == 0.9

    @pytest.mark.parametrize("confidence", [1.5, -0.1, "high", None, True])
    def test_invalid_confidence_coerced(self, confidence) -> None:
        """Test out-of-range or non-numeric confidence becomes 0.5."""
        raw = json.dumps({"tier": "simple", "confidence": confidence})
        assert parse_classification(raw).confidence == 0.5

    def test_missing_fields_defaulted(self) -> None:
        """Test missing rationale and indicators."""
        result = parse_classification('{"tier": "simple", "confidence": 1}')
        assert result.rationale == ""
        assert result.indicators == ()
        assert result.confidence == 1.0

    def test_no_json(self) -> None:
        """Test plain text raises ClassificationError."""
        with pytest.raises(ClassificationError):
            parse_classification("I think this is complex.")

    def test_broken_json(self) -> None:
        """Test balanced but invalid JSON raises ClassificationError."""
        with pytest.raises(ClassificationError):
            parse_classification("{tier: simple}")

    def test_to_dict(self) -> None:
        """Test serialization of a result."""
        assert FALLBACK_CLASSIFICATION.to_dict() == {
            "tier": "medium",
            "confidence": 0.5,
            "rationale": "classification failed, using fallback",
            "indicators": ["fallback"],
        }


class TestPromptHelpers:
    """Tests for fingerprinting and prompt construction."""

    def test_fingerprint_uses_prefix(self) -> None:
        """Test prompts sharing the first 200 characters share a key."""
        base = "x" * 200
        assert fingerprint(base + "tail one") == fingerprint(base + "tail two")
        assert fingerprint("abc") != fingerprint("abd")

    def test_fingerprint_case_sensitive(self) -> None:
        """Test fingerprints are case-sensitive."""
        assert fingerprint("Hello") != fingerprint("hello")

    def test_classification_prompt_escapes_quotes(self) -> None:
        """Test quotes in the prompt are escaped."""
        built = build_classification_prompt('say "hi"')
        assert 'say \\"hi\\"' in built
        assert built.endswith("JSON response:")

    def test_classification_prompt_truncated(self) -> None:
        """Test long prompts are truncated before interpolation."""
        built = build_classification_prompt("y" * 5000)
        assert "y" * MAX_CLASSIFIED_PROMPT_LENGTH in built
        assert "y" * (MAX_CLASSIFIED_PROMPT_LENGTH + 1) not in built


class TestLLMClassifierEngine:
    """Tests for LLMClassifierEngine decisions."""

    @pytest.mark.asyncio
    async def test_simple_tier(self, stub_backend: StubBackend) -> None:
        """Test a simple classification maps to the free local model."""
        engine = make_engine(stub_backend)
        decision = await engine.decide(ctx())

        assert decision.model.model == "gemma:2b"
        assert decision.confidence == pytest.approx(0.9 * 0.9)
        assert decision.estimated_cost == 0
        assert "LLM classified as simple (0.90 confidence): greeting" in decision.rationale
        assert "[classification: " in decision.rationale
        assert "[indicators: hello]" in decision.rationale
        assert [m.model for m in decision.fallback_chain] == [
            "claude-3-haiku-20240307",
            "gpt-4o-mini",
            "llama3.2:3b",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tier,expected",
        [
            ("simple", "gemma:2b"),
            ("medium", "claude-3-haiku-20240307"),
            ("complex", "claude-3-5-sonnet-20241022"),
            ("reasoning", "claude-3-opus-20240229"),
        ],
    )
    async def test_tier_mapping(self, tier: str, expected: str) -> None:
        """Test every tier maps to its primary model."""
        engine = make_engine(StubBackend(response=classification_json(tier, 0.8)))
        decision = await engine.decide(ctx())
        assert decision.model.model == expected
        assert decision.estimated_cost == decision.model.cost_per_1k_tokens * 2
        assert decision.model not in decision.fallback_chain

    @pytest.mark.asyncio
    async def test_secondary_model_when_primary_missing(self) -> None:
        """Test the in-catalog secondary is used when the primary alias is absent."""
        models = {a: m for a, m in DEFAULT_MODELS.items() if a != "claude-opus"}
        engine = make_engine(
            StubBackend(response=classification_json("reasoning", 0.8)),
            catalog=ModelCatalog(models),
        )
        decision = await engine.decide(ctx())
        assert decision.model.model == "gpt-4-turbo-preview"

    @pytest.mark.asyncio
    async def test_backend_request(self, stub_backend: StubBackend) -> None:
        """Test the fast model receives the template and sampling options."""
        engine = make_engine(stub_backend, classifier_model="tiny:1m")
        await engine.decide(ctx())

        call = stub_backend.calls[0]
        assert call["model"] == "tiny:1m"
        assert PROMPT in call["prompt"]
        assert call["options"] == {"temperature": 0.1, "num_predict": 200}

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, stub_backend: StubBackend) -> None:
        """Test a second identical classification within the TTL is served from cache."""
        engine = make_engine(stub_backend)
        first = await engine.decide(ctx())
        cached = engine.cache.get(fingerprint(PROMPT))
        second = await engine.decide(ctx())

        assert stub_backend.call_count == 1
        assert engine.cache.get(fingerprint(PROMPT)) is cached
        assert first.model == second.model
        assert first.confidence == second.confidence

    @pytest.mark.asyncio
    async def test_cache_expiry(self, stub_backend: StubBackend, clock: FakeClock) -> None:
        """Test an expired entry triggers a fresh classification."""
        engine = make_engine(stub_backend, clock=clock, cache_ttl_seconds=60)
        await engine.decide(ctx())

        clock.advance(60.001)
        await engine.decide(ctx())

        assert stub_backend.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_disabled(self, stub_backend: StubBackend) -> None:
        """Test every call hits the model when caching is off."""
        engine = make_engine(stub_backend, enable_cache=False)
        await engine.decide(ctx())
        await engine.decide(ctx())

        assert stub_backend.call_count == 2
        assert engine.cache.size() == 0

    @pytest.mark.asyncio
    async def test_cache_capacity(self, stub_backend: StubBackend) -> None:
        """Test the classifier cache stays within its capacity."""
        engine = make_engine(stub_backend, cache_max_entries=2)
        for i in range(4):
            await engine.decide(ctx(f"prompt number {i}"))

        assert engine.cache.size() == 2
        assert engine.cache.keys() == [fingerprint("prompt number 2"), fingerprint("prompt number 3")]

    @pytest.mark.asyncio
    async def test_failure_degrades_to_medium(self, failing_backend: StubBackend) -> None:
        """Test upstream errors produce a medium-tier decision instead of raising."""
        engine = make_engine(failing_backend)
        decision = await engine.decide(ctx())

        assert decision.model.model == "claude-3-haiku-20240307"
        assert decision.confidence == pytest.approx(0.45)
        assert "fallback" in decision.rationale

    @pytest.mark.asyncio
    async def test_failure_cached(self, failing_backend: StubBackend) -> None:
        """Test fallback classifications are cached for the TTL."""
        engine = make_engine(failing_backend)
        decisions = [await engine.decide(ctx()) for _ in range(5)]

        assert failing_backend.call_count == 1
        assert engine.cache.get(fingerprint(PROMPT)) is FALLBACK_CLASSIFICATION
        assert all(d.model.model == "claude-3-haiku-20240307" for d in decisions)

    @pytest.mark.asyncio
    async def test_failure_retried_after_ttl(
        self, failing_backend: StubBackend, clock: FakeClock
    ) -> None:
        """Test a cached fallback expires like any other entry."""
        engine = make_engine(failing_backend, clock=clock, cache_ttl_seconds=60)
        await engine.decide(ctx())

        clock.advance(60.001)
        await engine.decide(ctx())

        assert failing_backend.call_count == 2

    @pytest.mark.asyncio
    async def test_unparseable_response(self) -> None:
        """Test non-JSON output degrades to the fallback."""
        engine = make_engine(StubBackend(response="complex, definitely"))
        decision = await engine.decide(ctx())
        assert "classification failed, using fallback" in decision.rationale

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test a slow model is abandoned after the timeout."""
        backend = StubBackend(response=classification_json("simple", 0.9), delay=1.0)
        engine = make_engine(backend, timeout_seconds=0.05)

        result = await engine.classify(PROMPT)

        assert result is FALLBACK_CLASSIFICATION

    @pytest.mark.asyncio
    async def test_explicit_override(self, stub_backend: StubBackend) -> None:
        """Test an explicit model request wins over the tier."""
        engine = make_engine(stub_backend)
        decision = await engine.decide(ctx(requested_model="gpt-4o"))

        assert decision.model.model == "gpt-4o"
        assert decision.confidence == 1.0
        assert decision.rationale == "Explicit model request: gpt-4o (classified as simple)"

    @pytest.mark.asyncio
    async def test_unknown_explicit_model_ignored(self, stub_backend: StubBackend) -> None:
        """Test a catalog miss falls through to tier mapping."""
        engine = make_engine(stub_backend)
        decision = await engine.decide(ctx(requested_model="nonexistent"))
        assert decision.model.model == "gemma:2b"

    @pytest.mark.asyncio
    async def test_fallback_disallowed(self, stub_backend: StubBackend) -> None:
        """Test allow_fallback=False empties the chain."""
        engine = make_engine(stub_backend)
        decision = await engine.decide(
            ctx(preferences=UserPreferences(allow_fallback=False))
        )
        assert decision.fallback_chain == ()

    def test_get_confidence(self, stub_backend: StubBackend) -> None:
        """Test the length-based confidence hint."""
        engine = make_engine(stub_backend)
        assert engine.get_confidence(ctx("short")) == 0.3
        assert engine.get_confidence(ctx("x" * 50)) == 0.6
        assert engine.get_confidence(ctx("x" * 150)) == 0.85

    @pytest.mark.asyncio
    async def test_clear_cache(self, stub_backend: StubBackend) -> None:
        """Test clearing the cache forces reclassification."""
        engine = make_engine(stub_backend)
        await engine.decide(ctx())
        engine.clear_cache()
        await engine.decide(ctx())
        assert stub_backend.call_count == 2

    @pytest.mark.asyncio
    async def test_update_options_rebuilds_cache(self, stub_backend: StubBackend) -> None:
        """Test changing the TTL replaces the cache."""
        engine = make_engine(stub_backend)
        await engine.decide(ctx())
        old_cache = engine.cache

        engine.update_options(cache_ttl_seconds=120)

        assert engine.options.cache_ttl_seconds == 120
        assert engine.cache is not old_cache
        assert engine.cache.size() == 0

    def test_update_options_keeps_cache(self, stub_backend: StubBackend) -> None:
        """Test unrelated option changes keep the cache."""
        engine = make_engine(stub_backend)
        old_cache = engine.cache
        engine.update_options(temperature=0.0)
        assert engine.cache is old_cache

    def test_options_from_settings(self) -> None:
        """Test options are derived from settings."""
        settings = Settings(
            _env_file=None,
            classifier_model="qwen:0.5b",
            classifier_timeout_seconds=2.0,
            classification_cache_ttl_seconds=30,
        )
        options = LLMClassifierOptions.from_settings(settings)
        assert options.classifier_model == "qwen:0.5b"
        assert options.timeout_seconds == 2.0
        assert options.cache_ttl_seconds == 30
        assert options.enable_cache is True

    def test_update_options_invalid_keeps_state(self, stub_backend: StubBackend) -> None:
        """Test rejected cache settings leave options and cache untouched."""
        engine = make_engine(stub_backend)
        old_options = engine.options
        old_cache = engine.cache

        with pytest.raises(ValueError):
            engine.update_options(cache_ttl_seconds=0)

        assert engine.options is old_options
        assert engine.cache is old_cache

    def test_update_options_pushes_timeout_to_client(self) -> None:
        """Test host and timeout changes reach the engine's own client."""
        engine = LLMClassifierEngine()

        engine.update_options(timeout_seconds=30.0, ollama_url="http://gpu-box:11434/")

        assert engine._backend.timeout == 30.0
        assert engine._backend.host == "http://gpu-box:11434"

    def test_update_options_leaves_injected_backend(self, stub_backend: StubBackend) -> None:
        """Test an injected backend is not modified."""
        engine = make_engine(stub_backend)
        engine.update_options(timeout_seconds=30.0)
        assert not hasattr(stub_backend, "timeout")
