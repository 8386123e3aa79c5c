"""
Tests for model-backed shot quality scoring.
"""

import json

import pytest

from scriptflow.core.cancellation import CancellationToken
from scriptflow.core.config import QualityConfig
from scriptflow.core.constants import LLM_SCHEMA_VERSION, RULE_BASED_SCHEMA_VERSION
from scriptflow.core.exceptions import LLMProviderError, StageCancelledError
from scriptflow.quality.llm_scorer import (
    MISSING_DETAILS,
    LLMQualityScorer,
    build_shot_context,
    to_safe_score,
    truncate_text,
)


class FakeClient:
    """Returns queued responses; exceptions in the queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def complete(self, prompt, **kwargs):
        self.calls.append((prompt, kwargs))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _full_response(**overrides):
    payload = {
        "score": 84,
        "grade": "pass",
        "summary": "Stable shot with clear assets.",
        "checks": [
            {"key": "prompt-readiness", "score": 90, "passed": True, "details": "Prompts are specific."},
            {"key": "asset-coverage", "score": 85, "passed": True, "details": "Scene and cast covered."},
            {"key": "keyframe-execution", "score": 80, "passed": True, "details": "Start frame ready."},
            {"key": "video-execution", "score": 75, "passed": True, "details": "Video prompt present."},
            {"key": "continuity-risk", "score": 70, "passed": True, "details": "Low drift expected."},
        ],
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def quality_config():
    return QualityConfig(llm_retries=2, llm_retry_delay=0)


class TestHelpers:
    """Test score coercion and context building."""

    def test_to_safe_score(self):
        assert to_safe_score("85") == 85
        assert to_safe_score(84.5) == 85
        assert to_safe_score(140) == 100
        assert to_safe_score(-3) == 0
        assert to_safe_score("high") == 50
        assert to_safe_score(None, 62) == 62
        assert to_safe_score(float("nan")) == 50

    def test_truncate_text(self):
        assert truncate_text("  short  ", 10) == "short"
        assert truncate_text("abcdef", 3) == "abc..."
        assert truncate_text(None, 5) == ""

    def test_context_marks_unknown_references(self, sample_shots, sample_script_data):
        shot = sample_shots[1]
        shot.characters.append("char-ghost")
        context = build_shot_context(shot, sample_script_data)

        names = [c["name"] for c in context["characters"]]
        assert names == ["Anna", "Old Tom", "unknown:char-ghost"]
        assert context["scene"]["location"] == "Harbor Pier"
        assert context["interval"] is None
        assert context["keyframes"]["start"]["status"] == "pending"

    def test_context_includes_selected_variation(self, sample_shots, sample_script_data):
        context = build_shot_context(sample_shots[0], sample_script_data)
        anna = context["characters"][0]
        assert anna["selected_variation_name"] == "Soaked"
        assert anna["selected_variation_has_reference"] is True
        assert context["props"][0]["name"] == "Brass Telescope"


class TestLLMQualityScorer:
    """Test LLMQualityScorer."""

    @pytest.mark.asyncio
    async def test_valid_response(self, sample_shots, sample_script_data, quality_config):
        client = FakeClient(_full_response())
        scorer = LLMQualityScorer(client, quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == LLM_SCHEMA_VERSION
        assert result.score == 84
        assert result.grade == "pass"
        assert result.summary == "Stable shot with clear assets."
        assert [c.key for c in result.checks] == [
            "prompt-readiness", "asset-coverage", "keyframe-execution", "video-execution", "continuity-risk",
        ]
        assert result.checks[0].weight == 30
        assert len(client.calls) == 1
        assert client.calls[0][1]["json_mode"] is True

    @pytest.mark.asyncio
    async def test_missing_checks_are_defaulted(self, sample_shots, sample_script_data, quality_config):
        response = _full_response(checks=[
            {"key": "prompt-readiness", "score": 90, "passed": True, "details": "Fine."},
            {"key": "made-up-check", "score": 10, "passed": False, "details": "Ignored."},
        ])
        scorer = LLMQualityScorer(FakeClient(response), quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert len(result.checks) == 5
        defaulted = [c for c in result.checks if c.key != "prompt-readiness"]
        for check in defaulted:
            assert check.score == 50
            assert check.passed is False
            assert check.details == MISSING_DETAILS

    @pytest.mark.asyncio
    async def test_missing_score_uses_weighted_checks(self, sample_shots, sample_script_data, quality_config):
        payload = json.loads(_full_response())
        del payload["score"]
        scorer = LLMQualityScorer(FakeClient(json.dumps(payload)), quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        # 90*30 + 85*20 + 80*30 + 75*20 + 70*10 = 9000 over a total weight of 110
        assert result.score == 82

    @pytest.mark.asyncio
    async def test_invalid_grade_resolved_from_score(self, sample_shots, sample_script_data, quality_config):
        scorer = LLMQualityScorer(FakeClient(_full_response(score=65, grade="excellent")), quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.grade == "warning"

    @pytest.mark.asyncio
    async def test_fenced_response_is_accepted(self, sample_shots, sample_script_data, quality_config):
        fenced = f"```json\n{_full_response()}\n```"
        scorer = LLMQualityScorer(FakeClient(fenced), quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == LLM_SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_malformed_json_falls_back(self, sample_shots, sample_script_data, quality_config):
        client = FakeClient("I think this shot is pretty good overall")
        scorer = LLMQualityScorer(client, quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == RULE_BASED_SCHEMA_VERSION
        assert "model scoring unavailable" in result.summary
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_non_object_checks_fall_back(self, sample_shots, sample_script_data, quality_config):
        scorer = LLMQualityScorer(FakeClient(_full_response(checks=["good", "bad"])), quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == RULE_BASED_SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_retryable_error_is_retried(self, sample_shots, sample_script_data, quality_config):
        unavailable = LLMProviderError("fake", "service unavailable", status_code=503)
        client = FakeClient(unavailable, unavailable, _full_response())
        scorer = LLMQualityScorer(client, quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == LLM_SCHEMA_VERSION
        assert len(client.calls) == 3

    @pytest.mark.asyncio
    async def test_default_config_makes_two_attempts(self, sample_shots, sample_script_data):
        client = FakeClient(LLMProviderError("fake", "service unavailable", status_code=503))
        scorer = LLMQualityScorer(client, QualityConfig(llm_retry_delay=0))

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == RULE_BASED_SCHEMA_VERSION
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, sample_shots, sample_script_data, quality_config):
        client = FakeClient(LLMProviderError("fake", "bad request", status_code=400))
        scorer = LLMQualityScorer(client, quality_config)

        result = await scorer.assess(sample_shots[0], sample_script_data)

        assert result.version == RULE_BASED_SCHEMA_VERSION
        assert "bad request" in result.summary
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, sample_shots, sample_script_data, quality_config):
        token = CancellationToken()
        token.cancel("user stop")
        scorer = LLMQualityScorer(FakeClient(_full_response()), quality_config)

        with pytest.raises(StageCancelledError):
            await scorer.assess(sample_shots[0], sample_script_data, token=token)
