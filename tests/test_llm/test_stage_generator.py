"""
Tests for the model-backed generation stages.
"""

import json

import pytest

from scriptflow.core.cancellation import CancellationToken
from scriptflow.core.exceptions import LLMProviderError, LLMResponseError, StageCancelledError
from scriptflow.core.models import Character, Scene, ScriptData
from scriptflow.core.retry import RetryConfig
from scriptflow.llm.api_client import is_retryable_error
from scriptflow.llm.stage_generator import (
    DEFAULT_CAMERA_MOVEMENT,
    LLMStageGenerator,
    normalize_prop_category,
    normalize_structure,
    plan_shot_counts,
)


class ScriptedClient:
    """Replays canned completions in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def complete(self, prompt, **kwargs):
        self.calls.append((prompt, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response if isinstance(response, str) else json.dumps(response)


def _generator(*responses):
    client = ScriptedClient(*responses)
    retry = RetryConfig(max_retries=1, base_delay=0, jitter=False, retry_if=is_retryable_error)
    return LLMStageGenerator(client, retry_config=retry), client


class TestPlanShotCounts:
    """Test shot budget distribution."""

    def test_remainder_goes_to_early_scenes(self):
        assert plan_shot_counts(3, 60, 8) == [3, 3, 2]

    def test_at_least_one_shot_per_scene(self):
        assert plan_shot_counts(4, 10, 8) == [1, 1, 1, 1]

    def test_no_scenes(self):
        assert plan_shot_counts(0, 60, 8) == []

    def test_shot_duration_floor(self):
        assert plan_shot_counts(2, 30, 0.5) == [15, 15]


class TestNormalizeStructure:
    """Test structure response normalization."""

    def test_assigns_and_dedupes_ids(self):
        data = normalize_structure({
            "title": " Dawn ",
            "characters": [
                {"name": "Anna"},
                {"id": "char-1", "name": "Tom"},
                {"name": ""},
                "not a dict",
            ],
            "scenes": [{"location": "Pier", "time": "dawn"}, {"id": "s-x"}],
            "props": [{"name": "Sword", "category": "Weapon"}, {"name": "Gizmo", "category": "gadget"}],
        })

        assert data.title == "Dawn"
        assert [c.id for c in data.characters] == ["char-1", "char-2"]
        assert [c.name for c in data.characters] == ["Anna", "Tom"]
        assert [s.id for s in data.scenes] == ["scene-1", "s-x"]
        assert data.scenes[1].location == "Scene 2"
        assert [p.id for p in data.props] == ["prop-1", "prop-2"]
        assert [p.category for p in data.props] == ["weapon", "other"]

    def test_no_scenes_raises(self):
        with pytest.raises(LLMResponseError):
            normalize_structure({"characters": [{"name": "Anna"}], "scenes": []})

    def test_prop_category(self):
        assert normalize_prop_category("  FOOD ") == "food"
        assert normalize_prop_category(None) == "other"


class TestParseStructure:
    """Test LLMStageGenerator.parse_structure."""

    @pytest.mark.asyncio
    async def test_parse_structure(self):
        generator, client = _generator({
            "title": "Dawn",
            "genre": "drama",
            "characters": [{"id": "char-1", "name": "Anna"}],
            "scenes": [{"id": "scene-1", "location": "Pier"}],
            "props": [],
        })

        data = await generator.parse_structure("INT. PIER - DAWN", "English", "test-model")

        assert data.title == "Dawn"
        assert data.scenes[0].location == "Pier"
        prompt, kwargs = client.calls[0]
        assert "INT. PIER - DAWN" in prompt
        assert kwargs["model"] == "test-model"
        assert kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_non_object_response_raises(self):
        generator, _ = _generator("[1, 2, 3]")

        with pytest.raises(LLMResponseError):
            await generator.parse_structure("script", "English", "test-model")

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self):
        generator, client = _generator(
            LLMProviderError("fake", "overloaded", status_code=529),
            {"scenes": [{"location": "Pier"}]},
        )

        data = await generator.parse_structure("script", "English", "")

        assert len(client.calls) == 2
        assert client.calls[0][1]["model"] is None
        assert data.scenes[0].id == "scene-1"

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_before_call(self):
        generator, client = _generator({"scenes": [{"location": "Pier"}]})
        token = CancellationToken()
        token.cancel("user stop")

        with pytest.raises(StageCancelledError):
            await generator.parse_structure("script", "English", "test-model", token=token)
        assert client.calls == []


class TestEnrichVisuals:
    """Test LLMStageGenerator.enrich_visuals."""

    @pytest.mark.asyncio
    async def test_enrich_all_entities(self, sample_script_data):
        generator, _ = _generator({"entities": [
            {"id": "char-1", "visual_prompt": "Anna, new look", "negative_prompt": "blurry"},
            {"id": "char-2", "visual_prompt": "Old Tom, grey beard"},
            {"id": "scene-1", "visual_prompt": "Lantern room at night"},
            {"id": "scene-2", "visual_prompt": "Harbor at dawn"},
            {"id": "prop-1", "visual_prompt": "Brass telescope"},
        ]})

        result = await generator.enrich_visuals(sample_script_data, "test-model", "3d-animation", "English")

        anna = result.character("char-1")
        assert anna.visual_prompt == "Anna, new look"
        assert anna.negative_prompt == "blurry"
        assert [v.source for v in anna.prompt_versions] == ["imported", "ai"]
        assert result.character("char-2").status == "pending"
        # input untouched
        assert sample_script_data.character("char-1").visual_prompt.startswith("A weathered")

    @pytest.mark.asyncio
    async def test_only_missing_skips_existing_prompts(self, sample_script_data):
        generator, client = _generator({"entities": [
            {"id": "char-1", "visual_prompt": "should be ignored"},
            {"id": "char-2", "visual_prompt": "Old Tom, grey beard"},
        ]})

        result = await generator.enrich_visuals(
            sample_script_data, "test-model", "3d-animation", "English", only_missing=True
        )

        prompt = client.calls[0][0]
        assert '"id": "char-1"' not in prompt
        assert '"id": "char-2"' in prompt
        assert result.character("char-1").visual_prompt.startswith("A weathered")
        assert result.character("char-2").visual_prompt == "Old Tom, grey beard"
        assert result.scene("scene-2").visual_prompt == ""

    @pytest.mark.asyncio
    async def test_nothing_missing_makes_no_call(self):
        data = ScriptData(
            characters=[Character(id="char-1", name="Anna", visual_prompt="Anna")],
            scenes=[Scene(id="scene-1", location="Pier", visual_prompt="Pier")],
        )
        generator, client = _generator()

        result = await generator.enrich_visuals(data, "m", "anime", "English", only_missing=True)

        assert client.calls == []
        assert result.to_dict() == data.to_dict()


class TestGenerateShots:
    """Test LLMStageGenerator.generate_shots."""

    @pytest.mark.asyncio
    async def test_shots_per_scene_with_filler(self, sample_script_data):
        sample_script_data.target_duration = "16s"
        generator, client = _generator(
            {"shots": [{
                "action_summary": "Anna scans the horizon",
                "characters": ["char-1", "old tom", "nobody"],
                "props": ["prop-9", "Brass Telescope"],
                "start_frame_prompt": "Anna at the window",
                "end_frame_prompt": "Anna lowers the telescope",
                "video_prompt": "Slow push in",
            }]},
            {"shots": []},
        )

        shots = await generator.generate_shots(sample_script_data, "test-model")

        assert len(client.calls) == 2
        assert [s.id for s in shots] == ["shot-1", "shot-2"]
        first, second = shots
        assert first.scene_id == "scene-1"
        assert first.characters == ["char-1", "char-2"]
        assert first.props == ["prop-1"]
        assert [k.id for k in first.keyframes] == ["shot-1-start", "shot-1-end"]
        assert first.interval.video_prompt == "Slow push in"
        assert first.interval.duration == 8.0

        assert second.scene_id == "scene-2"
        assert second.action_summary == "Harbor Pier scene continues (filler shot 1)"
        assert second.camera_movement == DEFAULT_CAMERA_MOVEMENT
        assert [k.id for k in second.keyframes] == ["shot-2-start"]

    @pytest.mark.asyncio
    async def test_excess_shots_truncated_and_short_padded(self):
        data = ScriptData(
            target_duration="16s",
            characters=[Character(id="char-1", name="Anna")],
            scenes=[Scene(id="scene-1", location="Pier")],
        )
        too_many = {"shots": [{"action_summary": f"beat {i}"} for i in range(3)]}
        generator, _ = _generator(too_many)

        shots = await generator.generate_shots(data, "test-model")

        assert [s.action_summary for s in shots] == ["beat 0", "beat 1"]

        too_few = {"shots": [{"action_summary": "Anna waits", "characters": ["char-1"], "shot_size": "Close-Up"}]}
        generator, _ = _generator(too_few)

        shots = await generator.generate_shots(data, "test-model")

        assert len(shots) == 2
        assert shots[1].action_summary == "Anna waits (filler shot 2)"
        assert shots[1].characters == ["char-1"]
        assert shots[1].shot_size == "Close-Up"
