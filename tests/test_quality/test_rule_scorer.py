"""
Tests for rule-based quality scoring

Tests for scriptflow/quality/rule_scorer.py
"""

import pytest

from scriptflow.core.models import (
    Character,
    CharacterVariation,
    Keyframe,
    Prop,
    Scene,
    ScriptData,
    Shot,
    ShotQualityAssessment,
    VideoInterval,
)
from scriptflow.quality.rule_scorer import (
    assess_shot_quality,
    evaluate_asset_coverage,
    evaluate_continuity,
    evaluate_keyframe_execution,
    evaluate_prompt_readiness,
    evaluate_video_execution,
    project_average_quality_score,
    resolve_grade,
    supports_end_frame,
)

START_PROMPT = "Wide shot of Anna at the lantern window, storm raging outside, cold blue light"
END_PROMPT = "Anna turns from the window, lightning behind her"
VIDEO_PROMPT = "Slow dolly in as Anna turns away from the glass"


@pytest.fixture
def production_script() -> ScriptData:
    return ScriptData(
        characters=[Character(id="char-1", name="Anna", reference_image="https://img/anna.png")],
        scenes=[Scene(id="scene-1", location="Lantern Room", reference_image="https://img/room.png")],
        props=[Prop(id="prop-1", name="Telescope", reference_image="https://img/scope.png")],
    )


@pytest.fixture
def production_shot() -> Shot:
    return Shot(
        id="shot-1",
        scene_id="scene-1",
        characters=["char-1"],
        props=["prop-1"],
        action_summary="Anna turns away from the storm",
        video_model="veo-3",
        keyframes=[
            Keyframe(type="start", visual_prompt=START_PROMPT, image_url="https://img/s.png", status="completed"),
            Keyframe(type="end", visual_prompt=END_PROMPT, image_url="https://img/e.png", status="completed"),
        ],
        interval=VideoInterval(status="completed", video_prompt=VIDEO_PROMPT, video_url="https://vid/1.mp4"),
    )


class TestGrades:
    """Tests for grade boundaries."""

    @pytest.mark.parametrize("score,grade", [
        (100, "pass"),
        (80, "pass"),
        (79, "warning"),
        (60, "warning"),
        (59, "fail"),
        (0, "fail"),
    ])
    def test_resolve_grade(self, score, grade):
        assert resolve_grade(score) == grade


class TestEndFrameSupport:
    """Tests for supports_end_frame."""

    @pytest.mark.parametrize("model,expected", [
        ("veo-3", True),
        ("kling-v2", True),
        ("sora-2", False),
        ("Doubao-Seedance-1.0", False),
        ("", False),
        (None, False),
    ])
    def test_models(self, model, expected):
        assert supports_end_frame(model) is expected


class TestChecks:
    """Tests for the individual checks."""

    def test_prompt_readiness_full(self, production_shot):
        check = evaluate_prompt_readiness(production_shot)

        assert check.score == 100
        assert check.passed

    def test_prompt_readiness_tiers(self):
        shot = Shot(
            id="s",
            action_summary="short",
            keyframes=[Keyframe(type="start", visual_prompt="a" * 20), Keyframe(type="end", visual_prompt="b")],
            interval=VideoInterval(video_prompt="pan"),
        )

        check = evaluate_prompt_readiness(shot)

        assert check.score == 30 + 10 + 10 + 0
        assert not check.passed

    def test_asset_coverage_without_script(self, production_shot):
        assert evaluate_asset_coverage(production_shot, None).score == 35

    def test_asset_coverage_full(self, production_shot, production_script):
        assert evaluate_asset_coverage(production_shot, production_script).score == 70

    def test_asset_coverage_unknown_ids(self, production_script):
        shot = Shot(id="s", scene_id="nowhere", characters=["ghost"], props=["missing"])

        assert evaluate_asset_coverage(shot, production_script).score == 10

    def test_asset_coverage_variation_image(self):
        script = ScriptData(
            characters=[Character(id="c", name="Anna")],
            scenes=[Scene(id="sc", location="Room")],
        )
        script.characters[0].variations.append(CharacterVariation(id="v", name="Wet", reference_image="x.png"))
        shot = Shot(id="s", scene_id="sc", characters=["c"], character_variations={"c": "v"})

        assert evaluate_asset_coverage(shot, script).score == 10 + 25 + 10

    def test_keyframe_failed_penalty(self):
        shot = Shot(
            id="s",
            video_model="veo",
            keyframes=[Keyframe(type="start", image_url="s.png"), Keyframe(type="end", status="failed")],
        )

        assert evaluate_keyframe_execution(shot).score == 55 + 0 - 20

    def test_keyframe_without_end_support(self):
        shot = Shot(id="s", video_model="sora-2", keyframes=[Keyframe(type="start", status="generating")])

        assert evaluate_keyframe_execution(shot).score == 25 + 30

    @pytest.mark.parametrize("interval,expected", [
        (None, 30),
        (VideoInterval(status="completed", video_url="v.mp4"), 100),
        (VideoInterval(status="completed"), 0),
        (VideoInterval(status="generating"), 55),
        (VideoInterval(status="pending"), 35),
        (VideoInterval(status="failed"), 10),
        (VideoInterval(status="mystery"), 0),
    ])
    def test_video_execution(self, interval, expected):
        assert evaluate_video_execution(Shot(id="s", interval=interval)).score == expected

    def test_continuity_character_without_anchor(self):
        shot = Shot(id="s", characters=["c"], video_model="veo")

        assert evaluate_continuity(shot).score == 40 - 20 - 10

    def test_continuity_no_end_support(self):
        shot = Shot(id="s", video_model="sora", keyframes=[Keyframe(type="start", image_url="s.png")])

        assert evaluate_continuity(shot).score == 40 + 25 + 20


class TestAssessShotQuality:
    """Tests for the aggregated assessment."""

    def test_production_ready_shot_passes(self, production_shot, production_script):
        assessment = assess_shot_quality(production_shot, production_script)

        assert assessment.version == 1
        assert assessment.grade == "pass"
        # 100*30 + 70*20 + 90*30 + 100*20 + 90*10 = 10000 over a total weight of 110
        assert assessment.score == 91
        assert all(c.passed for c in assessment.checks)
        assert assessment.summary == "Ready for production; all core checks passed."

    def test_bare_shot_fails(self):
        assessment = assess_shot_quality(Shot(id="bare"))

        # 0*30 + 35*20 + 30*30 + 30*20 + 60*10 = 2800 over a total weight of 110
        assert assessment.score == 25
        assert assessment.grade == "fail"
        assert assessment.summary.startswith("High risk: ")
        assert "Prompt Readiness" in assessment.summary
        assert "Continuity Risk" in assessment.summary

    def test_five_checks_with_weights(self, production_shot):
        assessment = assess_shot_quality(production_shot)

        assert [c.key for c in assessment.checks] == [
            "prompt-readiness", "asset-coverage", "keyframe-execution", "video-execution", "continuity-risk",
        ]
        assert sum(c.weight for c in assessment.checks) == 110

    def test_custom_weights(self, production_shot):
        weights = {
            "prompt-readiness": 0,
            "asset-coverage": 100,
            "keyframe-execution": 0,
            "video-execution": 0,
            "continuity-risk": 0,
        }

        assessment = assess_shot_quality(production_shot, None, weights)

        assert assessment.score == 35

    def test_project_average(self):
        shots = [
            Shot(id="a", quality_assessment=ShotQualityAssessment(1, 80, "pass", "")),
            Shot(id="b", quality_assessment=ShotQualityAssessment(1, 71, "warning", "")),
            Shot(id="c"),
        ]

        assert project_average_quality_score(shots) == 76
        assert project_average_quality_score([]) == 0
