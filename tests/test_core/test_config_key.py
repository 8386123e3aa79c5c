"""
Tests for configuration fingerprints

Tests for scriptflow/core/config_key.py
"""

from scriptflow.core.config_key import (
    build_config_key,
    build_run_key,
    build_stage_keys,
    canonical_json,
    hash_text,
)
from scriptflow.core.models import GenerationDraft


def make_draft(**overrides) -> GenerationDraft:
    values = dict(
        script="INT. LIGHTHOUSE - NIGHT\nAnna climbs the stairs.",
        title="The Lighthouse",
        language="English",
        target_duration="60s",
        visual_style="3d-animation",
        model="gpt-5.1",
    )
    values.update(overrides)
    return GenerationDraft(**values)


class TestHashText:
    """Tests for the djb2-xor fold."""

    def test_empty_string_is_seed(self):
        assert hash_text("") == "1505-0"

    def test_single_character(self):
        assert hash_text("a") == "2b5c4-1"

    def test_length_counts_utf16_units(self):
        assert hash_text("😀").endswith("-2")
        assert hash_text("取消").endswith("-2")


class TestBuildConfigKey:
    """Tests for build_config_key."""

    def test_known_value(self):
        assert build_config_key({}) == "v1-5971e3-2"

    def test_key_order_does_not_matter(self):
        assert build_config_key({"a": 1, "b": 2}) == build_config_key({"b": 2, "a": 1})

    def test_different_values_differ(self):
        assert build_config_key({"a": 1}) != build_config_key({"a": 2})

    def test_canonical_json_keeps_non_ascii(self):
        assert canonical_json({"title": "灯塔"}) == '{"title":"灯塔"}'

    def test_prefix(self):
        assert build_config_key([1, 2, 3]).startswith("v1-")


class TestStageKeys:
    """Tests for per-stage fingerprints."""

    def test_deterministic(self):
        assert build_stage_keys(make_draft()) == build_stage_keys(make_draft())
        assert build_run_key(make_draft()) == build_run_key(make_draft())

    def test_title_is_not_fingerprinted(self):
        assert build_run_key(make_draft()) == build_run_key(make_draft(title="Other"))

    def test_duration_change_only_touches_shots(self):
        before = build_stage_keys(make_draft())
        after = build_stage_keys(make_draft(target_duration="120s"))

        assert before.structure_key == after.structure_key
        assert before.visuals_key == after.visuals_key
        assert before.shots_key != after.shots_key

    def test_style_change_touches_visuals_and_shots(self):
        before = build_stage_keys(make_draft())
        after = build_stage_keys(make_draft(visual_style="anime"))

        assert before.structure_key == after.structure_key
        assert before.visuals_key != after.visuals_key
        assert before.shots_key != after.shots_key

    def test_script_change_touches_structure_only(self):
        before = build_stage_keys(make_draft())
        after = build_stage_keys(make_draft(script="Something else entirely."))

        assert before.structure_key != after.structure_key
        assert before.visuals_key == after.visuals_key
        assert before.shots_key == after.shots_key

    def test_model_change_touches_everything(self):
        before = build_stage_keys(make_draft())
        after = build_stage_keys(make_draft(model="other-model"))

        assert before.structure_key != after.structure_key
        assert before.visuals_key != after.visuals_key
        assert before.shots_key != after.shots_key
