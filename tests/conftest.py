"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import List

from scriptflow.core.models import (
    AssetLibrary,
    Character,
    CharacterVariation,
    Keyframe,
    Prop,
    Scene,
    ScriptData,
    Shot,
    VideoInterval,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_script_data() -> ScriptData:
    """Parsed script with two characters, two scenes and one prop."""
    return ScriptData(
        title="The Lighthouse",
        genre="drama",
        logline="A keeper waits for a ship that never comes.",
        target_duration="60s",
        language="English",
        visual_style="3d-animation",
        shot_generation_model="gpt-5.1",
        characters=[
            Character(
                id="char-1",
                name="Anna",
                gender="female",
                age="30",
                visual_prompt="A weathered lighthouse keeper in a yellow raincoat",
                reference_image="https://img.example/anna.png",
                variations=[
                    CharacterVariation(
                        id="var-1",
                        name="Soaked",
                        reference_image="https://img.example/anna-soaked.png",
                    )
                ],
            ),
            Character(id="char-2", name="Old Tom", gender="male", age="70"),
        ],
        scenes=[
            Scene(
                id="scene-1",
                location="Lighthouse Lantern Room",
                time="night",
                atmosphere="stormy",
                reference_image="https://img.example/lantern.png",
            ),
            Scene(id="scene-2", location="Harbor Pier", time="dawn", atmosphere="calm"),
        ],
        props=[
            Prop(id="prop-1", name="Brass Telescope", category="tech", description="An old brass telescope"),
        ],
    )


@pytest.fixture
def sample_shots() -> List[Shot]:
    """Two shots referencing the sample script entities."""
    return [
        Shot(
            id="shot-1",
            scene_id="scene-1",
            characters=["char-1"],
            props=["prop-1"],
            action_summary="Anna scans the sea through the telescope",
            character_variations={"char-1": "var-1"},
            keyframes=[Keyframe(type="start", visual_prompt="Anna at the lantern window, storm outside")],
            interval=VideoInterval(status="pending", video_prompt="Slow push in on Anna as lightning flashes"),
        ),
        Shot(
            id="shot-2",
            scene_id="scene-2",
            characters=["char-1", "char-2"],
            action_summary="Tom hands Anna a letter on the pier",
        ),
    ]


@pytest.fixture
def sample_library() -> AssetLibrary:
    """Project library with near and far name matches."""
    return AssetLibrary(
        characters=[
            Character(
                id="lib-char-anna",
                name="Anna Lee",
                visual_prompt="Library Anna, yellow raincoat, freckles",
                reference_image="https://lib.example/anna-lee.png",
                version=3,
            ),
            Character(id="lib-char-banana", name="Banana"),
        ],
        scenes=[
            Scene(id="lib-scene-harbor", location="Harbor Pier", time="dawn", atmosphere="calm", version=2),
        ],
        props=[
            Prop(id="lib-prop-sword", name="Iron Sword", category="weapon"),
        ],
    )
