"""
Stage Generator

Implements the three generation stages (structure, visuals, shots) over a
chat model. Each stage sends one JSON-mode prompt per unit of work and
normalizes whatever comes back into data records: missing ids are assigned,
unknown prop categories become ``other``, and shot references to entities
that do not exist are repaired or dropped.
"""

import copy
import json
from typing import Any, Dict, List, Optional

from scriptflow.core.cancellation import CancellationToken
from scriptflow.core.config import ScriptFlowConfig, get_default_config
from scriptflow.core.constants import (
    KEYFRAME_END,
    KEYFRAME_START,
    PROP_CATEGORIES,
    STATUS_PENDING,
)
from scriptflow.core.duration_parser import parse_duration_to_seconds
from scriptflow.core.exceptions import LLMResponseError
from scriptflow.core.logging_config import get_logger
from scriptflow.core.models import (
    Character,
    Keyframe,
    Prop,
    Scene,
    ScriptData,
    Shot,
    VideoInterval,
)
from scriptflow.core.prompt_versions import update_prompt_with_version
from scriptflow.core.retry import LLM_RETRY_CONFIG, RetryConfig, retry_async_call

from .api_client import ChatClient, is_retryable_error
from .json_utils import parse_json_response

logger = get_logger("llm.stage_generator")

DEFAULT_TARGET_SECONDS = 60
DEFAULT_CAMERA_MOVEMENT = "Static Shot"
DEFAULT_SHOT_SIZE = "Medium Shot"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value).strip()


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def plan_shot_counts(scene_count: int, target_seconds: int, shot_duration: float) -> List[int]:
    """
    Distribute the shot budget across scenes.

    Total shots is ``target / shot duration`` rounded, but never fewer than one
    per scene; the remainder goes to the earliest scenes.
    """
    if scene_count <= 0:
        return []
    shot_duration = max(1.0, shot_duration)
    rough = max(1, int(target_seconds / shot_duration + 0.5))
    total = max(rough, scene_count)
    base, extra = divmod(total, scene_count)
    return [base + (1 if i < extra else 0) for i in range(scene_count)]


def normalize_prop_category(category: Any) -> str:
    value = _text(category).lower()
    return value if value in PROP_CATEGORIES else "other"


def normalize_structure(payload: Dict[str, Any]) -> ScriptData:
    """Turn a structure-stage response into ``ScriptData`` with unique ids."""
    characters = []
    seen_ids = set()
    for index, raw in enumerate(_list(payload.get("characters")), start=1):
        if not isinstance(raw, dict):
            continue
        character = Character.from_dict(raw)
        if not character.name:
            continue
        if not character.id or character.id in seen_ids:
            character.id = f"char-{index}"
        seen_ids.add(character.id)
        characters.append(character)

    scenes = []
    for index, raw in enumerate(_list(payload.get("scenes")), start=1):
        if not isinstance(raw, dict):
            continue
        scene = Scene.from_dict(raw)
        if not scene.location:
            scene.location = f"Scene {index}"
        if not scene.id or scene.id in seen_ids:
            scene.id = f"scene-{index}"
        seen_ids.add(scene.id)
        scenes.append(scene)

    props = []
    for index, raw in enumerate(_list(payload.get("props")), start=1):
        if not isinstance(raw, dict):
            continue
        prop = Prop.from_dict(raw)
        if not prop.name:
            continue
        if not prop.id or prop.id in seen_ids:
            prop.id = f"prop-{index}"
        prop.category = normalize_prop_category(prop.category)
        seen_ids.add(prop.id)
        props.append(prop)

    if not scenes:
        raise LLMResponseError("Structure response contains no scenes")

    return ScriptData(
        title=_text(payload.get("title")),
        genre=_text(payload.get("genre")),
        logline=_text(payload.get("logline")),
        characters=characters,
        scenes=scenes,
        props=props,
    )


class LLMStageGenerator:
    """
    Generation stages backed by a ``ChatClient``.

    Every call goes through ``retry_async_call`` so transient provider errors
    are retried and the caller's cancellation token is honoured between and
    during attempts.
    """

    def __init__(
        self,
        client: ChatClient,
        config: Optional[ScriptFlowConfig] = None,
        retry_config: Optional[RetryConfig] = None
    ):
        self.client = client
        self.config = config or get_default_config()
        self.retry_config = retry_config or self._default_retry_config()

    @staticmethod
    def _default_retry_config() -> RetryConfig:
        return RetryConfig(
            max_retries=LLM_RETRY_CONFIG.max_retries,
            base_delay=LLM_RETRY_CONFIG.base_delay,
            max_delay=LLM_RETRY_CONFIG.max_delay,
            exponential_base=LLM_RETRY_CONFIG.exponential_base,
            jitter=LLM_RETRY_CONFIG.jitter,
            retry_if=is_retryable_error,
        )

    async def _request_json(
        self,
        prompt: str,
        model: str,
        token: Optional[CancellationToken]
    ) -> Dict[str, Any]:
        text = await retry_async_call(
            self.client.complete,
            prompt,
            config=self.retry_config,
            token=token,
            model=model or None,
            temperature=self.config.llm.temperature,
            max_tokens=self.config.llm.max_tokens,
            json_mode=True,
            timeout=self.config.llm.timeout,
        )
        payload = parse_json_response(text)
        if not isinstance(payload, dict):
            raise LLMResponseError("Model response is not a JSON object")
        return payload

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    async def parse_structure(
        self,
        raw_text: str,
        language: str,
        model: str,
        token: Optional[CancellationToken] = None
    ) -> ScriptData:
        prompt = f"""Analyze the script below and extract its structure.

Write every text field in {language}.

Return a JSON object:
{{
  "title": "...",
  "genre": "...",
  "logline": "...",
  "characters": [{{"id": "char-1", "name": "...", "gender": "...", "age": "...", "personality": "..."}}],
  "scenes": [{{"id": "scene-1", "location": "...", "time": "...", "atmosphere": "..."}}],
  "props": [{{"id": "prop-1", "name": "...", "category": "{'|'.join(PROP_CATEGORIES)}", "description": "..."}}]
}}

Only include props that recur or matter to the plot.

SCRIPT:
{raw_text}
"""
        payload = await self._request_json(prompt, model, token)
        script_data = normalize_structure(payload)
        logger.info(
            f"Parsed structure: {len(script_data.characters)} characters, "
            f"{len(script_data.scenes)} scenes, {len(script_data.props)} props"
        )
        return script_data

    # -------------------------------------------------------------------------
    # Visuals
    # -------------------------------------------------------------------------

    async def enrich_visuals(
        self,
        script_data: ScriptData,
        model: str,
        visual_style: str,
        language: str,
        token: Optional[CancellationToken] = None,
        only_missing: bool = False
    ) -> ScriptData:
        """Fill ``visual_prompt`` / ``negative_prompt`` for each entity."""
        result = copy.deepcopy(script_data)
        pending = [
            item for item in (*result.characters, *result.scenes, *result.props)
            if not (only_missing and item.visual_prompt)
        ]
        if not pending:
            logger.info("All entities already have visual prompts; nothing to enrich")
            return result

        entities = [
            {"id": item.id, "kind": item.kind.value, "name": item.display_name, **self._describe(item)}
            for item in pending
        ]
        prompt = f"""Write image-generation prompts for the entities below.

Visual style: {visual_style}
Language for descriptions: {language}
Genre: {script_data.genre}

Return a JSON object:
{{"entities": [{{"id": "...", "visual_prompt": "...", "negative_prompt": "..."}}]}}

Entities (JSON):
{json.dumps(entities, ensure_ascii=False, indent=2)}
"""
        payload = await self._request_json(prompt, model, token)

        by_id = {item.id: item for item in pending}
        updated = 0
        for raw in _list(payload.get("entities")):
            if not isinstance(raw, dict):
                continue
            item = by_id.get(_text(raw.get("id")))
            visual_prompt = _text(raw.get("visual_prompt"))
            if item is None or not visual_prompt:
                continue
            item.prompt_versions = update_prompt_with_version(
                item.visual_prompt, visual_prompt, item.prompt_versions, "ai"
            )
            item.visual_prompt = visual_prompt
            item.negative_prompt = _text(raw.get("negative_prompt")) or item.negative_prompt
            if not item.status:
                item.status = STATUS_PENDING
            updated += 1

        if updated < len(pending):
            logger.warning(f"Model returned visual prompts for {updated}/{len(pending)} entities")
        else:
            logger.info(f"Generated visual prompts for {updated} entities")
        return result

    @staticmethod
    def _describe(item) -> Dict[str, str]:
        if isinstance(item, Character):
            return {"gender": item.gender, "age": item.age, "personality": item.personality}
        if isinstance(item, Scene):
            return {"time": item.time, "atmosphere": item.atmosphere}
        return {"category": item.category, "description": item.description}

    # -------------------------------------------------------------------------
    # Shots
    # -------------------------------------------------------------------------

    async def generate_shots(
        self,
        script_data: ScriptData,
        model: str,
        token: Optional[CancellationToken] = None
    ) -> List[Shot]:
        target_seconds = parse_duration_to_seconds(script_data.target_duration) or DEFAULT_TARGET_SECONDS
        shot_duration = self.config.pipeline.default_shot_duration
        plan = plan_shot_counts(len(script_data.scenes), target_seconds, shot_duration)

        shots: List[Shot] = []
        for scene, count in zip(script_data.scenes, plan):
            scene_shots = await self._generate_scene_shots(script_data, scene, count, shot_duration, model, token)
            shots.extend(scene_shots)

        for index, shot in enumerate(shots, start=1):
            shot.id = f"shot-{index}"
            for frame in shot.keyframes:
                frame.id = f"{shot.id}-{frame.type}"

        logger.info(f"Generated {len(shots)} shots across {len(script_data.scenes)} scenes")
        return shots

    async def _generate_scene_shots(
        self,
        script_data: ScriptData,
        scene: Scene,
        count: int,
        shot_duration: float,
        model: str,
        token: Optional[CancellationToken]
    ) -> List[Shot]:
        cast = [{"id": c.id, "name": c.name} for c in script_data.characters]
        props = [{"id": p.id, "name": p.name} for p in script_data.props]
        prompt = f"""Break the scene below into EXACTLY {count} shots of about {shot_duration:g} seconds each.

Language: {script_data.language}
Logline: {script_data.logline}
Scene: {scene.location} ({scene.time}); {scene.atmosphere}
Characters (use ids): {json.dumps(cast, ensure_ascii=False)}
Props (use ids): {json.dumps(props, ensure_ascii=False)}

Return a JSON object:
{{"shots": [{{
  "action_summary": "...",
  "dialogue": "...",
  "camera_movement": "...",
  "shot_size": "...",
  "characters": ["char id"],
  "props": ["prop id"],
  "start_frame_prompt": "...",
  "end_frame_prompt": "...",
  "video_prompt": "..."
}}]}}
"""
        payload = await self._request_json(prompt, model, token)
        shots = [
            self._normalize_shot(raw, scene, script_data)
            for raw in _list(payload.get("shots"))
            if isinstance(raw, dict)
        ]

        if len(shots) != count:
            logger.warning(
                f"Scene {scene.id}: expected {count} shots, model returned {len(shots)}; adjusting"
            )
        shots = shots[:count]
        seed = shots[-1] if shots else None
        while len(shots) < count:
            shots.append(self._filler_shot(scene, seed, len(shots) + 1))
        return shots

    def _normalize_shot(self, raw: Dict[str, Any], scene: Scene, script_data: ScriptData) -> Shot:
        character_ids = self._resolve_refs(raw.get("characters"), script_data.characters)
        prop_ids = self._resolve_refs(raw.get("props"), script_data.props)
        start_prompt = _text(raw.get("start_frame_prompt"))
        end_prompt = _text(raw.get("end_frame_prompt"))

        keyframes = [Keyframe(type=KEYFRAME_START, visual_prompt=start_prompt, status=STATUS_PENDING)]
        if end_prompt:
            keyframes.append(Keyframe(type=KEYFRAME_END, visual_prompt=end_prompt, status=STATUS_PENDING))

        return Shot(
            id="",
            scene_id=scene.id,
            characters=character_ids,
            props=prop_ids,
            action_summary=_text(raw.get("action_summary")) or f"{scene.location} scene continues",
            dialogue=_text(raw.get("dialogue")),
            camera_movement=_text(raw.get("camera_movement")) or DEFAULT_CAMERA_MOVEMENT,
            shot_size=_text(raw.get("shot_size")) or DEFAULT_SHOT_SIZE,
            keyframes=keyframes,
            interval=VideoInterval(
                status=STATUS_PENDING,
                video_prompt=_text(raw.get("video_prompt")),
                duration=self.config.pipeline.default_shot_duration,
            ),
        )

    @staticmethod
    def _resolve_refs(raw_refs: Any, entities) -> List[str]:
        """Map ids (or names) the model used onto real entity ids; drop the rest."""
        by_id = {e.id: e.id for e in entities}
        by_name = {e.display_name.casefold(): e.id for e in entities if e.display_name}
        resolved = []
        for ref in _list(raw_refs):
            key = _text(ref)
            entity_id = by_id.get(key) or by_name.get(key.casefold())
            if entity_id and entity_id not in resolved:
                resolved.append(entity_id)
        return resolved

    def _filler_shot(self, scene: Scene, seed: Optional[Shot], sequence: int) -> Shot:
        base_action = seed.action_summary if seed else f"{scene.location} scene continues"
        return Shot(
            id="",
            scene_id=scene.id,
            characters=list(seed.characters) if seed else [],
            props=list(seed.props) if seed else [],
            action_summary=f"{base_action} (filler shot {sequence})",
            camera_movement=seed.camera_movement if seed else DEFAULT_CAMERA_MOVEMENT,
            shot_size=seed.shot_size if seed else DEFAULT_SHOT_SIZE,
            keyframes=[Keyframe(type=KEYFRAME_START, status=STATUS_PENDING)],
            interval=VideoInterval(status=STATUS_PENDING, duration=self.config.pipeline.default_shot_duration),
        )
