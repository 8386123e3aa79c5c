"""
ScriptFlow Data Models

Dataclass records shared by the generation pipeline, asset matching and
quality scoring. Every record round-trips through ``to_dict`` / ``from_dict``
with snake_case keys; unknown keys are ignored on load.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from .constants import (
    AssetKind,
    GenerationStep,
    KEYFRAME_END,
    KEYFRAME_START,
    SYNC_STATUS_SYNCED,
)

# Fields that hold generated visual work on every library asset
VISUAL_FIELDS = (
    "visual_prompt",
    "negative_prompt",
    "prompt_versions",
    "reference_image",
    "status",
    "library_id",
    "library_version",
    "version",
)

CHARACTER_VISUAL_FIELDS = ("variations", "turnaround", "core_features")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


@dataclass
class PromptVersion:
    """One entry in an asset's prompt history."""
    id: str
    prompt: str
    created_at: str
    source: str = "ai"  # ai | manual | imported
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "created_at": self.created_at,
            "source": self.source,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromptVersion":
        return cls(
            id=_text(data.get("id")),
            prompt=_text(data.get("prompt")),
            created_at=_text(data.get("created_at")),
            source=data.get("source") or "ai",
            note=data.get("note"),
        )


def _versions_from(value: Any) -> List[PromptVersion]:
    if not isinstance(value, list):
        return []
    return [PromptVersion.from_dict(v) for v in value if isinstance(v, dict)]


# =============================================================================
# LIBRARY ASSETS
# =============================================================================

@dataclass
class LibraryAsset:
    """
    Shared shape of characters, scenes and props.

    The ``kind`` class attribute tags the concrete type; ``display_name`` is
    the name used for matching (a scene's location, otherwise its name).
    """
    kind: ClassVar[AssetKind]

    id: str = ""
    visual_prompt: str = ""
    negative_prompt: str = ""
    prompt_versions: List[PromptVersion] = field(default_factory=list)
    reference_image: Optional[str] = None
    status: Optional[str] = None
    version: Optional[int] = None
    library_id: Optional[str] = None
    library_version: Optional[int] = None

    @property
    def display_name(self) -> str:
        return getattr(self, "name", "")

    @property
    def effective_version(self) -> int:
        return self.version or 1

    def _base_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "visual_prompt": self.visual_prompt,
            "negative_prompt": self.negative_prompt,
            "prompt_versions": [v.to_dict() for v in self.prompt_versions],
            "reference_image": self.reference_image,
            "status": self.status,
            "version": self.version,
            "library_id": self.library_id,
            "library_version": self.library_version,
        }

    @staticmethod
    def _base_kwargs(data: Dict[str, Any]) -> Dict[str, Any]:
        # image_url is the legacy name of reference_image
        image = data.get("reference_image") or data.get("image_url")
        return {
            "id": _text(data.get("id")),
            "visual_prompt": _text(data.get("visual_prompt")),
            "negative_prompt": _text(data.get("negative_prompt")),
            "prompt_versions": _versions_from(data.get("prompt_versions")),
            "reference_image": image or None,
            "status": data.get("status"),
            "version": _optional_int(data.get("version")),
            "library_id": data.get("library_id"),
            "library_version": _optional_int(data.get("library_version")),
        }


@dataclass
class CharacterVariation:
    """A named look of a character (costume, age, injury...)."""
    id: str = ""
    name: str = ""
    visual_prompt: str = ""
    negative_prompt: str = ""
    reference_image: Optional[str] = None
    status: Optional[str] = None
    version: Optional[int] = None
    prompt_versions: List[PromptVersion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "visual_prompt": self.visual_prompt,
            "negative_prompt": self.negative_prompt,
            "reference_image": self.reference_image,
            "status": self.status,
            "version": self.version,
            "prompt_versions": [v.to_dict() for v in self.prompt_versions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharacterVariation":
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            visual_prompt=_text(data.get("visual_prompt")),
            negative_prompt=_text(data.get("negative_prompt")),
            reference_image=(data.get("reference_image") or data.get("image_url")) or None,
            status=data.get("status"),
            version=_optional_int(data.get("version")),
            prompt_versions=_versions_from(data.get("prompt_versions")),
        )


@dataclass
class Character(LibraryAsset):
    kind: ClassVar[AssetKind] = AssetKind.CHARACTER

    name: str = ""
    gender: str = ""
    age: str = ""
    personality: str = ""
    core_features: str = ""
    variations: List[CharacterVariation] = field(default_factory=list)
    turnaround: Optional[Dict[str, Any]] = None

    def variation(self, variation_id: Optional[str]) -> Optional[CharacterVariation]:
        if not variation_id:
            return None
        return next((v for v in self.variations if v.id == variation_id), None)

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            "name": self.name,
            "gender": self.gender,
            "age": self.age,
            "personality": self.personality,
            "core_features": self.core_features,
            "variations": [v.to_dict() for v in self.variations],
            "turnaround": self.turnaround,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Character":
        variations = data.get("variations") if isinstance(data.get("variations"), list) else []
        return cls(
            name=_text(data.get("name")),
            gender=_text(data.get("gender")),
            age=_text(data.get("age")),
            personality=_text(data.get("personality")),
            core_features=_text(data.get("core_features")),
            variations=[CharacterVariation.from_dict(v) for v in variations if isinstance(v, dict)],
            turnaround=data.get("turnaround") if isinstance(data.get("turnaround"), dict) else None,
            **cls._base_kwargs(data),
        )


@dataclass
class Scene(LibraryAsset):
    kind: ClassVar[AssetKind] = AssetKind.SCENE

    location: str = ""
    time: str = ""
    atmosphere: str = ""

    @property
    def display_name(self) -> str:
        return self.location

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({"location": self.location, "time": self.time, "atmosphere": self.atmosphere})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scene":
        return cls(
            location=_text(data.get("location")),
            time=_text(data.get("time")),
            atmosphere=_text(data.get("atmosphere")),
            **cls._base_kwargs(data),
        )


@dataclass
class Prop(LibraryAsset):
    kind: ClassVar[AssetKind] = AssetKind.PROP

    name: str = ""
    category: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({"name": self.name, "category": self.category, "description": self.description})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prop":
        return cls(
            name=_text(data.get("name")),
            category=_text(data.get("category")),
            description=_text(data.get("description")),
            **cls._base_kwargs(data),
        )


ASSET_CLASSES = {
    AssetKind.CHARACTER: Character,
    AssetKind.SCENE: Scene,
    AssetKind.PROP: Prop,
}


# =============================================================================
# SHOTS
# =============================================================================

@dataclass
class Keyframe:
    type: str = KEYFRAME_START
    id: str = ""
    visual_prompt: str = ""
    image_url: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "visual_prompt": self.visual_prompt,
            "image_url": self.image_url,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keyframe":
        return cls(
            type=data.get("type") if data.get("type") in (KEYFRAME_START, KEYFRAME_END) else KEYFRAME_START,
            id=_text(data.get("id")),
            visual_prompt=_text(data.get("visual_prompt")),
            image_url=data.get("image_url") or None,
            status=data.get("status"),
        )


@dataclass
class VideoInterval:
    status: Optional[str] = None
    video_prompt: str = ""
    video_url: Optional[str] = None
    duration: Optional[float] = None
    motion_strength: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "video_prompt": self.video_prompt,
            "video_url": self.video_url,
            "duration": self.duration,
            "motion_strength": self.motion_strength,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoInterval":
        return cls(
            status=data.get("status"),
            video_prompt=_text(data.get("video_prompt")),
            video_url=data.get("video_url") or None,
            duration=data.get("duration"),
            motion_strength=data.get("motion_strength"),
        )


@dataclass
class QualityCheck:
    key: str
    label: str
    weight: int
    score: int
    passed: bool
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "weight": self.weight,
            "score": self.score,
            "passed": self.passed,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QualityCheck":
        return cls(
            key=_text(data.get("key")),
            label=_text(data.get("label")),
            weight=int(data.get("weight") or 0),
            score=int(data.get("score") or 0),
            passed=bool(data.get("passed")),
            details=_text(data.get("details")),
        )


@dataclass
class ShotQualityAssessment:
    version: int
    score: int
    grade: str
    summary: str
    checks: List[QualityCheck] = field(default_factory=list)
    generated_at: str = ""

    def check(self, key: str) -> Optional[QualityCheck]:
        return next((c for c in self.checks if c.key == key), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "score": self.score,
            "grade": self.grade,
            "summary": self.summary,
            "checks": [c.to_dict() for c in self.checks],
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShotQualityAssessment":
        return cls(
            version=int(data.get("version") or 1),
            score=int(data.get("score") or 0),
            grade=_text(data.get("grade")),
            summary=_text(data.get("summary")),
            checks=[QualityCheck.from_dict(c) for c in data.get("checks") or [] if isinstance(c, dict)],
            generated_at=_text(data.get("generated_at")),
        )


@dataclass
class Shot:
    id: str
    scene_id: str = ""
    characters: List[str] = field(default_factory=list)
    props: List[str] = field(default_factory=list)
    action_summary: str = ""
    dialogue: str = ""
    camera_movement: str = ""
    shot_size: str = ""
    video_model: str = ""
    keyframes: List[Keyframe] = field(default_factory=list)
    interval: Optional[VideoInterval] = None
    character_variations: Dict[str, str] = field(default_factory=dict)
    quality_assessment: Optional[ShotQualityAssessment] = None

    def keyframe(self, frame_type: str) -> Optional[Keyframe]:
        return next((k for k in self.keyframes if k.type == frame_type), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scene_id": self.scene_id,
            "characters": list(self.characters),
            "props": list(self.props),
            "action_summary": self.action_summary,
            "dialogue": self.dialogue,
            "camera_movement": self.camera_movement,
            "shot_size": self.shot_size,
            "video_model": self.video_model,
            "keyframes": [k.to_dict() for k in self.keyframes],
            "interval": self.interval.to_dict() if self.interval else None,
            "character_variations": dict(self.character_variations),
            "quality_assessment": self.quality_assessment.to_dict() if self.quality_assessment else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shot":
        variations = data.get("character_variations")
        interval = data.get("interval")
        assessment = data.get("quality_assessment")
        return cls(
            id=_text(data.get("id")),
            scene_id=_text(data.get("scene_id")),
            characters=_str_list(data.get("characters")),
            props=_str_list(data.get("props")),
            action_summary=_text(data.get("action_summary")),
            dialogue=_text(data.get("dialogue")),
            camera_movement=_text(data.get("camera_movement")),
            shot_size=_text(data.get("shot_size")),
            video_model=_text(data.get("video_model")),
            keyframes=[Keyframe.from_dict(k) for k in data.get("keyframes") or [] if isinstance(k, dict)],
            interval=VideoInterval.from_dict(interval) if isinstance(interval, dict) else None,
            character_variations={str(k): str(v) for k, v in variations.items()} if isinstance(variations, dict) else {},
            quality_assessment=ShotQualityAssessment.from_dict(assessment) if isinstance(assessment, dict) else None,
        )


# =============================================================================
# SCRIPT DATA
# =============================================================================

@dataclass
class GenerationMeta:
    """Stage fingerprints of the last completed generation."""
    structure_key: Optional[str] = None
    visuals_key: Optional[str] = None
    shots_key: Optional[str] = None
    generated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structure_key": self.structure_key,
            "visuals_key": self.visuals_key,
            "shots_key": self.shots_key,
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationMeta":
        return cls(
            structure_key=data.get("structure_key"),
            visuals_key=data.get("visuals_key"),
            shots_key=data.get("shots_key"),
            generated_at=data.get("generated_at"),
        )


@dataclass
class ScriptData:
    title: str = ""
    genre: str = ""
    logline: str = ""
    target_duration: str = ""
    language: str = ""
    visual_style: str = ""
    shot_generation_model: str = ""
    characters: List[Character] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    props: List[Prop] = field(default_factory=list)
    generation_meta: Optional[GenerationMeta] = None

    def assets(self, kind: AssetKind) -> List[LibraryAsset]:
        if kind == AssetKind.CHARACTER:
            return self.characters
        if kind == AssetKind.SCENE:
            return self.scenes
        return self.props

    def character(self, character_id: str) -> Optional[Character]:
        return next((c for c in self.characters if c.id == character_id), None)

    def scene(self, scene_id: str) -> Optional[Scene]:
        return next((s for s in self.scenes if s.id == scene_id), None)

    def prop(self, prop_id: str) -> Optional[Prop]:
        return next((p for p in self.props if p.id == prop_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "genre": self.genre,
            "logline": self.logline,
            "target_duration": self.target_duration,
            "language": self.language,
            "visual_style": self.visual_style,
            "shot_generation_model": self.shot_generation_model,
            "characters": [c.to_dict() for c in self.characters],
            "scenes": [s.to_dict() for s in self.scenes],
            "props": [p.to_dict() for p in self.props],
            "generation_meta": self.generation_meta.to_dict() if self.generation_meta else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScriptData":
        meta = data.get("generation_meta")
        return cls(
            title=_text(data.get("title")),
            genre=_text(data.get("genre")),
            logline=_text(data.get("logline")),
            target_duration=_text(data.get("target_duration")),
            language=_text(data.get("language")),
            visual_style=_text(data.get("visual_style")),
            shot_generation_model=_text(data.get("shot_generation_model")),
            characters=[Character.from_dict(c) for c in data.get("characters") or [] if isinstance(c, dict)],
            scenes=[Scene.from_dict(s) for s in data.get("scenes") or [] if isinstance(s, dict)],
            props=[Prop.from_dict(p) for p in data.get("props") or [] if isinstance(p, dict)],
            generation_meta=GenerationMeta.from_dict(meta) if isinstance(meta, dict) else None,
        )


@dataclass
class GenerationDraft:
    """The user's editable input to a generation run."""
    script: str
    title: str = ""
    language: str = "English"
    target_duration: str = "60s"
    visual_style: str = "3d-animation"
    model: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "script": self.script,
            "title": self.title,
            "language": self.language,
            "target_duration": self.target_duration,
            "visual_style": self.visual_style,
            "model": self.model,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationDraft":
        draft = cls(script=_text(data.get("script")))
        for name in ("title", "language", "target_duration", "visual_style", "model"):
            if data.get(name) is not None:
                setattr(draft, name, _text(data[name]))
        return draft


@dataclass
class Checkpoint:
    """Resumable snapshot written by the orchestrator after each stage."""
    step: GenerationStep
    config_key: str
    script_data: Optional[ScriptData] = None
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "config_key": self.config_key,
            "script_data": self.script_data.to_dict() if self.script_data else None,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        script_data = data.get("script_data")
        return cls(
            step=GenerationStep(data.get("step")),
            config_key=_text(data.get("config_key")),
            script_data=ScriptData.from_dict(script_data) if isinstance(script_data, dict) else None,
            updated_at=_text(data.get("updated_at")),
        )


# =============================================================================
# LIBRARY / MATCHING
# =============================================================================

@dataclass
class AssetRef:
    """Sync record linking a project entity to its library source."""
    entity_id: str
    synced_version: int = 1
    sync_status: str = SYNC_STATUS_SYNCED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "synced_version": self.synced_version,
            "sync_status": self.sync_status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetRef":
        return cls(
            entity_id=_text(data.get("entity_id")),
            synced_version=_optional_int(data.get("synced_version")) or 1,
            sync_status=data.get("sync_status") or SYNC_STATUS_SYNCED,
        )


@dataclass
class AssetLibrary:
    """Read-only view of the project-level asset library."""
    characters: List[Character] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    props: List[Prop] = field(default_factory=list)

    def assets(self, kind: AssetKind) -> List[LibraryAsset]:
        if kind == AssetKind.CHARACTER:
            return self.characters
        if kind == AssetKind.SCENE:
            return self.scenes
        return self.props

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetLibrary":
        return cls(
            characters=[Character.from_dict(c) for c in data.get("characters") or [] if isinstance(c, dict)],
            scenes=[Scene.from_dict(s) for s in data.get("scenes") or [] if isinstance(s, dict)],
            props=[Prop.from_dict(p) for p in data.get("props") or [] if isinstance(p, dict)],
        )


@dataclass
class AssetMatchItem:
    ai_asset: LibraryAsset
    library_asset: Optional[LibraryAsset] = None
    reuse: bool = False
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ai_asset": self.ai_asset.to_dict(),
            "library_asset": self.library_asset.to_dict() if self.library_asset else None,
            "reuse": self.reuse,
            "score": round(self.score, 4),
        }


@dataclass
class AssetMatchResult:
    characters: List[AssetMatchItem] = field(default_factory=list)
    scenes: List[AssetMatchItem] = field(default_factory=list)
    props: List[AssetMatchItem] = field(default_factory=list)

    def items(self, kind: AssetKind) -> List[AssetMatchItem]:
        if kind == AssetKind.CHARACTER:
            return self.characters
        if kind == AssetKind.SCENE:
            return self.scenes
        return self.props

    @property
    def has_any_match(self) -> bool:
        return any(
            item.library_asset is not None
            for item in (*self.characters, *self.scenes, *self.props)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "characters": [i.to_dict() for i in self.characters],
            "scenes": [i.to_dict() for i in self.scenes],
            "props": [i.to_dict() for i in self.props],
            "has_any_match": self.has_any_match,
        }
