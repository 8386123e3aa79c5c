"""
Visual Data Reuse

Carries previously generated visual work (prompts, reference images,
variations, library links) over to freshly parsed entities so that a
re-parsed script does not pay for visuals it already has.

The reducer ``merge_visual_fields(old, new)`` only fills fields the new item
left empty; freshly generated content always wins.
"""

import copy
import re
from typing import Dict, List, Optional, TypeVar

from scriptflow.core.constants import AssetKind, STATUS_PENDING
from scriptflow.core.logging_config import get_logger
from scriptflow.core.models import (
    CHARACTER_VISUAL_FIELDS,
    Character,
    GenerationDraft,
    LibraryAsset,
    ScriptData,
    VISUAL_FIELDS,
)

logger = get_logger("pipelines.visual_reuse")

AssetT = TypeVar("AssetT", bound=LibraryAsset)

_NON_WORD_RE = re.compile(r"[\W_]+")


def normalize_entity_name(name: Optional[str]) -> str:
    """Case-fold, strip punctuation and collapse whitespace."""
    return " ".join(_NON_WORD_RE.sub(" ", (name or "").casefold()).split())


def _is_unset(field_name: str, value) -> bool:
    if value is None or value == "" or value == [] or value == {}:
        return True
    return field_name == "status" and value == STATUS_PENDING


def merge_visual_fields(old: AssetT, new: AssetT) -> AssetT:
    """
    Return a copy of ``new`` with empty visual fields filled from ``old``.

    Covers prompts, prompt history, reference image, status, library linkage
    and version; for characters also variations, turnaround and core features.
    A ``pending`` status counts as unset.
    """
    merged = copy.deepcopy(new)
    names = VISUAL_FIELDS + (CHARACTER_VISUAL_FIELDS if isinstance(new, Character) else ())
    for name in names:
        if not hasattr(old, name):
            continue
        old_value = getattr(old, name)
        if _is_unset(name, getattr(merged, name)) and not _is_unset(name, old_value):
            setattr(merged, name, copy.deepcopy(old_value))
    return merged


def _reuse_list(fresh: List[AssetT], previous: List[AssetT]) -> List[AssetT]:
    by_id: Dict[str, AssetT] = {item.id: item for item in previous if item.id}
    by_name: Dict[str, AssetT] = {}
    for item in previous:
        key = normalize_entity_name(item.display_name)
        if key:
            by_name.setdefault(key, item)

    result = []
    for item in fresh:
        match = by_id.get(item.id) if item.id else None
        if match is None:
            match = by_name.get(normalize_entity_name(item.display_name))
        result.append(merge_visual_fields(match, item) if match is not None else copy.deepcopy(item))
    return result


def reuse_visual_data(fresh: ScriptData, previous: Optional[ScriptData]) -> ScriptData:
    """Merge previous visuals onto ``fresh`` per kind, matching by id then by name."""
    if previous is None:
        return copy.deepcopy(fresh)

    merged = copy.deepcopy(fresh)
    merged.characters = _reuse_list(fresh.characters, previous.characters)
    merged.scenes = _reuse_list(fresh.scenes, previous.scenes)
    merged.props = _reuse_list(fresh.props, previous.props)

    reused = sum(
        1 for kind in AssetKind for item in merged.assets(kind) if item.visual_prompt or item.reference_image
    )
    logger.debug(f"Visual reuse: {reused} entit{'y' if reused == 1 else 'ies'} carry visual data")
    return merged


def visual_inputs_unchanged(previous: Optional[ScriptData], draft: GenerationDraft) -> bool:
    """True when the inputs that shape visuals match the previous run's."""
    if previous is None:
        return False
    return (
        previous.language == draft.language
        and previous.visual_style == draft.visual_style
        and previous.shot_generation_model == draft.model
        and previous.target_duration == draft.target_duration
    )
