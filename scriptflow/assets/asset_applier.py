"""
Asset Applier

Commits reviewed asset matches: every reused entity gets a new id and the
library's visual data, shots are rewired through per-kind id remap tables,
and version-tracked sync refs are produced for the library assets in use.
"""

import copy
import uuid
from dataclasses import dataclass, field, fields
from typing import Callable, Dict, List, Optional

from scriptflow.core.constants import ASSET_ID_PREFIXES, AssetKind, STATUS_COMPLETED, SYNC_STATUS_SYNCED
from scriptflow.core.logging_config import get_logger
from scriptflow.core.models import (
    AssetMatchItem,
    AssetMatchResult,
    AssetRef,
    LibraryAsset,
    ScriptData,
    Shot,
)

logger = get_logger("assets.applier")

IdFactory = Callable[[AssetKind], str]


def default_id_factory(kind: AssetKind) -> str:
    return f"{ASSET_ID_PREFIXES[kind]}_{uuid.uuid4().hex[:12]}"


def is_empty(value) -> bool:
    return value is None or value == "" or value == [] or value == {}


@dataclass
class ApplyResult:
    script_data: ScriptData
    shots: List[Shot]
    character_refs: List[AssetRef] = field(default_factory=list)
    scene_refs: List[AssetRef] = field(default_factory=list)
    prop_refs: List[AssetRef] = field(default_factory=list)
    id_maps: Dict[AssetKind, Dict[str, str]] = field(default_factory=dict)

    def refs(self, kind: AssetKind) -> List[AssetRef]:
        if kind == AssetKind.CHARACTER:
            return self.character_refs
        if kind == AssetKind.SCENE:
            return self.scene_refs
        return self.prop_refs

    def to_dict(self):
        return {
            "script_data": self.script_data.to_dict(),
            "shots": [s.to_dict() for s in self.shots],
            "character_refs": [r.to_dict() for r in self.character_refs],
            "scene_refs": [r.to_dict() for r in self.scene_refs],
            "prop_refs": [r.to_dict() for r in self.prop_refs],
        }


def merge_library_asset(ai_asset: LibraryAsset, library_asset: LibraryAsset, new_id: str) -> LibraryAsset:
    """
    Build the entity that replaces ``ai_asset``.

    Library fields win; a field the library leaves empty falls back to the
    generated value. Status becomes completed when the library has an image.
    """
    merged = copy.deepcopy(library_asset)
    if type(ai_asset) is type(library_asset):
        for f in fields(merged):
            if is_empty(getattr(merged, f.name)) and not is_empty(getattr(ai_asset, f.name)):
                setattr(merged, f.name, copy.deepcopy(getattr(ai_asset, f.name)))

    merged.id = new_id
    merged.status = STATUS_COMPLETED if library_asset.reference_image else (library_asset.status or ai_asset.status)
    merged.library_id = library_asset.id
    merged.library_version = library_asset.effective_version
    return merged


def _dedupe_refs(refs: List[AssetRef]) -> List[AssetRef]:
    # Last write wins, first-seen order kept
    by_id: Dict[str, AssetRef] = {}
    for ref in refs:
        by_id[ref.entity_id] = ref
    return list(by_id.values())


def apply_asset_matches(
    script_data: ScriptData,
    shots: List[Shot],
    matches: AssetMatchResult,
    id_factory: Optional[IdFactory] = None
) -> ApplyResult:
    """
    Apply the user-reviewed ``matches`` to ``script_data`` and ``shots``.

    Reuse decisions are taken verbatim from ``matches``. Inputs are not
    mutated; entities that are not reused keep their generated ids.
    """
    id_factory = id_factory or default_id_factory
    id_maps: Dict[AssetKind, Dict[str, str]] = {kind: {} for kind in AssetKind}
    refs: Dict[AssetKind, List[AssetRef]] = {kind: [] for kind in AssetKind}
    new_assets: Dict[AssetKind, List[LibraryAsset]] = {}

    for kind in AssetKind:
        entities = []
        for item in matches.items(kind):
            entities.append(_apply_item(kind, item, id_factory, id_maps[kind], refs[kind]))
        new_assets[kind] = entities

    new_script = copy.deepcopy(script_data)
    new_script.characters = new_assets[AssetKind.CHARACTER]
    new_script.scenes = new_assets[AssetKind.SCENE]
    new_script.props = new_assets[AssetKind.PROP]

    new_shots = [_remap_shot(shot, id_maps) for shot in shots]

    reused = sum(len(m) for m in id_maps.values())
    logger.info(f"Applied {reused} library asset(s) to {len(new_shots)} shot(s)")

    return ApplyResult(
        script_data=new_script,
        shots=new_shots,
        character_refs=_dedupe_refs(refs[AssetKind.CHARACTER]),
        scene_refs=_dedupe_refs(refs[AssetKind.SCENE]),
        prop_refs=_dedupe_refs(refs[AssetKind.PROP]),
        id_maps=id_maps,
    )


def _apply_item(
    kind: AssetKind,
    item: AssetMatchItem,
    id_factory: IdFactory,
    id_map: Dict[str, str],
    refs: List[AssetRef]
) -> LibraryAsset:
    if not (item.reuse and item.library_asset is not None):
        return copy.deepcopy(item.ai_asset)

    library_asset = item.library_asset
    new_id = id_factory(kind)
    id_map[item.ai_asset.id] = new_id
    refs.append(AssetRef(
        entity_id=library_asset.id,
        synced_version=library_asset.effective_version,
        sync_status=SYNC_STATUS_SYNCED,
    ))
    return merge_library_asset(item.ai_asset, library_asset, new_id)


def _remap_shot(shot: Shot, id_maps: Dict[AssetKind, Dict[str, str]]) -> Shot:
    char_map = id_maps[AssetKind.CHARACTER]
    scene_map = id_maps[AssetKind.SCENE]
    prop_map = id_maps[AssetKind.PROP]

    new_shot = copy.deepcopy(shot)
    new_shot.characters = [char_map.get(cid, cid) for cid in shot.characters]
    new_shot.scene_id = scene_map.get(shot.scene_id, shot.scene_id)
    new_shot.props = [prop_map.get(pid, pid) for pid in shot.props]
    new_shot.character_variations = {
        char_map.get(cid, cid): variation_id
        for cid, variation_id in shot.character_variations.items()
    }
    return new_shot
