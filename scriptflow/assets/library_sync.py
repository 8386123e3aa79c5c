"""
Library Sync

Detects project entities whose library source has moved on, and re-applies
the newer library version to the linked entities.
"""

import copy
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from scriptflow.core.constants import SYNC_STATUS_LOCAL_ONLY, SYNC_STATUS_SYNCED
from scriptflow.core.logging_config import get_logger
from scriptflow.core.models import AssetRef, Character, LibraryAsset, ScriptData

logger = get_logger("assets.library_sync")


@dataclass
class SyncCheckResult:
    outdated_refs: List[AssetRef] = field(default_factory=list)
    missing_in_library: List[AssetRef] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.outdated_refs and not self.missing_in_library


def check_sync(refs: Sequence[AssetRef], library_items: Sequence[LibraryAsset]) -> SyncCheckResult:
    """Classify refs as outdated (library has a newer version) or missing from the library."""
    by_id = {item.id: item for item in library_items}
    result = SyncCheckResult()

    for ref in refs:
        if ref.sync_status == SYNC_STATUS_LOCAL_ONLY:
            continue

        library_item = by_id.get(ref.entity_id)
        if library_item is None:
            result.missing_in_library.append(ref)
        elif library_item.effective_version > ref.synced_version:
            result.outdated_refs.append(ref)

    return result


def upsert_ref(refs: Sequence[AssetRef], next_ref: AssetRef) -> List[AssetRef]:
    """Replace the ref for ``next_ref.entity_id`` in place, or append it."""
    updated = []
    found = False
    for ref in refs:
        if ref.entity_id == next_ref.entity_id:
            updated.append(next_ref)
            found = True
        else:
            updated.append(ref)
    if not found:
        updated.append(next_ref)
    return updated


def sync_entity(
    script_data: ScriptData,
    refs: Sequence[AssetRef],
    library_asset: LibraryAsset
) -> Tuple[ScriptData, List[AssetRef]]:
    """
    Re-apply ``library_asset`` to every entity linked to it.

    Linked entities keep their local id; characters also keep their own
    variations. Returns the updated script data and refs; inputs are not mutated.
    """
    version = library_asset.effective_version
    new_script = copy.deepcopy(script_data)
    entities = new_script.assets(library_asset.kind)

    updated = 0
    for index, entity in enumerate(entities):
        if entity.library_id != library_asset.id:
            continue
        synced = copy.deepcopy(library_asset)
        synced.id = entity.id
        synced.library_id = library_asset.id
        synced.library_version = version
        if isinstance(synced, Character) and isinstance(entity, Character):
            synced.variations = entity.variations
        entities[index] = synced
        updated += 1

    next_refs = upsert_ref(refs, AssetRef(
        entity_id=library_asset.id,
        synced_version=version,
        sync_status=SYNC_STATUS_SYNCED,
    ))
    logger.info(
        f"Synced {library_asset.kind.value} '{library_asset.display_name}' to v{version} "
        f"({updated} linked entit{'y' if updated == 1 else 'ies'})"
    )
    return new_script, next_refs
