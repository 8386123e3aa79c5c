"""
Asset Matcher

Fuzzy-matches freshly generated characters, scenes and props against the
project asset library. Each generated entity gets at most one library
candidate: the best total score among candidates whose base name score clears
a threshold scaled by the target name's length. Bonuses only break ties
between candidates that already cleared the threshold.
"""

from typing import Callable, List, Optional, Sequence

from scriptflow.core.config import MatchingConfig
from scriptflow.core.constants import AssetKind
from scriptflow.core.logging_config import get_logger
from scriptflow.core.models import (
    AssetLibrary,
    AssetMatchItem,
    AssetMatchResult,
    LibraryAsset,
    Prop,
    Scene,
    ScriptData,
)

from .similarity import name_similarity, normalize_name

logger = get_logger("assets.matcher")


class AssetMatcher:
    """Finds reusable library assets for generated script entities."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()

    def find_matches(self, script_data: ScriptData, library: AssetLibrary) -> AssetMatchResult:
        """Propose one library asset (or none) per generated entity; proposals default to reuse."""
        result = AssetMatchResult()
        for kind in AssetKind:
            candidates = library.assets(kind)
            items = result.items(kind)
            for ai_asset in script_data.assets(kind):
                match, score = self.best_match(ai_asset, candidates)
                items.append(AssetMatchItem(
                    ai_asset=ai_asset,
                    library_asset=match,
                    reuse=match is not None,
                    score=score,
                ))
                if match is not None:
                    logger.debug(
                        f"Matched {kind.value} '{ai_asset.display_name}' -> "
                        f"'{match.display_name}' ({match.id}, score {score:.3f})"
                    )

        matched = sum(1 for kind in AssetKind for item in result.items(kind) if item.library_asset)
        logger.info(f"Asset matching found {matched} library match(es)")
        return result

    def best_match(self, ai_asset: LibraryAsset, candidates: Sequence[LibraryAsset]):
        """Return ``(asset, total_score)`` for the best candidate, or ``(None, 0.0)``."""
        extra = self._extra_scorer(ai_asset)
        return self._pick_best(candidates, ai_asset.display_name, extra)

    def _pick_best(
        self,
        candidates: Sequence[LibraryAsset],
        target_name: str,
        extra_score: Optional[Callable[[LibraryAsset], float]] = None
    ):
        normalized_target = normalize_name(target_name)
        if not normalized_target:
            return None, 0.0

        cfg = self.config
        min_score = cfg.threshold_for(len(normalized_target))

        best: Optional[LibraryAsset] = None
        best_score = 0.0
        for item in candidates:
            base = name_similarity(item.display_name, target_name, cfg)
            if base < min_score:
                continue

            total = base
            total += cfg.image_bonus if item.reference_image else 0.0
            total += min(item.effective_version, cfg.version_bonus_cap) * cfg.version_bonus_step
            total += min(len(item.visual_prompt or ""), cfg.prompt_bonus_chars) / cfg.prompt_bonus_divisor
            if extra_score:
                total += extra_score(item)

            if total > best_score:
                best, best_score = item, total

        return best, best_score

    def _extra_scorer(self, ai_asset: LibraryAsset) -> Optional[Callable[[LibraryAsset], float]]:
        cfg = self.config

        if isinstance(ai_asset, Scene):
            ai_time = normalize_name(ai_asset.time)
            ai_atmosphere = normalize_name(ai_asset.atmosphere)

            def scene_extra(lib: LibraryAsset) -> float:
                score = 0.0
                if ai_time and ai_time == normalize_name(getattr(lib, "time", "")):
                    score += cfg.scene_time_bonus
                if ai_atmosphere and ai_atmosphere == normalize_name(getattr(lib, "atmosphere", "")):
                    score += cfg.scene_atmosphere_bonus
                return score

            return scene_extra

        if isinstance(ai_asset, Prop):
            ai_category = normalize_name(ai_asset.category)
            ai_description = ai_asset.description or ""

            def prop_extra(lib: LibraryAsset) -> float:
                score = 0.0
                if ai_category and ai_category == normalize_name(getattr(lib, "category", "")):
                    score += cfg.prop_category_bonus
                lib_description = getattr(lib, "description", "")
                if ai_description and lib_description:
                    similarity = name_similarity(ai_description, lib_description, cfg)
                    score += min(cfg.prop_description_cap, similarity * cfg.prop_description_factor)
                return score

            return prop_extra

        return None


def find_asset_matches(
    script_data: ScriptData,
    library: AssetLibrary,
    config: Optional[MatchingConfig] = None
) -> AssetMatchResult:
    """Convenience wrapper around ``AssetMatcher.find_matches``."""
    return AssetMatcher(config).find_matches(script_data, library)


def pick_best_by_name(
    candidates: List[LibraryAsset],
    target_name: str,
    config: Optional[MatchingConfig] = None
) -> Optional[LibraryAsset]:
    """Best name-only match for ``target_name`` among ``candidates``."""
    best, _ = AssetMatcher(config)._pick_best(candidates, target_name)
    return best
