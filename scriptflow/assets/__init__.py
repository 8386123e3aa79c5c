"""
ScriptFlow Assets Module

Matching generated entities against the project library, applying reviewed
matches, and keeping library-derived entities in sync.
"""

from .similarity import dice_bigram, jaccard, name_similarity, normalize_name, tokenize
from .asset_matcher import AssetMatcher, find_asset_matches, pick_best_by_name
from .asset_applier import ApplyResult, apply_asset_matches, merge_library_asset
from .library_sync import SyncCheckResult, check_sync, sync_entity, upsert_ref

__all__ = [
    'normalize_name',
    'tokenize',
    'jaccard',
    'dice_bigram',
    'name_similarity',
    'AssetMatcher',
    'find_asset_matches',
    'pick_best_by_name',
    'ApplyResult',
    'apply_asset_matches',
    'merge_library_asset',
    'SyncCheckResult',
    'check_sync',
    'sync_entity',
    'upsert_ref',
]
