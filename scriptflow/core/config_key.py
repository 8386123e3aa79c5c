"""
Content-addressed fingerprints for generation inputs.

A key is ``v1-<hash>-<length>`` where the hash is a djb2-xor fold over the
UTF-16 code units of the record's canonical JSON form. The hash is not
cryptographic; collisions are possible and tolerated.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict

from .constants import CONFIG_KEY_HASH_SEED, CONFIG_KEY_VERSION
from .models import GenerationDraft


def canonical_json(record: Any) -> str:
    """Serialize a record deterministically (sorted keys, compact, non-ASCII kept)."""
    return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _utf16_units(text: str):
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def hash_text(text: str) -> str:
    """Fold ``text`` into a ``<hex>-<utf16 length>`` digest."""
    h = CONFIG_KEY_HASH_SEED
    length = 0
    for code in _utf16_units(text):
        h = (((h << 5) + h) & 0xFFFFFFFF) ^ code
        length += 1
    return f"{h:x}-{length}"


def build_config_key(record: Any) -> str:
    """Fingerprint any JSON-serializable record."""
    return f"{CONFIG_KEY_VERSION}-{hash_text(canonical_json(record))}"


@dataclass(frozen=True)
class StageKeys:
    structure_key: str
    visuals_key: str
    shots_key: str


def _draft_fields(draft: GenerationDraft) -> Dict[str, Any]:
    return {
        "script": draft.script,
        "language": draft.language,
        "target_duration": draft.target_duration,
        "model": draft.model,
        "visual_style": draft.visual_style,
    }


def build_run_key(draft: GenerationDraft) -> str:
    """Top-level fingerprint a checkpoint must match to be resumed."""
    return build_config_key(_draft_fields(draft))


def build_stage_keys(draft: GenerationDraft) -> StageKeys:
    """Per-stage fingerprints, each over only the fields that stage consumes."""
    fields = _draft_fields(draft)

    def subset(*names: str) -> str:
        return build_config_key({name: fields[name] for name in names})

    return StageKeys(
        structure_key=subset("script", "language", "model"),
        visuals_key=subset("language", "visual_style", "model"),
        shots_key=subset("target_duration", "language", "visual_style", "model"),
    )
