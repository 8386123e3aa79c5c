"""Prompt history helpers for visual assets."""

import uuid
from datetime import datetime
from typing import List, Optional

from .models import PromptVersion

DEFAULT_HISTORY_LIMIT = 30


def _normalize(prompt: Optional[str]) -> str:
    return (prompt or "").strip()


def create_prompt_version(prompt: str, source: str, note: Optional[str] = None) -> PromptVersion:
    return PromptVersion(
        id=f"pv-{uuid.uuid4().hex[:12]}",
        prompt=prompt,
        created_at=datetime.now().isoformat(),
        source=source,
        note=note,
    )


def append_prompt_version(
    versions: Optional[List[PromptVersion]],
    prompt: Optional[str],
    source: str,
    note: Optional[str] = None,
    max_entries: int = DEFAULT_HISTORY_LIMIT
) -> List[PromptVersion]:
    """
    Return a new history with ``prompt`` appended.

    Blank prompts and repeats of the latest entry leave the history unchanged.
    Only the newest ``max_entries`` entries are kept.
    """
    history = list(versions or [])
    normalized = _normalize(prompt)
    if not normalized:
        return history

    if history and _normalize(history[-1].prompt) == normalized:
        return history

    history.append(create_prompt_version(normalized, source, note))
    return history[-max_entries:]


def update_prompt_with_version(
    current_prompt: Optional[str],
    next_prompt: Optional[str],
    versions: Optional[List[PromptVersion]],
    source: str,
    note: Optional[str] = None
) -> List[PromptVersion]:
    """Record a prompt change, backfilling the current prompt when history is empty."""
    history = list(versions or [])
    current = _normalize(current_prompt)

    if not history and current:
        history = append_prompt_version(history, current, "imported", "Initial snapshot")

    if not _normalize(next_prompt):
        return history
    return append_prompt_version(history, next_prompt, source, note)


def find_prompt_version(versions: Optional[List[PromptVersion]], version_id: str) -> Optional[PromptVersion]:
    return next((v for v in versions or [] if v.id == version_id), None)
