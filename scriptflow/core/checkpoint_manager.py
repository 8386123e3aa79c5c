"""Checkpoint stores for resumable script generation.

A session holds exactly one checkpoint at a time. The orchestrator overwrites
it after every stage transition and clears it when a run completes, so a
later run with the same draft can resume after a failure or cancellation.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Protocol, Union
from urllib.parse import quote

from .exceptions import CheckpointError
from .logging_config import get_logger
from .models import Checkpoint

logger = get_logger("core.checkpoint_manager")


class CheckpointStore(Protocol):
    """Persistence for one checkpoint per session."""

    async def load(self, session_id: str) -> Optional[Checkpoint]:
        ...

    async def save(self, session_id: str, checkpoint: Checkpoint) -> None:
        ...

    async def clear(self, session_id: str) -> None:
        ...


class InMemoryCheckpointStore:
    """Process-local store, mainly for tests and one-shot CLI runs."""

    def __init__(self):
        self._checkpoints: Dict[str, dict] = {}

    async def load(self, session_id: str) -> Optional[Checkpoint]:
        data = self._checkpoints.get(session_id)
        # Stored as dicts so callers never share mutable state with the store
        return Checkpoint.from_dict(data) if data else None

    async def save(self, session_id: str, checkpoint: Checkpoint) -> None:
        self._checkpoints[session_id] = checkpoint.to_dict()

    async def clear(self, session_id: str) -> None:
        self._checkpoints.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._checkpoints


class JsonCheckpointStore:
    """
    Stores each session's checkpoint as ``session-<quoted id>.json``.

    Ids are percent-encoded rather than slugified so that distinct sessions
    (``"ep 1"``, ``"ep_1"``, ``"ep/1"``) never share a file.
    """

    def __init__(self, checkpoint_dir: Union[str, Path]):
        self.checkpoint_dir = Path(checkpoint_dir)

    def path_for(self, session_id: str) -> Path:
        return self.checkpoint_dir / f"session-{quote(session_id, safe='')}.json"

    async def load(self, session_id: str) -> Optional[Checkpoint]:
        path = self.path_for(session_id)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            checkpoint = Checkpoint.from_dict(data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {path.name}: {e}")
            return None

        logger.debug(f"Loaded checkpoint for {session_id} at step '{checkpoint.step.value}'")
        return checkpoint

    async def save(self, session_id: str, checkpoint: Checkpoint) -> None:
        path = self.path_for(session_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(checkpoint.to_dict(), indent=2, ensure_ascii=False),
                encoding="utf-8"
            )
            tmp_path.replace(path)
        except OSError as e:
            raise CheckpointError(
                f"Failed to save checkpoint for session '{session_id}'",
                {"path": str(path), "error": str(e)}
            )
        logger.info(f"Saved checkpoint for {session_id} at step '{checkpoint.step.value}'")

    async def clear(self, session_id: str) -> None:
        path = self.path_for(session_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CheckpointError(
                f"Failed to clear checkpoint for session '{session_id}'",
                {"path": str(path), "error": str(e)}
            )
        logger.debug(f"Cleared checkpoint for {session_id}")
