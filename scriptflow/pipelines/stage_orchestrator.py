"""
Stage Orchestrator

Incremental script-to-shot generation as a ``structure -> visuals -> shots``
state machine. Each run decides where to start from a saved checkpoint or
from the previous run's stage fingerprints, persists a checkpoint before
every stage so an interrupted run loses at most one stage of work, and
clears it when the run completes.

Resume rules:
- A checkpoint whose ``config_key`` matches the draft's run key is the seed.
  Any other checkpoint is discarded, never partially trusted.
- Otherwise the first stage whose fingerprint differs from the previous
  run's ``generation_meta`` is re-run, and everything after it.
- If nothing differs and shots exist, the run is a no-op.
"""

import asyncio
import copy
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from scriptflow.assets.asset_matcher import AssetMatcher
from scriptflow.core.cancellation import CancellationToken, run_cancellable
from scriptflow.core.checkpoint_manager import CheckpointStore, InMemoryCheckpointStore
from scriptflow.core.config import ScriptFlowConfig, get_default_config
from scriptflow.core.config_key import StageKeys, build_run_key, build_stage_keys
from scriptflow.core.constants import GenerationStep, STAGE_ORDER
from scriptflow.core.exceptions import PipelineStageError, StageCancelledError
from scriptflow.core.logging_config import get_logger, session_context
from scriptflow.core.models import (
    AssetLibrary,
    AssetMatchResult,
    Checkpoint,
    GenerationDraft,
    GenerationMeta,
    ScriptData,
    Shot,
)

from .base_pipeline import BasePipeline, PipelineResult, PipelineStatus, PipelineStep, ProgressObserver
from .visual_reuse import reuse_visual_data, visual_inputs_unchanged

logger = get_logger("pipelines.stage_orchestrator")

NO_CHANGES_MESSAGE = "No changes detected; skipped regeneration."

_PLACEHOLDER_TITLE_PATTERNS = (
    re.compile(r"^untitled\b", re.IGNORECASE),
    re.compile(r"^episode\s*\d+$", re.IGNORECASE),
    re.compile(r"^project\s+\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}$", re.IGNORECASE),
)


class StageGenerator(Protocol):
    """The generative-model collaborator, one call per stage."""

    async def parse_structure(
        self,
        raw_text: str,
        language: str,
        model: str,
        token: Optional[CancellationToken] = None
    ) -> ScriptData:
        ...

    async def enrich_visuals(
        self,
        script_data: ScriptData,
        model: str,
        visual_style: str,
        language: str,
        token: Optional[CancellationToken] = None,
        only_missing: bool = False
    ) -> ScriptData:
        ...

    async def generate_shots(
        self,
        script_data: ScriptData,
        model: str,
        token: Optional[CancellationToken] = None
    ) -> List[Shot]:
        ...


def is_placeholder_title(title: Optional[str]) -> bool:
    text = (title or "").strip()
    if not text:
        return True
    return any(pattern.search(text) for pattern in _PLACEHOLDER_TITLE_PATTERNS)


def hydrate_script_meta(script_data: ScriptData, draft: GenerationDraft) -> ScriptData:
    """Stamp the draft's generation settings (and a real title) onto ``script_data``."""
    hydrated = copy.deepcopy(script_data)
    hydrated.target_duration = draft.target_duration
    hydrated.language = draft.language
    hydrated.visual_style = draft.visual_style
    hydrated.shot_generation_model = draft.model
    if not is_placeholder_title(draft.title):
        hydrated.title = draft.title.strip()
    return hydrated


def plan_start_step(
    keys: StageKeys,
    previous: Optional[ScriptData],
    previous_shots: Optional[List[Shot]]
) -> GenerationStep:
    """First stage whose inputs changed since the previous run, or DONE."""
    meta = previous.generation_meta if previous is not None else None
    if meta is None or meta.structure_key != keys.structure_key:
        return GenerationStep.STRUCTURE
    if meta.visuals_key != keys.visuals_key:
        return GenerationStep.VISUALS
    if meta.shots_key != keys.shots_key or not previous_shots:
        return GenerationStep.SHOTS
    return GenerationStep.DONE


@dataclass
class GenerationOutput:
    """What a generation run hands back to the caller."""
    script_data: Optional[ScriptData]
    shots: List[Shot] = field(default_factory=list)
    start_step: GenerationStep = GenerationStep.STRUCTURE
    stages_run: List[str] = field(default_factory=list)
    skipped: bool = False
    resumed: bool = False
    matches: Optional[AssetMatchResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "script_data": self.script_data.to_dict() if self.script_data else None,
            "shots": [s.to_dict() for s in self.shots],
            "start_step": self.start_step.value,
            "stages_run": list(self.stages_run),
            "skipped": self.skipped,
            "resumed": self.resumed,
            "matches": self.matches.to_dict() if self.matches else None,
        }


@dataclass
class GenerationState:
    """Mutable state threaded through the stages of one run."""
    draft: GenerationDraft
    session_id: str
    run_key: str
    keys: StageKeys
    start_step: GenerationStep
    script_data: Optional[ScriptData] = None
    shots: List[Shot] = field(default_factory=list)
    previous: Optional[ScriptData] = None
    only_missing_visuals: bool = False
    resumed: bool = False
    stages_run: List[str] = field(default_factory=list)
    library: Optional[AssetLibrary] = None


class StageOrchestrator(BasePipeline[GenerationState, GenerationOutput]):
    """
    Runs the generation stages for one session at a time.

    Starting a run for a session that already has one in flight cancels the
    earlier run and waits for it to release the session before starting.
    """

    def __init__(
        self,
        generator: StageGenerator,
        checkpoint_store: Optional[CheckpointStore] = None,
        config: Optional[ScriptFlowConfig] = None,
        observer: Optional[ProgressObserver] = None
    ):
        self.generator = generator
        self.checkpoints: CheckpointStore = checkpoint_store or InMemoryCheckpointStore()
        self.config = config or get_default_config()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._active: Dict[str, CancellationToken] = {}
        super().__init__("stage_orchestrator", observer)

    def _define_steps(self) -> None:
        self._steps = [
            PipelineStep(GenerationStep.STRUCTURE.value, "Parsing script structure"),
            PipelineStep(GenerationStep.VISUALS.value, "Generating character/scene/prop visual prompts"),
            PipelineStep(GenerationStep.SHOTS.value, "Generating shot list"),
        ]

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def generate(
        self,
        draft: GenerationDraft,
        previous: Optional[ScriptData] = None,
        previous_shots: Optional[List[Shot]] = None,
        session_id: str = "default",
        library: Optional[AssetLibrary] = None,
        token: Optional[CancellationToken] = None
    ) -> PipelineResult[GenerationOutput]:
        """
        Generate (or incrementally regenerate) script data and shots.

        Args:
            draft: Current user input
            previous: Script data from the last completed run, if any
            previous_shots: Shots from the last completed run, if any
            session_id: Project/episode identity; one run per session
            library: Asset library to match the result against
            token: Cancellation signal for this run

        Returns:
            PipelineResult whose output is a GenerationOutput
        """
        token = token or CancellationToken()

        prior = self._active.get(session_id)
        if prior is not None and prior is not token:
            prior.cancel("superseded by a new run")
        self._active[session_id] = token

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        try:
            with session_context(session_id):
                async with lock:
                    if token.cancelled:
                        return PipelineResult(
                            status=PipelineStatus.CANCELLED,
                            error=f"Generation cancelled before start: {token.reason}",
                            metadata={'resumable': True},
                        )
                    return await self._generate_locked(draft, previous, previous_shots, session_id, library, token)
        finally:
            if self._active.get(session_id) is token:
                del self._active[session_id]

    def cancel(self, session_id: str, reason: str = "cancelled by user") -> bool:
        """Request cancellation of the session's in-flight run."""
        token = self._active.get(session_id)
        if token is None:
            return False
        token.cancel(reason)
        return True

    async def _generate_locked(
        self,
        draft: GenerationDraft,
        previous: Optional[ScriptData],
        previous_shots: Optional[List[Shot]],
        session_id: str,
        library: Optional[AssetLibrary],
        token: CancellationToken
    ) -> PipelineResult[GenerationOutput]:
        run_key = build_run_key(draft)
        keys = build_stage_keys(draft)

        state = GenerationState(
            draft=draft,
            session_id=session_id,
            run_key=run_key,
            keys=keys,
            start_step=GenerationStep.STRUCTURE,
            previous=previous,
            library=library,
        )

        checkpoint = await self._load_valid_checkpoint(session_id, run_key)
        if checkpoint is not None:
            state.start_step = checkpoint.step
            state.script_data = checkpoint.script_data
            state.resumed = True
            if state.start_step != GenerationStep.STRUCTURE and state.script_data is None:
                state.start_step = GenerationStep.STRUCTURE
            logger.info(f"Resuming session {session_id} from checkpoint at '{state.start_step.value}'")
        else:
            state.start_step = plan_start_step(keys, previous, previous_shots)
            if state.start_step == GenerationStep.DONE:
                await self.checkpoints.clear(session_id)
                logger.info(f"Session {session_id}: {NO_CHANGES_MESSAGE}")
                return PipelineResult(
                    status=PipelineStatus.COMPLETED,
                    output=GenerationOutput(
                        script_data=copy.deepcopy(previous),
                        shots=copy.deepcopy(previous_shots or []),
                        start_step=GenerationStep.DONE,
                        skipped=True,
                    ),
                    metadata={'message': NO_CHANGES_MESSAGE},
                )
            if state.start_step != GenerationStep.STRUCTURE:
                state.script_data = copy.deepcopy(previous)
            logger.info(f"Session {session_id}: starting at '{state.start_step.value}'")

        state.only_missing_visuals = visual_inputs_unchanged(previous, draft)

        try:
            await self._save_checkpoint(state, state.start_step)
        except Exception as e:
            logger.error(f"Could not write initial checkpoint for {session_id}: {e}")
            return PipelineResult(
                status=PipelineStatus.FAILED,
                error=f"Could not write checkpoint: {e}",
                metadata={'failed_stage': state.start_step.value, 'resumable': False},
            )

        result = await self.run(state, {}, token)

        if result.status == PipelineStatus.CANCELLED:
            stage = result.metadata.get('cancelled_step', '')
            result.metadata.update({'resumable': True, 'resume_step': stage})
        elif result.status == PipelineStatus.FAILED:
            stage = result.metadata.get('failed_step', '')
            result.metadata.update({'resumable': True, 'resume_step': stage, 'failed_stage': stage})
        return result

    async def _load_valid_checkpoint(self, session_id: str, run_key: str) -> Optional[Checkpoint]:
        checkpoint = await self.checkpoints.load(session_id)
        if checkpoint is None:
            return None
        if checkpoint.config_key != run_key or checkpoint.step == GenerationStep.DONE:
            logger.info(f"Discarding stale checkpoint for session {session_id}")
            await self.checkpoints.clear(session_id)
            return None
        return checkpoint

    async def _save_checkpoint(self, state: GenerationState, step: GenerationStep) -> None:
        await self.checkpoints.save(state.session_id, Checkpoint(
            step=step,
            config_key=state.run_key,
            script_data=copy.deepcopy(state.script_data),
            updated_at=datetime.now().isoformat(),
        ))

    # -------------------------------------------------------------------------
    # Pipeline hooks
    # -------------------------------------------------------------------------

    def _resolve_start_index(self, input_data: GenerationState, context: Dict[str, Any]) -> int:
        return STAGE_ORDER.index(input_data.start_step)

    async def _execute_step(
        self,
        step: PipelineStep,
        input_data: GenerationState,
        context: Dict[str, Any],
        token: Optional[CancellationToken]
    ) -> GenerationState:
        state = input_data
        draft = state.draft
        stage = GenerationStep(step.name)

        if stage == GenerationStep.STRUCTURE:
            parsed = await run_cancellable(
                self.generator.parse_structure(draft.script, draft.language, draft.model, token),
                token,
                step.name,
            )
            if state.only_missing_visuals:
                parsed = reuse_visual_data(parsed, state.previous)
            script_data = hydrate_script_meta(parsed, draft)
            script_data.generation_meta = GenerationMeta(structure_key=state.keys.structure_key)

        elif stage == GenerationStep.VISUALS:
            enriched = await run_cancellable(
                self.generator.enrich_visuals(
                    state.script_data,
                    draft.model,
                    draft.visual_style,
                    draft.language,
                    token,
                    state.only_missing_visuals,
                ),
                token,
                step.name,
            )
            script_data = hydrate_script_meta(enriched, draft)
            script_data.generation_meta = self._next_meta(state.script_data, visuals_key=state.keys.visuals_key)

        else:
            shots = await run_cancellable(
                self.generator.generate_shots(state.script_data, draft.model, token),
                token,
                step.name,
            )
            script_data = hydrate_script_meta(state.script_data, draft)
            script_data.generation_meta = self._next_meta(
                state.script_data,
                shots_key=state.keys.shots_key,
                generated_at=datetime.now().isoformat(),
            )
            state.shots = list(shots)

        state.script_data = script_data
        state.stages_run.append(step.name)
        logger.info(f"Stage '{step.name}' completed for session {state.session_id}")
        return state

    @staticmethod
    def _next_meta(script_data: Optional[ScriptData], **updates: Any) -> GenerationMeta:
        base = script_data.generation_meta if script_data and script_data.generation_meta else GenerationMeta()
        meta = copy.deepcopy(base)
        for name, value in updates.items():
            setattr(meta, name, value)
        return meta

    async def _on_step_completed(
        self,
        step: PipelineStep,
        index: int,
        data: GenerationState,
        context: Dict[str, Any]
    ) -> None:
        if index + 1 < len(STAGE_ORDER):
            await self._save_checkpoint(data, STAGE_ORDER[index + 1])

    async def _finalize(self, data: GenerationState, context: Dict[str, Any]) -> GenerationOutput:
        await self.checkpoints.clear(data.session_id)

        matches = None
        if data.library is not None:
            try:
                matches = AssetMatcher(self.config.matching).find_matches(data.script_data, data.library)
            except Exception as e:
                logger.warning(f"Asset match check failed, proceeding without matches: {e}")

        return GenerationOutput(
            script_data=data.script_data,
            shots=data.shots,
            start_step=data.start_step,
            stages_run=list(data.stages_run),
            resumed=data.resumed,
            matches=matches,
        )

    def _describe_failure(self, error: PipelineStageError) -> str:
        return f"Stage '{error.stage_name}' failed: {error.reason}"

    def _describe_cancellation(self, error: StageCancelledError) -> str:
        stage = error.stage_name or "generation"
        return f"Generation cancelled during '{stage}'; resume available from the last checkpoint."
