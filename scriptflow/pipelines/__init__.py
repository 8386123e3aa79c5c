"""
ScriptFlow Pipelines Module

Staged generation from raw script text to shots.

Main Pipeline:
- StageOrchestrator: structure -> visuals -> shots, resumable from checkpoints
  and skipping stages whose inputs did not change

Support:
- BasePipeline: step runner with progress, cancellation and failure handling
- Visual reuse: carries earlier visual work onto re-parsed entities
"""

from .base_pipeline import (
    BasePipeline,
    NullProgressObserver,
    PipelineResult,
    PipelineStatus,
    PipelineStep,
    ProgressEvent,
    ProgressObserver,
)
from .stage_orchestrator import (
    GenerationOutput,
    GenerationState,
    StageGenerator,
    StageOrchestrator,
    hydrate_script_meta,
    is_placeholder_title,
    plan_start_step,
)
from .visual_reuse import (
    merge_visual_fields,
    normalize_entity_name,
    reuse_visual_data,
    visual_inputs_unchanged,
)

__all__ = [
    # Base
    'BasePipeline',
    'NullProgressObserver',
    'PipelineResult',
    'PipelineStatus',
    'PipelineStep',
    'ProgressEvent',
    'ProgressObserver',
    # Orchestration
    'GenerationOutput',
    'GenerationState',
    'StageGenerator',
    'StageOrchestrator',
    'hydrate_script_meta',
    'is_placeholder_title',
    'plan_start_step',
    # Visual reuse
    'merge_visual_fields',
    'normalize_entity_name',
    'reuse_visual_data',
    'visual_inputs_unchanged',
]
