"""
ScriptFlow Core Module

Contains configuration, constants, exceptions, logging, data models,
fingerprinting, cancellation, retry and checkpoint persistence.
"""

from .config import ScriptFlowConfig, get_default_config, load_config, save_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger, session_context
from .models import (
    AssetLibrary,
    AssetMatchItem,
    AssetMatchResult,
    AssetRef,
    Character,
    CharacterVariation,
    Checkpoint,
    GenerationDraft,
    GenerationMeta,
    Keyframe,
    LibraryAsset,
    Prop,
    PromptVersion,
    QualityCheck,
    Scene,
    ScriptData,
    Shot,
    ShotQualityAssessment,
    VideoInterval,
)
from .config_key import build_config_key, build_run_key, build_stage_keys, hash_text
from .cancellation import CancellationToken, is_cancellation_error, run_cancellable
from .checkpoint_manager import CheckpointStore, InMemoryCheckpointStore, JsonCheckpointStore

__all__ = [
    'ScriptFlowConfig',
    'get_default_config',
    'load_config',
    'save_config',
    'setup_logging',
    'get_logger',
    'session_context',
    # Models
    'AssetLibrary',
    'AssetMatchItem',
    'AssetMatchResult',
    'AssetRef',
    'Character',
    'CharacterVariation',
    'Checkpoint',
    'GenerationDraft',
    'GenerationMeta',
    'Keyframe',
    'LibraryAsset',
    'Prop',
    'PromptVersion',
    'QualityCheck',
    'Scene',
    'ScriptData',
    'Shot',
    'ShotQualityAssessment',
    'VideoInterval',
    # Fingerprints
    'build_config_key',
    'build_run_key',
    'build_stage_keys',
    'hash_text',
    # Cancellation / checkpoints
    'CancellationToken',
    'is_cancellation_error',
    'run_cancellable',
    'CheckpointStore',
    'InMemoryCheckpointStore',
    'JsonCheckpointStore',
]
