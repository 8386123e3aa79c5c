"""
ScriptFlow - Incremental Script-to-Shot Generation

Turns raw narrative text into structured characters, scenes, props and shots
through three resumable model stages, reconciles generated entities with a
project asset library, and grades shots for production readiness.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "ScriptFlow Team"
__project__ = "ScriptFlow"

from pathlib import Path

# Load environment variables early - before any other imports that might need them
from scriptflow.core.env_loader import ensure_env_loaded
ensure_env_loaded()

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

from .core import (
    AssetLibrary,
    GenerationDraft,
    ScriptData,
    ScriptFlowConfig,
    Shot,
    load_config,
)
from .pipelines import StageOrchestrator
from .assets import AssetMatcher, apply_asset_matches
from .quality import LLMQualityScorer, assess_shot_quality

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__project__",
    # Paths
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    # Core
    "AssetLibrary",
    "GenerationDraft",
    "ScriptData",
    "ScriptFlowConfig",
    "Shot",
    "load_config",
    # Components
    "StageOrchestrator",
    "AssetMatcher",
    "apply_asset_matches",
    "LLMQualityScorer",
    "assess_shot_quality",
]
