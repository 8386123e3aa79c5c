"""
ScriptFlow Constants

Global constants shared by the pipeline, the asset matcher and the scorers.
The numeric values are empirically tuned; keep them as-is.
"""

from enum import Enum
from typing import Dict, List, Tuple

# =============================================================================
# VERSION INFO
# =============================================================================
VERSION = "1.0.0"
PROJECT_NAME = "ScriptFlow"

# =============================================================================
# GENERATION STAGES
# =============================================================================

class GenerationStep(Enum):
    """Steps of the script-to-shot state machine, in execution order."""
    STRUCTURE = "structure"
    VISUALS = "visuals"
    SHOTS = "shots"
    DONE = "done"


STAGE_ORDER: List[GenerationStep] = [
    GenerationStep.STRUCTURE,
    GenerationStep.VISUALS,
    GenerationStep.SHOTS,
]

CONFIG_KEY_VERSION = "v1"
CONFIG_KEY_HASH_SEED = 5381

# Message fragments that identify a cancelled request
CANCELLATION_PATTERNS = ("abort", "aborted", "cancel", "canceled", "cancelled", "取消")

# =============================================================================
# ASSETS
# =============================================================================

class AssetKind(Enum):
    """Kinds of library assets."""
    CHARACTER = "character"
    SCENE = "scene"
    PROP = "prop"


ASSET_ID_PREFIXES: Dict[AssetKind, str] = {
    AssetKind.CHARACTER: "char",
    AssetKind.SCENE: "scene",
    AssetKind.PROP: "prop",
}

SYNC_STATUS_SYNCED = "synced"
SYNC_STATUS_LOCAL_ONLY = "local-only"

PROP_CATEGORIES = [
    "weapon",
    "document",
    "food",
    "vehicle",
    "decoration",
    "tech",
    "other",
]

# =============================================================================
# QUALITY CHECKS
# =============================================================================

class QualityGrade(Enum):
    """Production-readiness grade of a shot."""
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


# (key, label, weight) - weights are relative, scores divide by their total (110)
QUALITY_CHECK_DEFINITIONS: List[Tuple[str, str, int]] = [
    ("prompt-readiness", "Prompt Readiness", 30),
    ("asset-coverage", "Asset Coverage", 20),
    ("keyframe-execution", "Keyframe Execution", 30),
    ("video-execution", "Video Execution", 20),
    ("continuity-risk", "Continuity Risk", 10),
]

CHECK_PASS_THRESHOLD = 70
GRADE_PASS_THRESHOLD = 80
GRADE_WARNING_THRESHOLD = 60

RULE_BASED_SCHEMA_VERSION = 1
LLM_SCHEMA_VERSION = 2

# Video model id prefixes without end-frame interpolation
NO_END_FRAME_MODEL_PREFIXES = ("sora", "doubao-seedance")

KEYFRAME_START = "start"
KEYFRAME_END = "end"

STATUS_PENDING = "pending"
STATUS_GENERATING = "generating"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
