"""
ScriptFlow Quality Module

Rule-based and model-backed production-readiness scoring for shots.
"""

from .rule_scorer import (
    assess_shot_quality,
    project_average_quality_score,
    resolve_grade,
    supports_end_frame,
    weighted_score,
)
from .llm_scorer import LLMQualityScorer, assess_shot_quality_with_llm, build_shot_context
from .schemas import RawQualityCheck, RawQualityResponse

__all__ = [
    'assess_shot_quality',
    'project_average_quality_score',
    'resolve_grade',
    'supports_end_frame',
    'weighted_score',
    'LLMQualityScorer',
    'assess_shot_quality_with_llm',
    'build_shot_context',
    'RawQualityCheck',
    'RawQualityResponse',
]
