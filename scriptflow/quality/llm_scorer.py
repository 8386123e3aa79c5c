"""
Model-backed Shot Quality Scoring

Asks a chat model to grade a shot on the same five checks as the rule-based
scorer. The response is validated and normalized; any failure (call error,
timeout, malformed payload) returns the rule-based assessment instead, with
the reason appended to its summary. Callers never see a partial result.
"""

import json
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from scriptflow.core.cancellation import CancellationToken
from scriptflow.core.config import QualityConfig
from scriptflow.core.constants import (
    CHECK_PASS_THRESHOLD,
    KEYFRAME_END,
    KEYFRAME_START,
    LLM_SCHEMA_VERSION,
    QUALITY_CHECK_DEFINITIONS,
    QualityGrade,
    STATUS_PENDING,
)
from scriptflow.core.exceptions import LLMResponseError, StageCancelledError
from scriptflow.core.logging_config import get_logger
from scriptflow.core.models import QualityCheck, ScriptData, Shot, ShotQualityAssessment
from scriptflow.core.retry import RetryConfig, retry_async_call
from scriptflow.llm.api_client import ChatClient, is_retryable_error
from scriptflow.llm.json_utils import parse_json_response

from .rule_scorer import assess_shot_quality, resolve_grade, round_half_up, weighted_score
from .schemas import RawQualityCheck, RawQualityResponse

logger = get_logger("quality.llm_scorer")

ACTION_SUMMARY_LIMIT = 280
DIALOGUE_LIMIT = 200
ATMOSPHERE_LIMIT = 200
PROMPT_EXCERPT_LIMIT = 220
CHECK_DETAILS_LIMIT = 420
SUMMARY_LIMIT = 260
FALLBACK_REASON_LIMIT = 120

MISSING_DETAILS = "Insufficient information: the model returned no rationale for this check."

_GRADES = {g.value for g in QualityGrade}


def truncate_text(value: Optional[str], max_len: int) -> str:
    text = (value or "").strip() if isinstance(value, str) else ("" if value is None else str(value).strip())
    if len(text) <= max_len:
        return text
    return f"{text[:max_len]}..."


def to_safe_score(value: Any, fallback: int = 50) -> int:
    """Coerce a model-provided score into an int in [0, 100]."""
    if value is None:
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return max(0, min(100, round_half_up(number)))


# =============================================================================
# CONTEXT
# =============================================================================

def _frame_context(shot: Shot, frame_type: str) -> Dict[str, Any]:
    frame = shot.keyframe(frame_type)
    prompt = (frame.visual_prompt if frame else "") or ""
    return {
        "status": (frame.status if frame else None) or STATUS_PENDING,
        "has_image": bool(frame and frame.image_url),
        "prompt_length": len(prompt.strip()),
        "prompt_excerpt": truncate_text(prompt, PROMPT_EXCERPT_LIMIT),
    }


def build_shot_context(shot: Shot, script_data: Optional[ScriptData] = None) -> Dict[str, Any]:
    """Compact, bounded description of a shot and everything it references."""
    scene = script_data.scene(shot.scene_id) if script_data else None

    characters = []
    for char_id in shot.characters:
        character = script_data.character(char_id) if script_data else None
        variation = character.variation(shot.character_variations.get(char_id)) if character else None
        characters.append({
            "id": char_id,
            "name": character.name if character and character.name else f"unknown:{char_id}",
            "has_reference_image": bool(character and character.reference_image),
            "selected_variation_name": variation.name if variation else None,
            "selected_variation_has_reference": bool(variation and variation.reference_image),
        })

    props = []
    for prop_id in shot.props:
        prop = script_data.prop(prop_id) if script_data else None
        props.append({
            "id": prop_id,
            "name": prop.name if prop and prop.name else f"unknown:{prop_id}",
            "has_reference_image": bool(prop and prop.reference_image),
        })

    interval = shot.interval
    return {
        "shot": {
            "id": shot.id,
            "scene_id": shot.scene_id,
            "camera_movement": shot.camera_movement or "",
            "shot_size": shot.shot_size or "",
            "action_summary": truncate_text(shot.action_summary, ACTION_SUMMARY_LIMIT),
            "dialogue": truncate_text(shot.dialogue, DIALOGUE_LIMIT),
            "video_model": shot.video_model or "",
        },
        "scene": {
            "id": scene.id,
            "location": scene.location,
            "time": scene.time,
            "atmosphere": truncate_text(scene.atmosphere, ATMOSPHERE_LIMIT),
            "has_reference_image": bool(scene.reference_image),
        } if scene else None,
        "characters": characters,
        "props": props,
        "keyframes": {
            "start": _frame_context(shot, KEYFRAME_START),
            "end": _frame_context(shot, KEYFRAME_END),
        },
        "interval": {
            "status": interval.status,
            "has_video": bool(interval.video_url),
            "duration": interval.duration,
            "motion_strength": interval.motion_strength,
            "prompt_length": len((interval.video_prompt or "").strip()),
            "prompt_excerpt": truncate_text(interval.video_prompt, PROMPT_EXCERPT_LIMIT),
        } if interval else None,
    }


def build_assessment_prompt(shot: Shot, script_data: Optional[ScriptData] = None) -> str:
    context = build_shot_context(shot, script_data)
    check_lines = [
        f'    {{"key":"{key}","score":0-100,"passed":true/false,"details":"..."}}'
        for key, _, _ in QUALITY_CHECK_DEFINITIONS
    ]
    return "\n".join([
        "You are a storyboard quality director for AI-generated video.",
        "Assess whether this shot can be produced reliably. Higher scores mean more stable and executable.",
        "",
        "Return a JSON object in exactly this shape:",
        "{",
        '  "score": integer 0-100,',
        '  "grade": "pass" | "warning" | "fail",',
        '  "summary": "one-sentence summary",',
        '  "checks": [',
        ",\n".join(check_lines),
        "  ]",
        "}",
        "",
        "checks must contain exactly these five keys: "
        + ", ".join(key for key, _, _ in QUALITY_CHECK_DEFINITIONS),
        "Each details field gives the basis, the risk and a suggested action in 2-4 sentences.",
        'When information is missing say "insufficient information" and score conservatively.',
        "No markdown, no code fences, no extra fields.",
        "",
        "Context (JSON):",
        json.dumps(context, indent=2, ensure_ascii=False),
    ])


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_checks(raw_checks: Optional[List[RawQualityCheck]], weights: Dict[str, int]) -> List[QualityCheck]:
    """One check per known key; unknown keys dropped, missing keys defaulted."""
    by_key: Dict[str, RawQualityCheck] = {}
    for raw in raw_checks or []:
        if isinstance(raw.key, str) and raw.key.strip():
            by_key[raw.key.strip()] = raw

    checks = []
    for key, label, default_weight in QUALITY_CHECK_DEFINITIONS:
        raw = by_key.get(key)
        score = to_safe_score(raw.score if raw else None, 50)
        passed = raw.passed if raw is not None and isinstance(raw.passed, bool) else score >= CHECK_PASS_THRESHOLD
        details = truncate_text(raw.details if raw else None, CHECK_DETAILS_LIMIT) or MISSING_DETAILS
        checks.append(QualityCheck(
            key=key,
            label=label,
            weight=weights.get(key, default_weight),
            score=score,
            passed=passed,
            details=details,
        ))
    return checks


def _model_summary(checks: List[QualityCheck], grade: str) -> str:
    failing = [c.label for c in checks if not c.passed]
    if not failing:
        return "Model assessment passed; ready for production."
    if grade == QualityGrade.FAIL.value:
        return f"Model assessment flags high risk: {', '.join(failing)}"
    if grade == QualityGrade.WARNING.value:
        return f"Model assessment suggests improvements: {', '.join(failing)}"
    return f"Model assessment notes minor issues: {', '.join(failing)}"


def resolve_assessment(parsed: RawQualityResponse, weights: Dict[str, int]) -> ShotQualityAssessment:
    checks = normalize_checks(parsed.checks, weights)
    score = to_safe_score(parsed.score, weighted_score(checks))
    grade = parsed.grade if isinstance(parsed.grade, str) and parsed.grade in _GRADES else resolve_grade(score)
    summary = truncate_text(parsed.summary, SUMMARY_LIMIT) or _model_summary(checks, grade)
    return ShotQualityAssessment(
        version=LLM_SCHEMA_VERSION,
        score=score,
        grade=grade,
        summary=summary,
        checks=checks,
        generated_at=datetime.now().isoformat(),
    )


# =============================================================================
# SCORER
# =============================================================================

class LLMQualityScorer:
    """Model-backed shot grading with automatic rule-based fallback."""

    def __init__(self, client: ChatClient, config: Optional[QualityConfig] = None):
        self.client = client
        self.config = config or QualityConfig()

    def _retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.config.llm_retries,
            base_delay=self.config.llm_retry_delay,
            backoff="linear",
            jitter=False,
            retry_if=is_retryable_error,
        )

    async def assess(
        self,
        shot: Shot,
        script_data: Optional[ScriptData] = None,
        token: Optional[CancellationToken] = None
    ) -> ShotQualityAssessment:
        """Grade ``shot``; never raises except on cancellation."""
        try:
            prompt = build_assessment_prompt(shot, script_data)
            response_text = await retry_async_call(
                self.client.complete,
                prompt,
                config=self._retry_config(),
                token=token,
                model=self.config.llm_model,
                temperature=self.config.llm_temperature,
                max_tokens=self.config.llm_max_tokens,
                json_mode=True,
                timeout=self.config.llm_timeout,
            )
            payload = parse_json_response(response_text)
            if not isinstance(payload, dict):
                raise LLMResponseError("Assessment response is not a JSON object")
            parsed = RawQualityResponse.model_validate(payload)
            return resolve_assessment(parsed, self.config.weights)
        except StageCancelledError:
            raise
        except Exception as e:
            logger.warning(f"Model quality scoring failed for shot {shot.id}, using rule-based score: {e}")
            return self.fallback(shot, script_data, str(e))

    def fallback(self, shot: Shot, script_data: Optional[ScriptData], reason: str = "") -> ShotQualityAssessment:
        base = assess_shot_quality(shot, script_data, self.config.weights)
        reason_text = truncate_text(reason, FALLBACK_REASON_LIMIT)
        note = "model scoring unavailable, fell back to rule-based score"
        base.summary = f"{base.summary} ({note}: {reason_text})" if reason_text else f"{base.summary} ({note})"
        return base


async def assess_shot_quality_with_llm(
    shot: Shot,
    client: ChatClient,
    script_data: Optional[ScriptData] = None,
    config: Optional[QualityConfig] = None
) -> ShotQualityAssessment:
    """Convenience wrapper around ``LLMQualityScorer.assess``."""
    return await LLMQualityScorer(client, config).assess(shot, script_data)
