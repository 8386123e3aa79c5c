"""
Rule-based Shot Quality Scoring

Grades a shot's production readiness with five weighted checks:

    prompt-readiness    30   prompt lengths for start/end frames, video, action
    asset-coverage      20   reference images for the scene, characters, props
    keyframe-execution  30   start/end frame images and statuses
    video-execution     20   video interval status
    continuity-risk     10   anchoring of the motion by keyframe images

Each check scores 0-100 and passes at 70. The shot score is the weighted mean;
grade is pass at 80, warning at 60, otherwise fail.
"""

import math
from datetime import datetime
from typing import Dict, List, Optional

from scriptflow.core.constants import (
    CHECK_PASS_THRESHOLD,
    GRADE_PASS_THRESHOLD,
    GRADE_WARNING_THRESHOLD,
    KEYFRAME_END,
    KEYFRAME_START,
    NO_END_FRAME_MODEL_PREFIXES,
    QUALITY_CHECK_DEFINITIONS,
    QualityGrade,
    RULE_BASED_SCHEMA_VERSION,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_GENERATING,
    STATUS_PENDING,
)
from scriptflow.core.models import QualityCheck, ScriptData, Shot, ShotQualityAssessment

CHECK_LABELS: Dict[str, str] = {key: label for key, label, _ in QUALITY_CHECK_DEFINITIONS}
CHECK_WEIGHTS: Dict[str, int] = {key: weight for key, _, weight in QUALITY_CHECK_DEFINITIONS}


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def supports_end_frame(model_id: Optional[str]) -> bool:
    """Whether the video model interpolates towards an end frame."""
    model = (model_id or "").lower()
    if not model:
        return False
    return not model.startswith(NO_END_FRAME_MODEL_PREFIXES)


def make_check(key: str, score: float, details: str = "", weights: Dict[str, int] = None) -> QualityCheck:
    weights = weights or CHECK_WEIGHTS
    return QualityCheck(
        key=key,
        label=CHECK_LABELS[key],
        weight=weights[key],
        score=clamp_score(score),
        passed=score >= CHECK_PASS_THRESHOLD,
        details=details,
    )


def _prompt(shot: Shot, frame_type: str) -> str:
    frame = shot.keyframe(frame_type)
    return (frame.visual_prompt or "").strip() if frame else ""


# =============================================================================
# CHECKS
# =============================================================================

def evaluate_prompt_readiness(shot: Shot) -> QualityCheck:
    start_prompt = _prompt(shot, KEYFRAME_START)
    end_prompt = _prompt(shot, KEYFRAME_END)
    video_prompt = (shot.interval.video_prompt or "").strip() if shot.interval else ""
    action_len = len((shot.action_summary or "").strip())

    if len(start_prompt) >= 40:
        start_score = 45
    elif len(start_prompt) >= 16:
        start_score = 30
    elif start_prompt:
        start_score = 15
    else:
        start_score = 0

    if len(end_prompt) >= 30:
        end_score = 25
    elif end_prompt:
        end_score = 10
    else:
        end_score = 0

    if len(video_prompt) >= 30:
        video_score = 20
    elif video_prompt:
        video_score = 10
    else:
        video_score = 0

    action_score = 10 if action_len >= 12 else 0
    score = start_score + end_score + video_score + action_score

    details = "\n".join([
        "Rule: start prompt 45 + end prompt 25 + video prompt 20 + action summary 10",
        f"Start prompt {len(start_prompt)} chars -> {start_score} (>=40: 45; 16-39: 30; 1-15: 15)",
        f"End prompt {len(end_prompt)} chars -> {end_score} (>=30: 25; 1-29: 10)",
        f"Video prompt {len(video_prompt)} chars -> {video_score} (>=30: 20; 1-29: 10)",
        f"Action summary {action_len} chars -> {action_score} (>=12: 10)",
    ])
    return make_check("prompt-readiness", score, details)


def evaluate_asset_coverage(shot: Shot, script_data: Optional[ScriptData] = None) -> QualityCheck:
    if script_data is None:
        return make_check(
            "asset-coverage",
            35,
            "No script asset data available; scene/character/prop references cannot be "
            "verified, using a conservative 35."
        )

    scene = script_data.scene(shot.scene_id)
    scene_score = 35 if scene and scene.reference_image else 10

    char_details: List[str] = []
    char_parts: List[int] = []
    for char_id in shot.characters:
        character = script_data.character(char_id)
        if character is None:
            char_details.append(f"character {char_id}: not found (0)")
            char_parts.append(0)
            continue
        variation = character.variation(shot.character_variations.get(char_id))
        if variation is not None and variation.reference_image:
            char_details.append(f"{character.name} ({variation.name}): variation reference (25)")
            char_parts.append(25)
        elif character.reference_image:
            char_details.append(f"{character.name}: reference image (25)")
            char_parts.append(25)
        else:
            char_details.append(f"{character.name}: no reference image (5)")
            char_parts.append(5)
    character_score = sum(char_parts) / len(char_parts) if char_parts else 20

    prop_details: List[str] = []
    prop_parts: List[int] = []
    for prop_id in shot.props:
        prop = script_data.prop(prop_id)
        if prop is None:
            prop_details.append(f"prop {prop_id}: not found (0)")
            prop_parts.append(0)
        elif prop.reference_image:
            prop_details.append(f"{prop.name}: reference image (10)")
            prop_parts.append(10)
        else:
            prop_details.append(f"{prop.name}: no reference image (4)")
            prop_parts.append(4)
    prop_score = sum(prop_parts) / len(prop_parts) if prop_parts else 10

    total = scene_score + character_score + prop_score
    scene_name = scene.location if scene and scene.location else shot.scene_id
    details = "\n".join([
        "Rule: scene reference up to 35 + character average up to 25 + prop average up to 10",
        f"Scene '{scene_name}': {'reference image (35)' if scene_score == 35 else 'no reference image (10)'}",
        (f"Characters ({len(char_parts)}): {'; '.join(char_details)} -> average {round_half_up(character_score)}"
         if char_parts else "Characters: none in shot, default 20"),
        (f"Props ({len(prop_parts)}): {'; '.join(prop_details)} -> average {round_half_up(prop_score)}"
         if prop_parts else "Props: none in shot, default 10"),
        f"Total: {round_half_up(total)}/100",
    ])
    return make_check("asset-coverage", total, details)


def _describe_frame(label: str, frame) -> str:
    status = (frame.status if frame else None) or STATUS_PENDING
    has_image = bool(frame and frame.image_url)
    has_prompt = bool(frame and frame.visual_prompt)
    return (
        f"{label}: status {status}, {'image ready' if has_image else 'no image'}, "
        f"{'has prompt' if has_prompt else 'no prompt'}"
    )


def evaluate_keyframe_execution(shot: Shot) -> QualityCheck:
    start = shot.keyframe(KEYFRAME_START)
    end = shot.keyframe(KEYFRAME_END)
    end_capable = supports_end_frame(shot.video_model)

    if start and start.image_url:
        start_score = 55
    elif start and start.status == STATUS_GENERATING:
        start_score = 25
    elif start and start.visual_prompt:
        start_score = 15
    else:
        start_score = 0

    if not end_capable:
        end_score = 30
    elif end and end.image_url:
        end_score = 35
    elif end and end.status == STATUS_GENERATING:
        end_score = 15
    elif end and end.visual_prompt:
        end_score = 10
    else:
        end_score = 0

    failed = any(frame is not None and frame.status == STATUS_FAILED for frame in (start, end))
    penalty = -20 if failed else 0
    score = start_score + end_score + penalty

    details = "\n".join([
        "Rule: start frame up to 55 + end frame up to 35 (flat 30 without end-frame support) - 20 on failure",
        _describe_frame("Start frame", start),
        (_describe_frame("End frame", end) if end_capable else
         f"End frame: model {shot.video_model or 'unset'} has no end-frame interpolation, flat 30"),
        "Failed keyframe detected: -20" if failed else "No failed keyframes",
        f"Total: {round_half_up(score)}/100",
    ])
    return make_check("keyframe-execution", score, details)


_VIDEO_STATUS_SCORES = {
    STATUS_GENERATING: 55,
    STATUS_PENDING: 35,
    STATUS_FAILED: 10,
}


def evaluate_video_execution(shot: Shot) -> QualityCheck:
    interval = shot.interval
    if interval is None:
        return make_check(
            "video-execution",
            30,
            "No video generation recorded for this shot yet; using a base score of 30."
        )

    if interval.video_url and interval.status == STATUS_COMPLETED:
        score = 100
        reason = "Video generated and URL recorded (100)."
    elif interval.status in _VIDEO_STATUS_SCORES:
        score = _VIDEO_STATUS_SCORES[interval.status]
        reason = f"Video is {interval.status} ({score})."
    else:
        score = 0
        reason = f"Video status {interval.status}, conservative score {score}."

    details = "\n".join([
        "Rule: completed=100, generating=55, pending=35, failed=10",
        f"Current status: {interval.status}, {'video URL present' if interval.video_url else 'no video URL'}",
        reason,
    ])
    return make_check("video-execution", score, details)


def evaluate_continuity(shot: Shot) -> QualityCheck:
    start = shot.keyframe(KEYFRAME_START)
    end = shot.keyframe(KEYFRAME_END)
    end_capable = supports_end_frame(shot.video_model)
    has_characters = bool(shot.characters)
    has_start_image = bool(start and start.image_url)
    has_end_image = bool(end and end.image_url)

    score = 40
    score += 25 if has_start_image else 0
    if end_capable:
        score += 25 if has_end_image else 0
    else:
        score += 20
    if has_characters and not has_start_image:
        score -= 20
    if end_capable and has_characters and not has_end_image:
        score -= 10

    if has_characters:
        penalty_note = "Character shot: " + ("missing start anchor (-20)" if not has_start_image else "start anchor present (0)")
        if end_capable and not has_end_image:
            penalty_note += "; missing end anchor (-10)"
    else:
        penalty_note = "No characters: no anchor penalty"

    details = "\n".join([
        "Rule: base 40 + start anchor 25 + end anchor 25 (20 compensation without end-frame support) - character penalties",
        f"Model: {shot.video_model or 'unset'}, {'end-frame capable' if end_capable else 'no end-frame interpolation'}",
        f"Start anchor: {'present (+25)' if has_start_image else 'missing (+0)'}",
        (f"End anchor: {'present (+25)' if has_end_image else 'missing (+0)'}" if end_capable
         else "End anchor: unsupported by model, compensation (+20)"),
        penalty_note,
        f"Total: {round_half_up(score)}/100",
    ])
    return make_check("continuity-risk", score, details)


# =============================================================================
# AGGREGATION
# =============================================================================

def weighted_score(checks: List[QualityCheck]) -> int:
    total_weight = sum(c.weight for c in checks) or 1
    weighted_sum = sum(c.score * c.weight for c in checks)
    return clamp_score(weighted_sum / total_weight)


def resolve_grade(score: float) -> str:
    if score >= GRADE_PASS_THRESHOLD:
        return QualityGrade.PASS.value
    if score >= GRADE_WARNING_THRESHOLD:
        return QualityGrade.WARNING.value
    return QualityGrade.FAIL.value


_SUMMARY_PREFIXES = {
    QualityGrade.FAIL.value: "High risk: ",
    QualityGrade.WARNING.value: "Needs work: ",
    QualityGrade.PASS.value: "Minor issues: ",
}


def build_summary(checks: List[QualityCheck], grade: str) -> str:
    failing = [c.label for c in checks if not c.passed]
    if not failing:
        return "Ready for production; all core checks passed."
    return _SUMMARY_PREFIXES.get(grade, "") + ", ".join(failing)


def assess_shot_quality(
    shot: Shot,
    script_data: Optional[ScriptData] = None,
    weights: Optional[Dict[str, int]] = None
) -> ShotQualityAssessment:
    """Score ``shot`` with the five rule-based checks."""
    checks = [
        evaluate_prompt_readiness(shot),
        evaluate_asset_coverage(shot, script_data),
        evaluate_keyframe_execution(shot),
        evaluate_video_execution(shot),
        evaluate_continuity(shot),
    ]
    if weights:
        for check in checks:
            check.weight = weights.get(check.key, check.weight)

    score = weighted_score(checks)
    grade = resolve_grade(score)
    return ShotQualityAssessment(
        version=RULE_BASED_SCHEMA_VERSION,
        score=score,
        grade=grade,
        summary=build_summary(checks, grade),
        checks=checks,
        generated_at=datetime.now().isoformat(),
    )


def project_average_quality_score(shots: List[Shot]) -> int:
    """Mean score of the shots that have an assessment; 0 when none do."""
    scores = [s.quality_assessment.score for s in shots if s.quality_assessment is not None]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))
