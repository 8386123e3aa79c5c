"""
Quality Assessment Response Models

Loose shapes for what a model returns when asked to grade a shot. Values are
typed ``Any`` so that sloppy numbers ("85", 84.6) survive validation and are
coerced afterwards; a response that is not an object, or whose checks are not
objects, fails validation.
"""

from typing import Any, List, Optional

from pydantic import BaseModel


class RawQualityCheck(BaseModel):
    """One check as returned by the model."""
    key: Any = None
    score: Any = None
    passed: Any = None
    details: Any = None


class RawQualityResponse(BaseModel):
    """Top-level assessment as returned by the model."""
    score: Any = None
    grade: Any = None
    summary: Any = None
    checks: Optional[List[RawQualityCheck]] = None
