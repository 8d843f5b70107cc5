"""
Generation Record Schema.

Represents one image generation attempt as reported by the generation service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import GenerationStatus
from .primitives import ImageLocation, generate_ulid, utc_now

# Forward-only status transitions. Terminal states have no successors.
ALLOWED_STATUS_TRANSITIONS: Dict[GenerationStatus, FrozenSet[GenerationStatus]] = {
    GenerationStatus.PENDING: frozenset(
        {
            GenerationStatus.PROCESSING,
            GenerationStatus.COMPLETED,
            GenerationStatus.FAILED,
        }
    ),
    GenerationStatus.PROCESSING: frozenset(
        {GenerationStatus.COMPLETED, GenerationStatus.FAILED}
    ),
    GenerationStatus.COMPLETED: frozenset(),
    GenerationStatus.FAILED: frozenset(),
}


def can_transition(current: GenerationStatus, new: GenerationStatus) -> bool:
    """Return True if a generation may move from ``current`` to ``new``."""
    return new in ALLOWED_STATUS_TRANSITIONS[current]


class GenerationRecord(BaseModel):
    """An image generation attempt.

    Invariants:
    - The record is immutable; only the generation service advances ``status``.
    - ``status`` never moves backward.
    - ``id`` is unique within a project.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: constr(min_length=1, max_length=128) = Field(
        default_factory=generate_ulid, description="Unique identifier"
    )
    project_id: constr(min_length=1, max_length=128) = Field(
        ..., description="Owning project"
    )
    character_id: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Character the illustration depicts"
    )

    original_prompt: constr(min_length=1, max_length=8000) = Field(
        ..., description="Prompt as typed by the author"
    )
    enhanced_prompt: Optional[constr(max_length=8000)] = Field(
        None, description="Prompt after automatic enhancement"
    )

    provider: constr(min_length=1, max_length=64) = Field(
        ..., description="Generation backend"
    )
    model: constr(min_length=1, max_length=128) = Field(..., description="Model id")
    is_free: bool = Field(False, description="Generated without cost")

    status: GenerationStatus = Field(
        GenerationStatus.PENDING, description="Generation lifecycle status"
    )
    error_message: Optional[constr(max_length=4000)] = Field(
        None, description="Failure reason reported by the backend"
    )

    width: int = Field(..., gt=0, description="Width in pixels")
    height: int = Field(..., gt=0, description="Height in pixels")
    image_location: ImageLocation = Field(..., description="URL or local path")

    created_at: datetime = Field(
        default_factory=utc_now, description="Creation timestamp (UTC)"
    )


class GenerationRecordCreate(BaseModel):
    """Schema for recording a new generation attempt."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[constr(min_length=1, max_length=128)] = None
    project_id: constr(min_length=1, max_length=128)
    character_id: Optional[constr(min_length=1, max_length=128)] = None
    original_prompt: constr(min_length=1, max_length=8000)
    enhanced_prompt: Optional[constr(max_length=8000)] = None
    provider: constr(min_length=1, max_length=64)
    model: constr(min_length=1, max_length=128)
    is_free: bool = False
    status: GenerationStatus = GenerationStatus.PENDING
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    image_location: ImageLocation
    created_at: Optional[datetime] = None


class GenerationStatusUpdate(BaseModel):
    """Schema for advancing a generation's status."""

    model_config = ConfigDict(extra="forbid")

    status: GenerationStatus
    error_message: Optional[constr(max_length=4000)] = None
