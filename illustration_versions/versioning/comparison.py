"""
Version Comparison.

Field-level differences and a weighted similarity score between two versions.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from .enums import DifferenceType
from .primitives import AIParameters, Dimensions, generate_ulid, utc_now
from .version import VersionNode

# Weights of the similarity components. They sum to 1.
PROMPT_WEIGHT = 0.4
PARAMETER_WEIGHT = 0.3
DIMENSION_WEIGHT = 0.1
TAG_WEIGHT = 0.1
FILE_SIZE_WEIGHT = 0.05
GENERATION_TIME_WEIGHT = 0.05

_PARAMETER_FIELDS = ("model", "provider", "seed", "guidance", "steps", "sampler", "style")


class VersionDifference(BaseModel):
    """One differing field between two versions."""

    model_config = ConfigDict(extra="forbid")

    type: DifferenceType
    field: str
    old_value: Any = None
    new_value: Any = None
    description: str


class VersionComparison(BaseModel):
    """Result of comparing two versions."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=generate_ulid)
    version1_id: str
    version2_id: str
    differences: List[VersionDifference]
    similarity: float = Field(..., ge=0, le=1)
    compared_at: datetime = Field(default_factory=utc_now)


def _words(text: Optional[str]) -> Set[str]:
    return {word for word in re.split(r"\s+", (text or "").lower()) if word}


def jaccard(left: Set[str], right: Set[str]) -> float:
    if not left and not right:
        return 1.0
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def _ratio(left: float, right: float) -> float:
    """Closeness of two non-negative magnitudes, 1.0 when equal."""
    if left == right:
        return 1.0
    larger = max(left, right)
    if larger <= 0:
        return 1.0
    return min(left, right) / larger


def _parameter_similarity(
    left: Optional[AIParameters], right: Optional[AIParameters]
) -> float:
    if left is None and right is None:
        return 1.0
    if left is None or right is None:
        return 0.0
    same = sum(
        1 for name in _PARAMETER_FIELDS if getattr(left, name) == getattr(right, name)
    )
    return same / len(_PARAMETER_FIELDS)


def _dimension_similarity(left: Optional[Dimensions], right: Optional[Dimensions]) -> float:
    if left is None and right is None:
        return 1.0
    if left is None or right is None:
        return 0.0
    return (_ratio(left.width, right.width) + _ratio(left.height, right.height)) / 2


def calculate_similarity(version1: VersionNode, version2: VersionNode) -> float:
    """Weighted similarity in [0, 1]."""
    meta1, meta2 = version1.metadata, version2.metadata
    score = (
        PROMPT_WEIGHT * jaccard(_words(version1.prompt), _words(version2.prompt))
        + PARAMETER_WEIGHT * _parameter_similarity(meta1.ai_parameters, meta2.ai_parameters)
        + DIMENSION_WEIGHT * _dimension_similarity(meta1.dimensions, meta2.dimensions)
        + TAG_WEIGHT * jaccard(set(meta1.tag_names), set(meta2.tag_names))
        + FILE_SIZE_WEIGHT * _ratio(meta1.file_size_bytes, meta2.file_size_bytes)
        + GENERATION_TIME_WEIGHT
        * _ratio(meta1.generation_time_ms, meta2.generation_time_ms)
    )
    return round(min(max(score, 0.0), 1.0), 6)


def find_differences(version1: VersionNode, version2: VersionNode) -> List[VersionDifference]:
    """List the fields that differ, from ``version1`` (old) to ``version2`` (new)."""
    differences: List[VersionDifference] = []

    if version1.prompt != version2.prompt:
        differences.append(
            VersionDifference(
                type=DifferenceType.PROMPT,
                field="prompt",
                old_value=version1.prompt,
                new_value=version2.prompt,
                description="Prompt text differs",
            )
        )

    params1 = version1.metadata.ai_parameters
    params2 = version2.metadata.ai_parameters
    for name in _PARAMETER_FIELDS:
        old = getattr(params1, name) if params1 else None
        new = getattr(params2, name) if params2 else None
        if old != new:
            differences.append(
                VersionDifference(
                    type=DifferenceType.PARAMETERS,
                    field=name,
                    old_value=old,
                    new_value=new,
                    description=f"AI parameter '{name}' differs",
                )
            )

    dims1 = version1.metadata.dimensions
    dims2 = version2.metadata.dimensions
    if dims1 != dims2:
        differences.append(
            VersionDifference(
                type=DifferenceType.VISUAL,
                field="dimensions",
                old_value=dims1.model_dump() if dims1 else None,
                new_value=dims2.model_dump() if dims2 else None,
                description="Image dimensions differ",
            )
        )

    tags1 = version1.metadata.tag_names
    tags2 = version2.metadata.tag_names
    if set(tags1) != set(tags2):
        differences.append(
            VersionDifference(
                type=DifferenceType.METADATA,
                field="tags",
                old_value=tags1,
                new_value=tags2,
                description="Tags differ",
            )
        )

    if version1.metadata.title != version2.metadata.title:
        differences.append(
            VersionDifference(
                type=DifferenceType.METADATA,
                field="title",
                old_value=version1.metadata.title,
                new_value=version2.metadata.title,
                description="Title differs",
            )
        )

    return differences


def compare_versions(version1: VersionNode, version2: VersionNode) -> VersionComparison:
    return VersionComparison(
        version1_id=version1.id,
        version2_id=version2.id,
        differences=find_differences(version1, version2),
        similarity=calculate_similarity(version1, version2),
    )
