"""
Illustration Version Graph Common Primitives.

Building blocks shared by generation records and version nodes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator
from ulid import ULID

VERSION_STEP = Decimal("0.1")


def generate_ulid() -> str:
    """Generate a ULID for object IDs.

    ULIDs are lexicographically sortable and globally unique.
    """
    return str(ULID())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def quantize_version(value: Any) -> Decimal:
    """Normalise a version number to one fractional digit."""
    return Decimal(str(value)).quantize(VERSION_STEP, rounding=ROUND_HALF_UP)


def format_version_number(value: Optional[Decimal]) -> str:
    """Render a version number the way the gallery shows it (``v1.1``).

    Missing or zero version numbers render as an empty string.
    """
    if not value:
        return ""
    return f"v{quantize_version(value)}"


class ImageLocation(BaseModel):
    """Where a generated image lives: a remote URL or a local path, never both."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: Optional[constr(min_length=1, max_length=2000)] = Field(
        None, description="Remote image URL"
    )
    path: Optional[constr(min_length=1, max_length=2000)] = Field(
        None, description="Local file path"
    )

    @model_validator(mode="after")
    def _exactly_one(self) -> "ImageLocation":
        if (self.url is None) == (self.path is None):
            raise ValueError("exactly one of 'url' or 'path' must be set")
        return self

    @property
    def value(self) -> str:
        return self.url if self.url is not None else self.path  # type: ignore[return-value]


class Dimensions(BaseModel):
    """Image dimensions in pixels."""

    model_config = ConfigDict(extra="forbid")

    width: int = Field(..., gt=0, description="Width in pixels")
    height: int = Field(..., gt=0, description="Height in pixels")


class AIParameters(BaseModel):
    """Generation parameters recorded on a version."""

    model_config = ConfigDict(extra="forbid")

    model: constr(min_length=1, max_length=128) = Field(..., description="Model id")
    provider: constr(min_length=1, max_length=64) = Field(
        ..., description="Generation backend"
    )
    seed: Optional[int] = Field(None, description="Random seed")
    guidance: Optional[float] = Field(None, ge=0, description="Guidance scale")
    steps: Optional[int] = Field(None, ge=1, description="Sampling steps")
    sampler: Optional[constr(max_length=64)] = Field(None, description="Sampler name")
    enhance: Optional[bool] = Field(None, description="Prompt enhancement enabled")
    style: Optional[constr(max_length=128)] = Field(None, description="Style preset")


class VersionTag(BaseModel):
    """A label attached to a version. Tags are unique by name on a version."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: constr(min_length=1, max_length=64) = Field(..., description="Tag name")
    color: Optional[constr(max_length=32)] = Field(None, description="Display color")
    description: Optional[constr(max_length=256)] = Field(
        None, description="Tag description"
    )


def merge_tags(existing: List[VersionTag], new: List[VersionTag]) -> List[VersionTag]:
    """Union two tag lists by name, keeping first occurrence and insertion order."""
    merged: List[VersionTag] = []
    seen = set()
    for tag in [*existing, *new]:
        if tag.name in seen:
            continue
        seen.add(tag.name)
        merged.append(tag)
    return merged


class VersionMetadata(BaseModel):
    """Descriptive and usage metadata of a version node."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[constr(max_length=256)] = Field(None, description="Display title")
    description: Optional[constr(max_length=4000)] = Field(
        None, description="Free-form description"
    )
    tags: List[VersionTag] = Field(default_factory=list, description="Version tags")

    ai_parameters: Optional[AIParameters] = Field(
        None, description="Parameters the image was generated with"
    )
    dimensions: Optional[Dimensions] = Field(None, description="Image dimensions")
    generation_time_ms: int = Field(0, ge=0, description="Generation time (ms)")
    file_size_bytes: int = Field(0, ge=0, description="File size (bytes)")

    view_count: int = Field(0, ge=0)
    like_count: int = Field(0, ge=0)
    export_count: int = Field(0, ge=0)

    created_at: datetime = Field(
        default_factory=utc_now, description="Creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=utc_now, description="Last update timestamp (UTC)"
    )

    @model_validator(mode="after")
    def _dedupe_tags(self) -> "VersionMetadata":
        self.tags = merge_tags([], self.tags)
        return self

    @property
    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]
