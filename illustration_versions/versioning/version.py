"""
Version Node Schema.

Represents one node of an illustration's version lineage. Identity fields are
immutable; ``status`` and ``metadata`` are the only mutable parts.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator, model_validator

from .enums import VersionStatus, VersionType
from .primitives import (
    VersionMetadata,
    VersionTag,
    format_version_number,
    generate_ulid,
    quantize_version,
)


class VersionNode(BaseModel):
    """A version of an illustration.

    Invariants (checked by the lineage resolver, not by this schema so that
    corrupt snapshots can still be loaded and reported):
    - Parent links restricted to one root form a tree.
    - ``version_number`` strictly increases along parent -> child edges.
    - ``root_version_id`` equals the root reached by following parents.
    """

    model_config = ConfigDict(extra="forbid")

    id: constr(min_length=1, max_length=128) = Field(
        default_factory=generate_ulid, description="Unique identifier (ULID)"
    )
    project_id: constr(min_length=1, max_length=128) = Field(
        ..., description="Owning project"
    )
    character_id: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Character the illustration depicts"
    )

    type: VersionType = Field(..., description="Kind of version")
    version_number: Decimal = Field(..., gt=0, description="Ordering key, e.g. 1.1")

    parent_version_id: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Parent version (None for a lineage root)"
    )
    root_version_id: constr(min_length=1, max_length=128) = Field(
        ..., description="Root of this node's lineage"
    )
    branch_name: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Branch this node belongs to"
    )

    status: VersionStatus = Field(VersionStatus.ACTIVE, description="Node status")
    linked_generation_id: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Generation record this version represents"
    )
    prompt: Optional[constr(max_length=8000)] = Field(
        None, description="Prompt this version was produced with"
    )

    metadata: VersionMetadata = Field(default_factory=VersionMetadata)

    @field_validator("type", mode="before")
    @classmethod
    def _permissive_type(cls, value: Any) -> VersionType:
        return VersionType.from_raw(value)

    @field_validator("version_number", mode="before")
    @classmethod
    def _quantize(cls, value: Any) -> Decimal:
        return quantize_version(value)

    @property
    def is_root(self) -> bool:
        return self.parent_version_id is None

    @property
    def label(self) -> str:
        return format_version_number(self.version_number)


class VersionCreate(BaseModel):
    """Schema for creating a version.

    ``original`` starts a new lineage and takes no parent; every other kind
    requires one. ``branch_name`` may only be given for ``branch`` nodes;
    revisions inherit their parent's branch.
    """

    model_config = ConfigDict(extra="forbid")

    id: Optional[constr(min_length=1, max_length=128)] = None
    project_id: constr(min_length=1, max_length=128)
    character_id: Optional[constr(min_length=1, max_length=128)] = None
    type: VersionType
    parent_version_id: Optional[constr(min_length=1, max_length=128)] = None
    branch_name: Optional[constr(min_length=1, max_length=128)] = None
    status: VersionStatus = VersionStatus.ACTIVE
    linked_generation_id: Optional[constr(min_length=1, max_length=128)] = None
    prompt: Optional[constr(max_length=8000)] = None
    metadata: VersionMetadata = Field(default_factory=VersionMetadata)

    @model_validator(mode="after")
    def _check_shape(self) -> "VersionCreate":
        if self.type is VersionType.UNKNOWN:
            raise ValueError("cannot create a version of unknown type")
        if self.type is VersionType.ORIGINAL and self.parent_version_id:
            raise ValueError("an original version cannot have a parent")
        if self.type is not VersionType.ORIGINAL and not self.parent_version_id:
            raise ValueError(f"a {self.type.value} version requires parent_version_id")
        if self.branch_name and self.type is not VersionType.BRANCH:
            raise ValueError("branch_name is only accepted for branch versions")
        return self


class VersionStatusUpdate(BaseModel):
    """Schema for retagging a version's status."""

    model_config = ConfigDict(extra="forbid")

    status: VersionStatus


class VersionTagsAdd(BaseModel):
    """Schema for adding tags to a version."""

    model_config = ConfigDict(extra="forbid")

    tags: List[VersionTag] = Field(..., min_length=1)


class BranchNameUpdate(BaseModel):
    """Schema for renaming a version's branch."""

    model_config = ConfigDict(extra="forbid")

    branch_name: constr(min_length=1, max_length=128)


class VersionMetadataUpdate(BaseModel):
    """Schema for updating descriptive metadata and usage counters."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[constr(max_length=256)] = None
    description: Optional[constr(max_length=4000)] = None
    view_count: Optional[int] = Field(None, ge=0)
    like_count: Optional[int] = Field(None, ge=0)
    export_count: Optional[int] = Field(None, ge=0)


class GenerationLink(BaseModel):
    """Schema for linking a version to a generation record."""

    model_config = ConfigDict(extra="forbid")

    generation_id: constr(min_length=1, max_length=128)
