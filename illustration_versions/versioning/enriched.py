"""
Enriched View Record Schema.

A generation record joined with the lineage facts of its best-matching
version. Derived on every refresh; never persisted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field

from .enums import VersionStatus, VersionType
from .generation import GenerationRecord

VERSION_FIELDS = (
    "version_id",
    "version_number",
    "version_type",
    "version_status",
    "is_latest_version",
    "total_versions",
    "branch_name",
    "version_tags",
    "parent_version_id",
    "root_version_id",
)


class EnrichedViewRecord(GenerationRecord):
    """Generation record plus optional version data.

    A record without a matching version keeps every version field as ``None``;
    absent data is never defaulted to zero or False.
    """

    version_id: Optional[str] = Field(None, description="Matched version node")
    version_number: Optional[Decimal] = Field(None, description="Its version number")
    version_type: Optional[VersionType] = Field(
        None, description="Its type; None when the stored type is unknown"
    )
    version_status: Optional[VersionStatus] = Field(None, description="Its status")
    is_latest_version: Optional[bool] = Field(
        None, description="Most recent node of its lineage"
    )
    total_versions: Optional[int] = Field(None, description="Size of its lineage")
    branch_name: Optional[str] = Field(None, description="Its branch")
    version_tags: Optional[List[str]] = Field(None, description="Its tag names")
    parent_version_id: Optional[str] = Field(None, description="Its parent")
    root_version_id: Optional[str] = Field(None, description="Its lineage root")

    @classmethod
    def from_generation(cls, record: GenerationRecord, **version_fields: Any) -> "EnrichedViewRecord":
        return cls(**record.model_dump(), **version_fields)

    @property
    def has_version_data(self) -> bool:
        return self.version_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with absent version fields omitted."""
        data = self.model_dump(mode="json")
        for name in VERSION_FIELDS:
            if data.get(name) is None:
                data.pop(name, None)
        return data
