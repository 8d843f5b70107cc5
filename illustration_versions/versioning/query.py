"""
Gallery Query Façade.

Pure, synchronous filtering and sorting over enriched view records, plus the
version manager's filters over version nodes. Inputs are never mutated;
every sort is stable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

from .enriched import EnrichedViewRecord
from .enums import (
    GenerationStatus,
    LineageFilter,
    SortKey,
    StatusFilter,
    VersionStatus,
    VersionType,
)
from .lineage import DEFAULT_BRANCH_NAME
from .primitives import ensure_utc, format_version_number
from .version import VersionNode

ALL_PROVIDERS = "all"


class GalleryQuery(BaseModel):
    """Filter and sort options of the illustration gallery. Filters AND together."""

    model_config = ConfigDict(extra="forbid")

    project_id: Optional[constr(min_length=1, max_length=128)] = Field(
        None, description="Restrict to one project"
    )
    provider: constr(min_length=1, max_length=64) = Field(
        ALL_PROVIDERS, description="'all' or a provider name"
    )
    status: StatusFilter = Field(StatusFilter.ALL)
    lineage: LineageFilter = Field(LineageFilter.ALL)
    search: str = Field("", max_length=512, description="Free-text search")
    sort_by: SortKey = Field(SortKey.DATE)
    custom_order: List[str] = Field(
        default_factory=list, description="Explicit id permutation for 'custom'"
    )


def _matches_lineage(record: EnrichedViewRecord, lineage: LineageFilter) -> bool:
    if lineage is LineageFilter.LATEST:
        return record.is_latest_version is True
    if lineage is LineageFilter.ORIGINAL:
        return record.version_type is VersionType.ORIGINAL
    if lineage is LineageFilter.MULTIPLE:
        return (record.total_versions or 0) > 1
    return True


def matches_search(record: EnrichedViewRecord, search: str) -> bool:
    """Case-insensitive substring match on prompts, version label and tags."""
    needle = search.strip().lower()
    if not needle:
        return True
    haystacks = [
        record.original_prompt,
        record.enhanced_prompt or "",
        format_version_number(record.version_number),
        *(record.version_tags or []),
    ]
    return any(needle in text.lower() for text in haystacks)


def matches(record: EnrichedViewRecord, query: GalleryQuery) -> bool:
    if query.project_id is not None and record.project_id != query.project_id:
        return False
    if query.provider != ALL_PROVIDERS and record.provider != query.provider:
        return False
    if query.status is not StatusFilter.ALL and record.status != GenerationStatus(
        query.status.value
    ):
        return False
    if not _matches_lineage(record, query.lineage):
        return False
    return matches_search(record, query.search)


def filter_records(
    records: Sequence[EnrichedViewRecord], query: GalleryQuery
) -> List[EnrichedViewRecord]:
    """Records matching every filter of ``query``, in input order."""
    return [record for record in records if matches(record, query)]


def _custom_key(custom_order: Sequence[str]) -> Callable[[EnrichedViewRecord], int]:
    positions: Dict[str, int] = {}
    for position, record_id in enumerate(custom_order):
        positions.setdefault(record_id, position)
    missing = len(positions)
    return lambda record: positions.get(record.id, missing)


def sort_records(
    records: Sequence[EnrichedViewRecord],
    sort_by: SortKey = SortKey.DATE,
    custom_order: Sequence[str] = (),
) -> List[EnrichedViewRecord]:
    """Return a sorted copy of ``records``.

    ``version`` orders by lineage size, then by version number, both
    descending. ``custom`` follows ``custom_order``; ids absent from it go
    last in their original relative order.
    """
    if sort_by is SortKey.DATE:
        return sorted(records, key=lambda r: ensure_utc(r.created_at), reverse=True)
    if sort_by is SortKey.PROVIDER:
        return sorted(records, key=lambda r: r.provider)
    if sort_by is SortKey.MODEL:
        return sorted(records, key=lambda r: r.model)
    if sort_by is SortKey.VERSION:
        return sorted(
            records,
            key=lambda r: (r.total_versions or 0, r.version_number or 0),
            reverse=True,
        )
    return sorted(records, key=_custom_key(custom_order))


def apply_query(
    records: Sequence[EnrichedViewRecord], query: GalleryQuery
) -> List[EnrichedViewRecord]:
    """Filter then sort ``records`` as the gallery displays them."""
    return sort_records(filter_records(records, query), query.sort_by, query.custom_order)


class VersionFilter(BaseModel):
    """Filters over version nodes of the version manager. Filters AND together.

    Empty lists and unset fields do not filter. Within one list the values OR
    together; a node without a branch name counts as the default branch.
    """

    model_config = ConfigDict(extra="forbid")

    created_from: Optional[datetime] = Field(None, description="Created at or after")
    created_to: Optional[datetime] = Field(None, description="Created at or before")
    statuses: List[VersionStatus] = Field(default_factory=list)
    types: List[VersionType] = Field(default_factory=list)
    tags: List[constr(min_length=1, max_length=64)] = Field(default_factory=list)
    branches: List[constr(min_length=1, max_length=128)] = Field(default_factory=list)
    keyword: str = Field(
        "", max_length=512, description="Substring of prompt, title or description"
    )
    model: Optional[constr(min_length=1, max_length=128)] = None
    provider: Optional[constr(min_length=1, max_length=64)] = None
    min_file_size: Optional[int] = Field(None, ge=0, description="Bytes, inclusive")
    max_file_size: Optional[int] = Field(None, ge=0, description="Bytes, inclusive")

    @model_validator(mode="after")
    def _check_ranges(self) -> "VersionFilter":
        if (
            self.created_from is not None
            and self.created_to is not None
            and ensure_utc(self.created_from) > ensure_utc(self.created_to)
        ):
            raise ValueError("created_from must not be after created_to")
        if (
            self.min_file_size is not None
            and self.max_file_size is not None
            and self.min_file_size > self.max_file_size
        ):
            raise ValueError("min_file_size must not exceed max_file_size")
        return self


def _matches_keyword(node: VersionNode, keyword: str) -> bool:
    needle = keyword.strip().lower()
    if not needle:
        return True
    haystacks = (node.prompt, node.metadata.title, node.metadata.description)
    return any(needle in text.lower() for text in haystacks if text)


def matches_version(node: VersionNode, version_filter: VersionFilter) -> bool:
    meta = node.metadata
    created = ensure_utc(meta.created_at)
    if version_filter.created_from and created < ensure_utc(version_filter.created_from):
        return False
    if version_filter.created_to and created > ensure_utc(version_filter.created_to):
        return False
    if version_filter.statuses and node.status not in version_filter.statuses:
        return False
    if version_filter.types and node.type not in version_filter.types:
        return False
    if version_filter.tags and not set(version_filter.tags) & set(meta.tag_names):
        return False
    if (
        version_filter.branches
        and (node.branch_name or DEFAULT_BRANCH_NAME) not in version_filter.branches
    ):
        return False
    if not _matches_keyword(node, version_filter.keyword):
        return False

    params = meta.ai_parameters
    if version_filter.model and (params is None or params.model != version_filter.model):
        return False
    if version_filter.provider and (
        params is None or params.provider != version_filter.provider
    ):
        return False
    size = meta.file_size_bytes
    if version_filter.min_file_size is not None and size < version_filter.min_file_size:
        return False
    if version_filter.max_file_size is not None and size > version_filter.max_file_size:
        return False
    return True


def filter_versions(
    nodes: Sequence[VersionNode], version_filter: VersionFilter
) -> List[VersionNode]:
    """Nodes matching every filter of ``version_filter``, in input order."""
    return [node for node in nodes if matches_version(node, version_filter)]
