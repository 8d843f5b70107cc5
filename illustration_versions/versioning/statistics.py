"""
Version Statistics.

Aggregate counters over a set of version nodes (one lineage or a project).
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, Field

from .enums import VersionStatus
from .lineage import LineageIndex
from .version import VersionNode

TOP_N = 10


class VersionStatistics(BaseModel):
    """Aggregate statistics of a set of versions."""

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    total_versions: int = 0
    active_versions: int = 0
    archived_versions: int = 0
    superseded_versions: int = 0
    total_lineages: int = 0

    total_branches: int = 0
    active_branches: int = 0
    average_versions_per_branch: float = 0.0

    average_generation_time_ms: float = 0.0
    total_generation_time_ms: int = 0
    average_file_size_bytes: float = 0.0
    total_storage_bytes: int = 0

    model_usage: Dict[str, int] = Field(default_factory=dict)
    provider_usage: Dict[str, int] = Field(default_factory=dict)

    most_viewed: List[str] = Field(default_factory=list)
    most_liked: List[str] = Field(default_factory=list)
    most_exported: List[str] = Field(default_factory=list)


def _top(nodes: List[VersionNode], counter: str) -> List[str]:
    ranked = sorted(nodes, key=lambda node: (-getattr(node.metadata, counter), node.id))
    return [node.id for node in ranked[:TOP_N] if getattr(node.metadata, counter) > 0]


def compute_statistics(nodes: Iterable[VersionNode]) -> VersionStatistics:
    index = LineageIndex(nodes)
    versions = index.nodes
    if not versions:
        return VersionStatistics()

    statuses = Counter(node.status for node in versions)
    total_generation = sum(node.metadata.generation_time_ms for node in versions)
    total_storage = sum(node.metadata.file_size_bytes for node in versions)

    branch_count = 0
    active_branch_count = 0
    for root_id in index.lineages():
        for branch in index.branches(root_id):
            branch_count += 1
            if branch.is_active:
                active_branch_count += 1

    models: Counter = Counter()
    providers: Counter = Counter()
    for node in versions:
        params = node.metadata.ai_parameters
        if params is not None:
            models[params.model] += 1
            providers[params.provider] += 1

    return VersionStatistics(
        total_versions=len(versions),
        active_versions=statuses[VersionStatus.ACTIVE],
        archived_versions=statuses[VersionStatus.ARCHIVED],
        superseded_versions=statuses[VersionStatus.SUPERSEDED],
        total_lineages=len(index.lineages()),
        total_branches=branch_count,
        active_branches=active_branch_count,
        average_versions_per_branch=(
            round(len(versions) / branch_count, 3) if branch_count else 0.0
        ),
        average_generation_time_ms=round(total_generation / len(versions), 3),
        total_generation_time_ms=total_generation,
        average_file_size_bytes=round(total_storage / len(versions), 3),
        total_storage_bytes=total_storage,
        model_usage=dict(sorted(models.items())),
        provider_usage=dict(sorted(providers.items())),
        most_viewed=_top(versions, "view_count"),
        most_liked=_top(versions, "like_count"),
        most_exported=_top(versions, "export_count"),
    )
