"""
Enrichment Join.

Joins generation records with the version graph into ``EnrichedViewRecord``s.
The join is a pure projection recomputed on every refresh: given the same two
snapshots it returns the same list, in the order of the generation records.

Matching rule for a generation ``g``:
1. Versions whose ``linked_generation_id`` is ``g.id`` are authoritative.
2. Only when no version links to ``g``, unlinked versions whose lineage root
   belongs to ``g.project_id`` are candidates.
The most recent candidate wins (see ``lineage.recency_key``).
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Union

import structlog

from .enriched import EnrichedViewRecord
from .generation import GenerationRecord
from .lineage import LineageIndex, is_latest, recency_key
from .version import VersionNode

logger = structlog.get_logger()


def enrich(
    generation_records: Iterable[GenerationRecord],
    version_graph: Union[LineageIndex, Iterable[VersionNode]],
) -> List[EnrichedViewRecord]:
    """Join generation records with their best-matching version node.

    Records without a candidate version are emitted unchanged. Lineages that
    fail root resolution (cycles, dangling parents) are logged and excluded,
    so their records are emitted unchanged as well.
    """
    index = (
        version_graph
        if isinstance(version_graph, LineageIndex)
        else LineageIndex(version_graph)
    )
    lineages = index.lineages()
    corrupt = index.corrupt
    for version_id in sorted(corrupt):
        error = corrupt[version_id]
        logger.warning(
            "lineage_excluded_from_join",
            version_id=version_id,
            error=error.code,
            detail=error.message,
        )

    linked: Dict[str, List[VersionNode]] = defaultdict(list)
    for node in index.nodes:
        if node.linked_generation_id is not None:
            linked[node.linked_generation_id].append(node)

    unlinked_by_project: Dict[str, List[VersionNode]] = defaultdict(list)
    for root_id in sorted(lineages):
        root = index.require(root_id)
        for node in lineages[root_id]:
            if node.linked_generation_id is None:
                unlinked_by_project[root.project_id].append(node)

    enriched = []
    for record in generation_records:
        direct = linked.get(record.id)
        if direct:
            candidates = [node for node in direct if node.id not in corrupt]
            if not candidates:
                logger.info(
                    "generation_left_unenriched",
                    generation_id=record.id,
                    reason="linked lineage is corrupt",
                )
        else:
            candidates = unlinked_by_project.get(record.project_id, [])

        if not candidates:
            enriched.append(EnrichedViewRecord.from_generation(record))
            continue

        relevant = max(candidates, key=recency_key)
        root = index.resolve_root(relevant)
        siblings = lineages.get(root.id, [])

        enriched.append(
            EnrichedViewRecord.from_generation(
                record,
                version_id=relevant.id,
                version_number=relevant.version_number,
                version_type=relevant.type if relevant.type.is_known else None,
                version_status=relevant.status,
                is_latest_version=is_latest(relevant, siblings),
                total_versions=len(siblings),
                branch_name=relevant.branch_name,
                version_tags=relevant.metadata.tag_names,
                parent_version_id=relevant.parent_version_id,
                root_version_id=root.id,
            )
        )
    return enriched
