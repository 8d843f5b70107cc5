"""
Illustration Version Graph.

Tracks the lineage of generated illustrations and joins it with the history of
generation attempts:

- GenerationRecord: One image generation attempt (immutable)
- VersionNode: One version of an illustration, linked to its parent
- LineageIndex: Root resolution, latest detection and trees over a snapshot
- enrich: Join of generation records with their best-matching version
- GalleryQuery: Filters and sort keys of the gallery view

Database services, the refresh coordinator and the API router live in
``services``, ``refresh`` and ``routes``; import them from there.
"""

# Enums
from .enums import (
    DifferenceType,
    GenerationStatus,
    LineageFilter,
    SortKey,
    StatusFilter,
    VersionStatus,
    VersionType,
)

# Errors
from .errors import (
    AlreadyExists,
    CyclicLineageDetected,
    IdentityChanged,
    InvalidParent,
    InvalidStatusTransition,
    NotFound,
    VersionGraphError,
    VersionNumberConflict,
)

# Primitives
from .primitives import (
    AIParameters,
    Dimensions,
    ImageLocation,
    VersionMetadata,
    VersionTag,
    format_version_number,
    generate_ulid,
    utc_now,
)

# Object types
from .generation import GenerationRecord, GenerationRecordCreate, GenerationStatusUpdate
from .version import VersionCreate, VersionNode
from .enriched import EnrichedViewRecord

# Computations
from .lineage import LineageIndex, VersionTree, is_latest, next_version_number, recency_key
from .enrichment import enrich
from .query import (
    GalleryQuery,
    VersionFilter,
    apply_query,
    filter_records,
    filter_versions,
    sort_records,
)
from .comparison import VersionComparison, compare_versions
from .statistics import VersionStatistics, compute_statistics

__all__ = [
    # Enums
    "DifferenceType",
    "GenerationStatus",
    "LineageFilter",
    "SortKey",
    "StatusFilter",
    "VersionStatus",
    "VersionType",
    # Errors
    "AlreadyExists",
    "CyclicLineageDetected",
    "IdentityChanged",
    "InvalidParent",
    "InvalidStatusTransition",
    "NotFound",
    "VersionGraphError",
    "VersionNumberConflict",
    # Primitives
    "AIParameters",
    "Dimensions",
    "ImageLocation",
    "VersionMetadata",
    "VersionTag",
    "format_version_number",
    "generate_ulid",
    "utc_now",
    # Object types
    "GenerationRecord",
    "GenerationRecordCreate",
    "GenerationStatusUpdate",
    "VersionCreate",
    "VersionNode",
    "EnrichedViewRecord",
    # Computations
    "LineageIndex",
    "VersionTree",
    "is_latest",
    "next_version_number",
    "recency_key",
    "enrich",
    "GalleryQuery",
    "VersionFilter",
    "apply_query",
    "filter_records",
    "filter_versions",
    "sort_records",
    "VersionComparison",
    "compare_versions",
    "VersionStatistics",
    "compute_statistics",
]
