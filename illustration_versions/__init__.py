"""
Illustration Version Graph

Version lineages of AI-generated illustrations, joined with their generation
history for the gallery view.
"""

import importlib.metadata

__version__ = importlib.metadata.version("illustration-versions")

from .versioning import (
    EnrichedViewRecord,
    GalleryQuery,
    GenerationRecord,
    LineageIndex,
    VersionNode,
    apply_query,
    enrich,
)

__all__ = [
    "EnrichedViewRecord",
    "GalleryQuery",
    "GenerationRecord",
    "LineageIndex",
    "VersionNode",
    "apply_query",
    "enrich",
]
