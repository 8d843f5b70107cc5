"""
Illustration Version Graph Enums.

These enums define the allowed values for version nodes, generation records
and gallery queries. Stored values outside these sets are mapped explicitly
(see ``VersionType.from_raw``) rather than rejected.
"""

from enum import Enum
from typing import Any


class GenerationStatus(str, Enum):
    """Lifecycle of one image generation attempt."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VersionType(str, Enum):
    """Kind of version node.

    ``UNKNOWN`` is never written by this service. It represents stored values
    written by a newer release that this one does not recognise.
    """

    ORIGINAL = "original"
    REVISION = "revision"
    BRANCH = "branch"
    MERGE = "merge"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, value: Any) -> "VersionType":
        """Map a stored value to a member, degrading unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_known(self) -> bool:
        return self is not VersionType.UNKNOWN


class VersionStatus(str, Enum):
    """Status of a version node. Nodes are archived, never deleted."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    SUPERSEDED = "superseded"


class StatusFilter(str, Enum):
    """Generation status filter offered by the gallery."""

    ALL = "all"
    COMPLETED = "completed"
    FAILED = "failed"


class LineageFilter(str, Enum):
    """Lineage membership filter offered by the gallery."""

    ALL = "all"
    LATEST = "latest"
    ORIGINAL = "original"
    MULTIPLE = "multiple"


class SortKey(str, Enum):
    """Gallery sort keys."""

    DATE = "date"
    PROVIDER = "provider"
    MODEL = "model"
    VERSION = "version"
    CUSTOM = "custom"


class DifferenceType(str, Enum):
    """Category of a difference between two versions."""

    PROMPT = "prompt"
    PARAMETERS = "parameters"
    METADATA = "metadata"
    VISUAL = "visual"
