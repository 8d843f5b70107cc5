"""
Version Graph Errors.

Every error carries a stable code and serialises through ``to_dict()`` so the
API layer can return it unchanged.
"""

from typing import Any, Dict, List, Optional


class VersionGraphError(Exception):
    """Base class for version graph failures."""

    code = "VERSION_GRAPH_ERROR"
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class NotFound(VersionGraphError):
    """Raised when an operation references an unknown id."""

    code = "NOT_FOUND"

    def __init__(self, object_type: str, object_id: str):
        self.object_type = object_type
        self.object_id = object_id
        super().__init__(f"{object_type} {object_id} not found.")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(object_type=self.object_type, object_id=self.object_id)
        return data


class InvalidParent(VersionGraphError):
    """Raised when a parent reference is missing, dangling or cross-project."""

    code = "INVALID_PARENT"

    def __init__(self, parent_version_id: Optional[str], reason: str):
        self.parent_version_id = parent_version_id
        self.reason = reason
        super().__init__(f"Invalid parent {parent_version_id!r}: {reason}.")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(parent_version_id=self.parent_version_id, reason=self.reason)
        return data


class CyclicLineageDetected(VersionGraphError):
    """Raised when following parent links revisits a node (data corruption)."""

    code = "CYCLIC_LINEAGE"

    def __init__(self, version_id: str, path: List[str]):
        self.version_id = version_id
        self.path = path
        super().__init__(
            f"Cycle detected resolving root of {version_id}: {' -> '.join(path)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(version_id=self.version_id, path=self.path)
        return data


class VersionNumberConflict(VersionGraphError):
    """Raised when two creates claim the same number in one lineage."""

    code = "VERSION_NUMBER_CONFLICT"
    retryable = True

    def __init__(self, root_version_id: str, version_number: Any, attempts: int = 1):
        self.root_version_id = root_version_id
        self.version_number = version_number
        self.attempts = attempts
        super().__init__(
            f"Version number {version_number} already taken in lineage "
            f"{root_version_id} (after {attempts} attempt(s))."
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            root_version_id=self.root_version_id,
            version_number=str(self.version_number),
            attempts=self.attempts,
        )
        return data


class InvalidStatusTransition(VersionGraphError):
    """Raised when a generation status would move backward."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, generation_id: str, current: str, requested: str):
        self.generation_id = generation_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Generation {generation_id} cannot move from {current} to {requested}."
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            generation_id=self.generation_id,
            current=self.current,
            requested=self.requested,
        )
        return data


class AlreadyExists(VersionGraphError):
    """Raised when a create supplies an id that is already stored."""

    code = "ALREADY_EXISTS"

    def __init__(self, object_type: str, object_id: str):
        self.object_type = object_type
        self.object_id = object_id
        super().__init__(f"{object_type} {object_id} already exists.")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(object_type=self.object_type, object_id=self.object_id)
        return data


class IdentityChanged(VersionGraphError):
    """Raised when a write would change the identity fields of a stored version."""

    code = "IDENTITY_CHANGED"

    def __init__(self, version_id: str, fields: List[str]):
        self.version_id = version_id
        self.fields = fields
        super().__init__(
            f"Version {version_id} cannot change its identity fields: {', '.join(fields)}."
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(version_id=self.version_id, fields=self.fields)
        return data
