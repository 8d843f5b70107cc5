"""
Illustration Version Graph SQLAlchemy Database Models.

These models map the Pydantic generation record and version node schemas to
database tables:
- Scalar metadata is stored in flat columns so it can be filtered and indexed
- Tags and AI parameters are stored as JSON
- ``version_type`` is a plain string so values written by newer releases load
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from ..versioning.generation import GenerationRecord
from ..versioning.primitives import ImageLocation, VersionMetadata
from ..versioning.version import VersionNode
from .base import Base

# These mirror illustration_versions/versioning/enums.py
generation_status_enum = Enum(
    "pending",
    "processing",
    "completed",
    "failed",
    name="generation_status",
)

version_status_enum = Enum(
    "active",
    "archived",
    "superseded",
    name="version_status",
)


def _iso(value):
    return value.isoformat() if value else None


class GenerationRecordModel(Base):
    """SQLAlchemy model for generation records."""

    __tablename__ = "illustration_generations"

    id = Column(String(128), primary_key=True)
    project_id = Column(String(128), nullable=False, index=True)
    character_id = Column(String(128), nullable=True, index=True)

    original_prompt = Column(Text, nullable=False)
    enhanced_prompt = Column(Text, nullable=True)

    provider = Column(String(64), nullable=False, index=True)
    model = Column(String(128), nullable=False)
    is_free = Column(Boolean, nullable=False, default=False)

    status = Column(generation_status_enum, nullable=False, default="pending", index=True)
    error_message = Column(Text, nullable=True)

    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)

    # Exactly one of these is set
    image_url = Column(String(2000), nullable=True)
    image_path = Column(String(2000), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_illustration_generations_project_created", "project_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "character_id": self.character_id,
            "original_prompt": self.original_prompt,
            "enhanced_prompt": self.enhanced_prompt,
            "provider": self.provider,
            "model": self.model,
            "is_free": self.is_free,
            "status": self.status,
            "error_message": self.error_message,
            "width": self.width,
            "height": self.height,
            "image_url": self.image_url,
            "image_path": self.image_path,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_record(self) -> GenerationRecord:
        """Convert to the immutable Pydantic record."""
        return GenerationRecord(
            id=self.id,
            project_id=self.project_id,
            character_id=self.character_id,
            original_prompt=self.original_prompt,
            enhanced_prompt=self.enhanced_prompt,
            provider=self.provider,
            model=self.model,
            is_free=self.is_free,
            status=self.status,
            error_message=self.error_message,
            width=self.width,
            height=self.height,
            image_location=ImageLocation(url=self.image_url, path=self.image_path),
            created_at=self.created_at,
        )


class VersionNodeModel(Base):
    """SQLAlchemy model for version nodes.

    Nodes are never deleted. ``(root_version_id, version_number)`` is unique so
    two concurrent creates cannot claim the same number in one lineage.
    """

    __tablename__ = "illustration_versions"

    id = Column(String(128), primary_key=True)
    project_id = Column(String(128), nullable=False, index=True)
    character_id = Column(String(128), nullable=True, index=True)

    version_type = Column(String(32), nullable=False)
    version_number = Column(Numeric(12, 1), nullable=False)

    # Parent links are id references; integrity is checked by the lineage resolver
    parent_version_id = Column(String(128), nullable=True, index=True)
    root_version_id = Column(String(128), nullable=False, index=True)
    branch_name = Column(String(128), nullable=True)

    status = Column(version_status_enum, nullable=False, default="active", index=True)
    linked_generation_id = Column(String(128), nullable=True, index=True)
    prompt = Column(Text, nullable=True)

    # Metadata
    title = Column(String(256), nullable=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    ai_parameters = Column(JSON, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    generation_time_ms = Column(Integer, nullable=False, default=0)
    file_size_bytes = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    like_count = Column(Integer, nullable=False, default=0)
    export_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "root_version_id",
            "version_number",
            name="uq_illustration_versions_root_number",
        ),
        Index("ix_illustration_versions_project_created", "project_id", "created_at"),
    )

    @classmethod
    def from_node(cls, node: VersionNode) -> "VersionNodeModel":
        meta = node.metadata
        return cls(
            id=node.id,
            project_id=node.project_id,
            character_id=node.character_id,
            version_type=node.type.value,
            version_number=node.version_number,
            parent_version_id=node.parent_version_id,
            root_version_id=node.root_version_id,
            branch_name=node.branch_name,
            status=node.status.value,
            linked_generation_id=node.linked_generation_id,
            prompt=node.prompt,
            title=meta.title,
            description=meta.description,
            tags=[tag.model_dump() for tag in meta.tags],
            ai_parameters=meta.ai_parameters.model_dump() if meta.ai_parameters else None,
            width=meta.dimensions.width if meta.dimensions else None,
            height=meta.dimensions.height if meta.dimensions else None,
            generation_time_ms=meta.generation_time_ms,
            file_size_bytes=meta.file_size_bytes,
            view_count=meta.view_count,
            like_count=meta.like_count,
            export_count=meta.export_count,
            created_at=meta.created_at,
            updated_at=meta.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "character_id": self.character_id,
            "type": self.version_type,
            "version_number": str(self.version_number),
            "parent_version_id": self.parent_version_id,
            "root_version_id": self.root_version_id,
            "branch_name": self.branch_name,
            "status": self.status,
            "linked_generation_id": self.linked_generation_id,
            "prompt": self.prompt,
            "title": self.title,
            "description": self.description,
            "tags": self.tags,
            "ai_parameters": self.ai_parameters,
            "width": self.width,
            "height": self.height,
            "generation_time_ms": self.generation_time_ms,
            "file_size_bytes": self.file_size_bytes,
            "view_count": self.view_count,
            "like_count": self.like_count,
            "export_count": self.export_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_node(self) -> VersionNode:
        """Convert to the Pydantic version node."""
        dimensions = None
        if self.width and self.height:
            dimensions = {"width": self.width, "height": self.height}
        return VersionNode(
            id=self.id,
            project_id=self.project_id,
            character_id=self.character_id,
            type=self.version_type,
            version_number=self.version_number,
            parent_version_id=self.parent_version_id,
            root_version_id=self.root_version_id,
            branch_name=self.branch_name,
            status=self.status,
            linked_generation_id=self.linked_generation_id,
            prompt=self.prompt,
            metadata=VersionMetadata(
                title=self.title,
                description=self.description,
                tags=self.tags or [],
                ai_parameters=self.ai_parameters,
                dimensions=dimensions,
                generation_time_ms=self.generation_time_ms or 0,
                file_size_bytes=self.file_size_bytes or 0,
                view_count=self.view_count or 0,
                like_count=self.like_count or 0,
                export_count=self.export_count or 0,
                created_at=self.created_at,
                updated_at=self.updated_at,
            ),
        )
