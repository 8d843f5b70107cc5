"""
Illustration Version Graph Service Layer.

Database operations for generation records and version nodes. Services take a
SQLAlchemy session, return Pydantic objects and write an audit entry after
every committed change. A failed mutation is rolled back before the error is
raised, so the store is left unchanged.
"""

import threading
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db.audit_service import AuditService
from ..db.models import GenerationRecordModel, VersionNodeModel
from .enums import VersionStatus, VersionType
from .errors import (
    AlreadyExists,
    IdentityChanged,
    InvalidParent,
    InvalidStatusTransition,
    NotFound,
    VersionNumberConflict,
)
from .generation import (
    GenerationRecord,
    GenerationRecordCreate,
    GenerationStatusUpdate,
    can_transition,
)
from .lineage import LineageIndex, next_version_number
from .primitives import (
    VersionTag,
    generate_ulid,
    merge_tags,
    utc_now,
)
from .version import VersionCreate, VersionMetadataUpdate, VersionNode

logger = structlog.get_logger()

GENERATION_KIND = "GenerationRecord"
VERSION_KIND = "VersionNode"

# Fields a stored version never changes
IDENTITY_FIELDS = (
    "project_id",
    "type",
    "version_number",
    "parent_version_id",
    "root_version_id",
)

# Numbering inside one lineage is serialised per process by these striped
# locks; the unique constraint on (root_version_id, version_number) covers
# other processes.
LINEAGE_LOCK_STRIPES = 64
_lineage_locks: Tuple[threading.Lock, ...] = tuple(
    threading.Lock() for _ in range(LINEAGE_LOCK_STRIPES)
)


def lineage_lock(root_version_id: str) -> threading.Lock:
    """Return the process-wide lock guarding one lineage.

    Lineages share a fixed pool of locks, so unrelated lineages may wait on
    each other but the pool never grows.
    """
    return _lineage_locks[hash(root_version_id) % LINEAGE_LOCK_STRIPES]


def default_branch_name(
    version_type: VersionType, version_number: Decimal, parent: Optional[VersionNode]
) -> Optional[str]:
    """Branch a new node lands on when the caller does not name one.

    Only branch points and their descendants carry a name; nodes of the
    unbranched trunk have none.
    """
    if version_type is VersionType.BRANCH:
        return f"branch-v{int(version_number)}"
    if parent is not None:
        return parent.branch_name
    return None


class GenerationRecordService:
    """Service for managing generation records."""

    def __init__(
        self,
        db: Session,
        audit: Optional[AuditService] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.audit = audit or AuditService(db)
        self.settings = settings or get_settings()

    def _get_model(self, generation_id: str) -> GenerationRecordModel:
        row = (
            self.db.query(GenerationRecordModel)
            .filter(GenerationRecordModel.id == generation_id)
            .first()
        )
        if row is None:
            raise NotFound(GENERATION_KIND, generation_id)
        return row

    def create(
        self,
        data: GenerationRecordCreate,
        actor_kind: str = "system",
        actor_id: str = "generation-service",
    ) -> GenerationRecord:
        """Record a new generation attempt."""
        generation_id = data.id or generate_ulid()
        if self.db.get(GenerationRecordModel, generation_id) is not None:
            raise AlreadyExists(GENERATION_KIND, generation_id)

        now = utc_now()
        row = GenerationRecordModel(
            id=generation_id,
            project_id=data.project_id,
            character_id=data.character_id,
            original_prompt=data.original_prompt,
            enhanced_prompt=data.enhanced_prompt,
            provider=data.provider,
            model=data.model,
            is_free=data.is_free,
            status=data.status.value,
            width=data.width,
            height=data.height,
            image_url=data.image_location.url,
            image_path=data.image_location.path,
            created_at=data.created_at or now,
            updated_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)

        self.audit.log_create(
            entity_kind=GENERATION_KIND,
            entity_id=row.id,
            after=row.to_dict(),
            actor_kind=actor_kind,
            actor_id=actor_id,
        )
        logger.info("generation_recorded", generation_id=row.id, project_id=row.project_id)
        return row.to_record()

    def get(self, generation_id: str) -> GenerationRecord:
        return self._get_model(generation_id).to_record()

    def fetch_generation_history(
        self,
        project_id: str,
        character_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[GenerationRecord]:
        """Generation records of a project, newest first."""
        query = self.db.query(GenerationRecordModel).filter(
            GenerationRecordModel.project_id == project_id
        )
        if character_id:
            query = query.filter(GenerationRecordModel.character_id == character_id)

        rows = (
            query.order_by(
                desc(GenerationRecordModel.created_at), desc(GenerationRecordModel.id)
            )
            .offset(offset)
            .limit(limit or self.settings.history_page_size)
            .all()
        )
        return [row.to_record() for row in rows]

    def update_status(
        self,
        generation_id: str,
        update: GenerationStatusUpdate,
        actor_kind: str = "system",
        actor_id: str = "generation-service",
    ) -> GenerationRecord:
        """Advance a generation's status. Statuses never move backward."""
        row = self._get_model(generation_id)
        old_status = row.status
        if not can_transition(row.to_record().status, update.status):
            raise InvalidStatusTransition(generation_id, old_status, update.status.value)

        row.status = update.status.value
        if update.error_message is not None:
            row.error_message = update.error_message
        row.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(row)

        self.audit.log_status_change(
            entity_kind=GENERATION_KIND,
            entity_id=generation_id,
            old_status=old_status,
            new_status=row.status,
            actor_kind=actor_kind,
            actor_id=actor_id,
        )
        return row.to_record()


class VersionGraphService:
    """Service for managing version nodes and their lineages."""

    def __init__(
        self,
        db: Session,
        audit: Optional[AuditService] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.audit = audit or AuditService(db)
        self.settings = settings or get_settings()

    def _get_model(self, version_id: str) -> VersionNodeModel:
        row = self.db.query(VersionNodeModel).filter(VersionNodeModel.id == version_id).first()
        if row is None:
            raise NotFound(VERSION_KIND, version_id)
        return row

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, version_id: str) -> VersionNode:
        return self._get_model(version_id).to_node()

    def load_version_graph(self, project_id: str) -> List[VersionNode]:
        """Every version node of a project, ordered by id."""
        rows = (
            self.db.query(VersionNodeModel)
            .filter(VersionNodeModel.project_id == project_id)
            .order_by(VersionNodeModel.id)
            .all()
        )
        return [row.to_node() for row in rows]

    def index(self, project_id: str) -> LineageIndex:
        return LineageIndex(self.load_version_graph(project_id))

    def index_for_root(self, root_version_id: str) -> LineageIndex:
        """Index of the project owning ``root_version_id``."""
        root = self._get_model(root_version_id)
        return self.index(root.project_id)

    def list_by_root(self, root_version_id: str) -> List[VersionNode]:
        """All nodes whose resolved root is ``root_version_id``."""
        return self.index_for_root(root_version_id).siblings_of_root(root_version_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_version(
        self,
        data: VersionCreate,
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        """Create a version node and assign its number.

        ``original`` starts a new lineage at 1.0. Other kinds attach to
        ``parent_version_id``, which must exist in the same project. Numbering
        is retried on conflict up to ``version_number_max_attempts`` times.
        """
        version_id = data.id or generate_ulid()
        if self.db.get(VersionNodeModel, version_id) is not None:
            raise AlreadyExists(VERSION_KIND, version_id)

        if data.type is VersionType.ORIGINAL:
            return self._insert_with_retry(
                data, version_id, None, version_id, actor_kind, actor_id
            )

        parent_row = self.db.get(VersionNodeModel, data.parent_version_id)
        if parent_row is None:
            raise InvalidParent(data.parent_version_id, "does not exist")
        if parent_row.project_id != data.project_id:
            raise InvalidParent(
                data.parent_version_id, f"belongs to project {parent_row.project_id}"
            )

        parent = parent_row.to_node()
        root = self.index(data.project_id).resolve_root(parent)
        with lineage_lock(root.id):
            return self._insert_with_retry(
                data, version_id, parent, root.id, actor_kind, actor_id
            )

    def _insert_with_retry(
        self,
        data: VersionCreate,
        version_id: str,
        parent: Optional[VersionNode],
        root_id: str,
        actor_kind: str,
        actor_id: str,
    ) -> VersionNode:
        max_attempts = self.settings.version_number_max_attempts
        number = None
        for attempt in range(1, max_attempts + 1):
            lineage: Sequence[VersionNode] = []
            if parent is not None:
                lineage = self.index(data.project_id).siblings_of_root(root_id)
            number = next_version_number(data.type, parent, lineage)

            now = utc_now()
            metadata = data.metadata.model_copy(update={"created_at": now, "updated_at": now})
            node = VersionNode(
                id=version_id,
                project_id=data.project_id,
                character_id=data.character_id,
                type=data.type,
                version_number=number,
                parent_version_id=parent.id if parent else None,
                root_version_id=root_id,
                branch_name=data.branch_name or default_branch_name(data.type, number, parent),
                status=data.status,
                linked_generation_id=data.linked_generation_id,
                prompt=data.prompt,
                metadata=metadata,
            )

            row = VersionNodeModel.from_node(node)
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    "version_number_conflict",
                    root_version_id=root_id,
                    version_number=str(number),
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                continue

            self.db.refresh(row)
            self.audit.log_create(
                entity_kind=VERSION_KIND,
                entity_id=row.id,
                after=row.to_dict(),
                actor_kind=actor_kind,
                actor_id=actor_id,
            )
            logger.info(
                "version_created",
                version_id=row.id,
                root_version_id=root_id,
                project_id=row.project_id,
                version_type=row.version_type,
                version_number=str(number),
            )
            return row.to_node()

        raise VersionNumberConflict(root_id, number, attempts=max_attempts)

    def duplicate_version(
        self,
        version_id: str,
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        """Copy a version as a new branch beside it.

        The copy hangs off the source's parent, or off the source itself when
        the source is a lineage root. Prompt, tags and generation parameters
        are kept. The title gets a copy suffix and the usage counters restart
        at zero. The generation link is not copied.
        """
        source = self.get(version_id)
        meta = source.metadata
        metadata = meta.model_copy(
            update={
                "title": f"{meta.title} (copy)" if meta.title else f"Copy of {source.label}",
                "description": "\n\n".join(
                    part
                    for part in (meta.description, f"Duplicated from {source.label}")
                    if part
                ),
                "view_count": 0,
                "like_count": 0,
                "export_count": 0,
            }
        )
        copy = self.create_version(
            VersionCreate(
                project_id=source.project_id,
                character_id=source.character_id,
                type=VersionType.BRANCH,
                parent_version_id=source.parent_version_id or source.id,
                prompt=source.prompt,
                metadata=metadata,
            ),
            actor_kind=actor_kind,
            actor_id=actor_id,
        )
        logger.info("version_duplicated", version_id=copy.id, source_version_id=source.id)
        return copy

    def _check_new_node(self, node: VersionNode) -> None:
        """Reject a new node whose parent, number or root breaks the lineage."""
        if node.parent_version_id is None:
            if node.root_version_id != node.id:
                raise InvalidParent(
                    None, f"a lineage root must be its own root, not {node.root_version_id}"
                )
            return

        parent_row = self.db.get(VersionNodeModel, node.parent_version_id)
        if parent_row is None:
            raise InvalidParent(node.parent_version_id, "does not exist")
        if parent_row.project_id != node.project_id:
            raise InvalidParent(
                node.parent_version_id, f"belongs to project {parent_row.project_id}"
            )
        parent = parent_row.to_node()
        if parent.version_number >= node.version_number:
            raise InvalidParent(
                parent.id,
                f"has version number {parent.version_number}, "
                f"not below {node.version_number}",
            )
        root = self.index(node.project_id).resolve_root(parent)
        if root.id != node.root_version_id:
            raise InvalidParent(
                parent.id, f"lineage root is {root.id}, not {node.root_version_id}"
            )

    def persist_version_node(self, node: VersionNode) -> VersionNode:
        """Store ``node``.

        A new node must fit its lineage. A stored node keeps its identity:
        only status, branch name, link, prompt and metadata are overwritten.
        """
        existing = self.db.get(VersionNodeModel, node.id)
        if existing is None:
            self._check_new_node(node)
            with lineage_lock(node.root_version_id):
                row = VersionNodeModel.from_node(node)
                self.db.add(row)
                self._commit_persisted(node)
            self.audit.log_create(VERSION_KIND, row.id, row.to_dict())
            return row.to_node()

        stored = existing.to_node()
        changed = [
            name
            for name in IDENTITY_FIELDS
            if getattr(stored, name) != getattr(node, name)
        ]
        if changed:
            raise IdentityChanged(node.id, changed)

        before = existing.to_dict()
        row = self.db.merge(VersionNodeModel.from_node(node))
        self._commit_persisted(node)
        self.audit.log_update(VERSION_KIND, row.id, before, row.to_dict())
        return row.to_node()

    def _commit_persisted(self, node: VersionNode) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise VersionNumberConflict(node.root_version_id, node.version_number)

    # ------------------------------------------------------------------
    # Mutations of status and metadata
    # ------------------------------------------------------------------

    def retag_status(
        self,
        version_id: str,
        status: VersionStatus,
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        """Set a node's status. Other nodes are not touched."""
        row = self._get_model(version_id)
        old_status = row.status
        row.status = status.value
        row.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(row)

        self.audit.log_status_change(
            entity_kind=VERSION_KIND,
            entity_id=version_id,
            old_status=old_status,
            new_status=row.status,
            actor_kind=actor_kind,
            actor_id=actor_id,
        )
        return row.to_node()

    def _update(
        self,
        row: VersionNodeModel,
        before: dict,
        actor_kind: str,
        actor_id: str,
        note: Optional[str] = None,
    ) -> VersionNode:
        row.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(row)
        self.audit.log_update(
            entity_kind=VERSION_KIND,
            entity_id=row.id,
            before=before,
            after=row.to_dict(),
            actor_kind=actor_kind,
            actor_id=actor_id,
            note=note,
        )
        return row.to_node()

    def add_tags(
        self,
        version_id: str,
        tags: List[VersionTag],
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        """Add tags to a node. Tags already present by name are kept as they are."""
        row = self._get_model(version_id)
        before = row.to_dict()
        existing = row.to_node().metadata.tags
        row.tags = [tag.model_dump() for tag in merge_tags(existing, tags)]
        return self._update(row, before, actor_kind, actor_id, note="tags added")

    def set_branch_name(
        self,
        version_id: str,
        branch_name: str,
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        row = self._get_model(version_id)
        before = row.to_dict()
        row.branch_name = branch_name
        return self._update(row, before, actor_kind, actor_id, note="branch renamed")

    def update_metadata(
        self,
        version_id: str,
        update: VersionMetadataUpdate,
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        """Apply the fields set on ``update``; unset fields are left alone.

        ``title`` and ``description`` may be cleared with ``None``; counters
        given as ``None`` are ignored.
        """
        row = self._get_model(version_id)
        before = row.to_dict()
        for name, value in update.model_dump(exclude_unset=True).items():
            if value is None and name.endswith("_count"):
                continue
            setattr(row, name, value)
        return self._update(row, before, actor_kind, actor_id, note="metadata updated")

    def link_generation(
        self,
        version_id: str,
        generation_id: str,
        actor_kind: str = "system",
        actor_id: str = "version-service",
    ) -> VersionNode:
        """Point a node at the generation record it represents."""
        row = self._get_model(version_id)
        row.linked_generation_id = generation_id
        row.updated_at = utc_now()
        self.db.commit()
        self.db.refresh(row)

        self.audit.log_link(
            entity_kind=VERSION_KIND,
            entity_id=version_id,
            linked_kind=GENERATION_KIND,
            linked_id=generation_id,
            actor_kind=actor_kind,
            actor_id=actor_id,
        )
        return row.to_node()


