"""
Illustration Version Graph API Routes.

REST endpoints for generation records, version nodes, lineages and the
gallery view. All endpoints are prefixed with /illustrations.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.audit_service import AuditService
from ..db.base import get_db
from .comparison import compare_versions
from .enrichment import enrich
from .enums import LineageFilter, SortKey, StatusFilter
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
from .generation import GenerationRecordCreate, GenerationStatusUpdate
from .query import ALL_PROVIDERS, GalleryQuery, VersionFilter, apply_query, filter_versions
from .services import VERSION_KIND, GenerationRecordService, VersionGraphService
from .statistics import compute_statistics
from .version import (
    BranchNameUpdate,
    GenerationLink,
    VersionCreate,
    VersionMetadataUpdate,
    VersionStatusUpdate,
    VersionTagsAdd,
)

router = APIRouter(prefix="/illustrations", tags=["Illustrations"])

HTTP_STATUS_BY_ERROR = {
    NotFound: 404,
    InvalidParent: 400,
    InvalidStatusTransition: 409,
    AlreadyExists: 409,
    VersionNumberConflict: 409,
    IdentityChanged: 409,
    CyclicLineageDetected: 500,
}


def to_http_exception(exc: VersionGraphError) -> HTTPException:
    """Map a domain error to an HTTP error carrying ``exc.to_dict()``."""
    status_code = 500
    for error_type, code in HTTP_STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=exc.to_dict())


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json")


# =============================================================================
# Generation Record Endpoints
# =============================================================================


@router.post("/generations", status_code=201)
async def create_generation(
    generation: GenerationRecordCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Record a generation attempt."""
    try:
        record = GenerationRecordService(db).create(generation)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "generation": _dump(record)}


@router.get("/generations/{generation_id}")
async def get_generation(
    generation_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        return _dump(GenerationRecordService(db).get(generation_id))
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc


@router.get("/generations")
async def list_generations(
    project_id: str,
    character_id: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Generation history of a project, newest first."""
    records = GenerationRecordService(db).fetch_generation_history(
        project_id, character_id=character_id, limit=limit, offset=offset
    )
    return [_dump(record) for record in records]


@router.patch("/generations/{generation_id}/status")
async def update_generation_status(
    generation_id: str,
    update: GenerationStatusUpdate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Advance a generation's status. Backward moves are rejected with 409."""
    try:
        record = GenerationRecordService(db).update_status(generation_id, update)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "generation": _dump(record)}


# =============================================================================
# Version Node Endpoints
# =============================================================================


@router.post("/versions", status_code=201)
async def create_version(
    version: VersionCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create a version; its number is assigned by the service."""
    try:
        node = VersionGraphService(db).create_version(version)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.get("/versions/{version_id}")
async def get_version(
    version_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        return _dump(VersionGraphService(db).get(version_id))
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc


@router.get("/versions")
async def list_versions(
    project_id: str,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Every version of a project."""
    return [_dump(node) for node in VersionGraphService(db).load_version_graph(project_id)]


@router.patch("/versions/{version_id}/status")
async def retag_version_status(
    version_id: str,
    update: VersionStatusUpdate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        node = VersionGraphService(db).retag_status(version_id, update.status)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.post("/versions/{version_id}/tags")
async def add_version_tags(
    version_id: str,
    body: VersionTagsAdd,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        node = VersionGraphService(db).add_tags(version_id, body.tags)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.patch("/versions/{version_id}/branch")
async def rename_version_branch(
    version_id: str,
    body: BranchNameUpdate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        node = VersionGraphService(db).set_branch_name(version_id, body.branch_name)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.patch("/versions/{version_id}/metadata")
async def update_version_metadata(
    version_id: str,
    update: VersionMetadataUpdate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        node = VersionGraphService(db).update_metadata(version_id, update)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.post("/versions/{version_id}/link")
async def link_version_generation(
    version_id: str,
    body: GenerationLink,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        node = VersionGraphService(db).link_generation(version_id, body.generation_id)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.post("/versions/{version_id}/duplicate", status_code=201)
async def duplicate_version(
    version_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Copy a version as a new branch beside it."""
    try:
        node = VersionGraphService(db).duplicate_version(version_id)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return {"status": "success", "version": _dump(node)}


@router.get("/versions/{version_id}/history")
async def get_version_history(
    version_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Audit trail of a version, newest first."""
    try:
        VersionGraphService(db).get(version_id)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    entries = AuditService(db).query_by_entity(VERSION_KIND, version_id, limit, offset)
    return [entry.to_dict() for entry in entries]


# =============================================================================
# Lineage Endpoints
# =============================================================================


@router.get("/lineages/{root_version_id}")
async def list_lineage(
    root_version_id: str,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """All versions whose resolved root is ``root_version_id``."""
    try:
        nodes = VersionGraphService(db).list_by_root(root_version_id)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return [_dump(node) for node in nodes]


@router.get("/lineages/{root_version_id}/tree")
async def get_lineage_tree(
    root_version_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        tree = VersionGraphService(db).index_for_root(root_version_id).build_tree(
            root_version_id
        )
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return _dump(tree)


@router.get("/lineages/{root_version_id}/branches")
async def list_lineage_branches(
    root_version_id: str,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    try:
        branches = VersionGraphService(db).index_for_root(root_version_id).branches(
            root_version_id
        )
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return [_dump(branch) for branch in branches]


@router.get("/lineages/{root_version_id}/stats")
async def get_lineage_statistics(
    root_version_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        nodes = VersionGraphService(db).list_by_root(root_version_id)
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return _dump(compute_statistics(nodes))


# =============================================================================
# Project Endpoints
# =============================================================================


@router.get("/projects/{project_id}/stats")
async def get_project_statistics(
    project_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return _dump(compute_statistics(VersionGraphService(db).load_version_graph(project_id)))


@router.post("/projects/{project_id}/versions/search")
async def search_project_versions(
    project_id: str,
    version_filter: VersionFilter,
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Versions of a project matching every given filter."""
    nodes = VersionGraphService(db).load_version_graph(project_id)
    return [_dump(node) for node in filter_versions(nodes, version_filter)]


@router.get("/projects/{project_id}/validate")
async def validate_project_graph(
    project_id: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Structural problems of a project's version graph."""
    issues = VersionGraphService(db).index(project_id).validate()
    return {
        "project_id": project_id,
        "valid": not issues,
        "issues": [_dump(issue) for issue in issues],
    }


# =============================================================================
# Comparison and Gallery Endpoints
# =============================================================================


@router.get("/compare")
async def compare(
    version1: str,
    version2: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Differences and similarity between two versions."""
    service = VersionGraphService(db)
    try:
        comparison = compare_versions(service.get(version1), service.get(version2))
    except VersionGraphError as exc:
        raise to_http_exception(exc) from exc
    return _dump(comparison)


@router.get("/gallery")
async def gallery(
    project_id: str,
    character_id: Optional[str] = None,
    provider: str = Query(ALL_PROVIDERS, min_length=1, max_length=64),
    status: StatusFilter = StatusFilter.ALL,
    lineage: LineageFilter = LineageFilter.ALL,
    search: str = Query("", max_length=512),
    sort_by: SortKey = SortKey.DATE,
    custom_order: Optional[List[str]] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Enriched generation records, filtered and sorted as the gallery shows them."""
    generations = GenerationRecordService(db).fetch_generation_history(
        project_id, character_id=character_id, limit=limit, offset=offset
    )
    records = enrich(generations, VersionGraphService(db).load_version_graph(project_id))
    query = GalleryQuery(
        project_id=project_id,
        provider=provider,
        status=status,
        lineage=lineage,
        search=search,
        sort_by=sort_by,
        custom_order=custom_order or [],
    )
    view = apply_query(records, query)
    return {
        "project_id": project_id,
        "total": len(records),
        "count": len(view),
        "records": [record.to_dict() for record in view],
    }
