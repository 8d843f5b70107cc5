"""
Gallery Refresh Coordinator.

Fetches a project's generation history and version graph concurrently and
joins them into enriched view records. Only the most recent request may
publish a result: a refresh that is superseded or cancelled while its fetches
are in flight returns ``None``.

Failures degrade instead of failing the whole refresh:
- version graph unavailable: records are returned unenriched with ``version_error``
- generation history unavailable: no records, with ``generation_error``
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Set

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from .enriched import EnrichedViewRecord
from .enrichment import enrich
from .generation import GenerationRecord
from .primitives import utc_now
from .query import GalleryQuery, apply_query
from .services import GenerationRecordService, VersionGraphService
from .version import VersionNode

logger = structlog.get_logger()


class GenerationSource(Protocol):
    async def fetch_generation_history(
        self,
        project_id: str,
        character_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[GenerationRecord]: ...


class VersionSource(Protocol):
    async def load_version_graph(self, project_id: str) -> List[VersionNode]: ...


class RefreshResult(BaseModel):
    """Outcome of one completed refresh."""

    model_config = ConfigDict(extra="forbid")

    project_id: str
    records: List[EnrichedViewRecord] = Field(default_factory=list)
    generation_error: Optional[str] = None
    version_error: Optional[str] = None
    refreshed_at: datetime = Field(default_factory=utc_now)

    @property
    def degraded(self) -> bool:
        return self.generation_error is not None or self.version_error is not None

    def view(self, query: GalleryQuery) -> List[EnrichedViewRecord]:
        """The records as the gallery shows them under ``query``."""
        return apply_query(self.records, query)


class DatabaseGenerationSource:
    """Generation history read through ``GenerationRecordService`` off the event loop."""

    def __init__(
        self, session_factory: Callable[[], Session], settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    def _fetch(self, project_id, character_id, limit, offset) -> List[GenerationRecord]:
        with self.session_factory() as db:
            service = GenerationRecordService(db, settings=self.settings)
            return service.fetch_generation_history(
                project_id, character_id=character_id, limit=limit, offset=offset
            )

    async def fetch_generation_history(
        self,
        project_id: str,
        character_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[GenerationRecord]:
        return await asyncio.to_thread(self._fetch, project_id, character_id, limit, offset)


class DatabaseVersionSource:
    """Version graph read through ``VersionGraphService`` off the event loop."""

    def __init__(
        self, session_factory: Callable[[], Session], settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    def _load(self, project_id: str) -> List[VersionNode]:
        with self.session_factory() as db:
            return VersionGraphService(db, settings=self.settings).load_version_graph(project_id)

    async def load_version_graph(self, project_id: str) -> List[VersionNode]:
        return await asyncio.to_thread(self._load, project_id)


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


class GalleryRefresher:
    """Coordinates gallery refreshes for one consumer."""

    def __init__(self, generation_source: GenerationSource, version_source: VersionSource):
        self.generation_source = generation_source
        self.version_source = version_source
        self._token = 0
        self._in_flight: Set[asyncio.Future] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def cancel(self) -> None:
        """Cancel in-flight fetches. Their refresh returns ``None``."""
        self._token += 1
        for task in list(self._in_flight):
            task.cancel()
        self._in_flight.clear()

    async def refresh(
        self,
        project_id: str,
        character_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Optional[RefreshResult]:
        """Fetch, join and return the project's records.

        Starting a refresh cancels the previous one.
        """
        self.cancel()
        token = self._token
        log = logger.bind(project_id=project_id, refresh_token=token)

        generations = asyncio.ensure_future(
            self.generation_source.fetch_generation_history(
                project_id, character_id=character_id, limit=limit, offset=offset
            )
        )
        versions = asyncio.ensure_future(self.version_source.load_version_graph(project_id))
        tasks = {generations, versions}
        self._in_flight |= tasks

        try:
            generation_result, version_result = await asyncio.gather(
                generations, versions, return_exceptions=True
            )
        finally:
            self._in_flight -= tasks

        if token != self._token:
            log.info("stale_refresh_discarded")
            return None

        if isinstance(generation_result, BaseException):
            log.warning("refresh_degraded", source="generations", error=_describe(generation_result))
            return RefreshResult(
                project_id=project_id, generation_error=_describe(generation_result)
            )

        if isinstance(version_result, BaseException):
            log.warning("refresh_degraded", source="versions", error=_describe(version_result))
            return RefreshResult(
                project_id=project_id,
                records=[EnrichedViewRecord.from_generation(r) for r in generation_result],
                version_error=_describe(version_result),
            )

        records = enrich(generation_result, version_result)
        log.info("refresh_completed", records=len(records), versions=len(version_result))
        return RefreshResult(project_id=project_id, records=records)
