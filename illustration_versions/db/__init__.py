"""
Database package for the illustration version graph.
"""

from .audit_models import AuditLogModel
from .audit_service import AuditService
from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import GenerationRecordModel, VersionNodeModel

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "AuditLogModel",
    "AuditService",
    "GenerationRecordModel",
    "VersionNodeModel",
]
