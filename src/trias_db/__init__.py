"""trias_db — SQL persistence layer for assessments.

ORM models, async engine factory, a flush-only repository, and
``SqlSynchronizer``, the database-backed remote store consumed by the
assessment engine.
"""

from trias_db.engine import create_tables, get_engine, get_session_factory
from trias_db.repository import AssessmentRepository
from trias_db.synchronizer import SqlSynchronizer

__all__ = [
    "AssessmentRepository",
    "SqlSynchronizer",
    "create_tables",
    "get_engine",
    "get_session_factory",
]
