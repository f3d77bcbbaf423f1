from fixture_sync.db.base import Base
from fixture_sync.db.engine import (
    DatabaseConfig,
    create_db_engine,
    create_session_factory,
    session_scope,
)

__all__ = [
    "Base",
    "DatabaseConfig",
    "create_db_engine",
    "create_session_factory",
    "session_scope",
]
