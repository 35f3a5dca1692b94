"""
Database Package

Provides SQLAlchemy async session management, the schema, and the
FeatureStore built on top of them.
"""

from .session import (
    async_engine,
    AsyncSessionLocal,
    build_engine,
    build_session_factory,
    init_db,
)
from .models import Base, FeatureRow
from .feature_store import FeatureStore

__all__ = [
    "async_engine",
    "AsyncSessionLocal",
    "build_engine",
    "build_session_factory",
    "init_db",
    "Base",
    "FeatureRow",
    "FeatureStore",
]
