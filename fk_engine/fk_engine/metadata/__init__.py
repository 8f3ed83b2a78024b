"""Schema metadata sources."""

from fk_engine.metadata.provider import MetadataProvider
from fk_engine.metadata.sqlite import SQLiteMetadataProvider, get_sqlite_engine
from fk_engine.metadata.static import StaticMetadataProvider, load_snapshot

__all__ = [
    "MetadataProvider",
    "SQLiteMetadataProvider",
    "StaticMetadataProvider",
    "get_sqlite_engine",
    "load_snapshot",
]
