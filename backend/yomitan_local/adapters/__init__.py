"""
Adapters - concrete implementations of ports.

Follows hexagonal architecture pattern (ports & adapters).
Current implementations run locally: SQLite for the database binding, the
filesystem for the object store binding, asyncio tasks for deferred work.
"""
from yomitan_local.adapters.blob_filesystem import FilesystemBlobBinding, LocalAudioStorage
from yomitan_local.adapters.execution_inline import BackgroundTaskRunner, InlineExecutionContext
from yomitan_local.adapters.relational_sqlite import SQLiteRelationalAdapter, SQLiteRelationalBinding

__all__ = [
    "FilesystemBlobBinding",
    "LocalAudioStorage",
    "BackgroundTaskRunner",
    "InlineExecutionContext",
    "SQLiteRelationalAdapter",
    "SQLiteRelationalBinding",
]
