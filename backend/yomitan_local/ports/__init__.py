"""
Ports - interface definitions for the platform bindings.

Follows hexagonal architecture pattern (ports & adapters).
Ports mirror the edge platform's binding shapes, adapters provide the
local implementations. The router contract lives in ports.router.
"""
from yomitan_local.ports.blob import BlobBinding, BlobObject, MediaBlob, PutAck
from yomitan_local.ports.execution import ExecutionContext
from yomitan_local.ports.relational import PreparedStatement, QueryResult, RelationalBinding

__all__ = [
    "BlobBinding",
    "BlobObject",
    "MediaBlob",
    "PutAck",
    "ExecutionContext",
    "PreparedStatement",
    "QueryResult",
    "RelationalBinding",
]
