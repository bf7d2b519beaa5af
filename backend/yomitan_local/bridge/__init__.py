"""
Bridge between the ASGI server's request/response types and the
Fetch API shaped types the router expects.
"""
from yomitan_local.bridge.fetch import FetchHeaders, FetchRequest, FetchResponse

__all__ = ["FetchHeaders", "FetchRequest", "FetchResponse"]
