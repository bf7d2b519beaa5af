"""
Request/response bridge.

Inbound: Starlette Request -> FetchRequest (method, full URL, header set,
path/query parameters, body).

Outbound: FetchResponse -> Starlette Response. The content type selects
one body strategy:
1. application/json  -> parsed and re-serialized as JSON
2. audio/mpeg and other binary types -> bytes written verbatim
3. anything else -> UTF-8 text

Status and headers are copied as-is; content-length is recomputed for the
rendered body.
"""
import json
from typing import Dict, List, Union

from starlette.datastructures import QueryParams
from starlette.requests import Request
from starlette.responses import Response

from yomitan_local.bridge.fetch import FetchHeaders, FetchRequest, FetchResponse
from yomitan_local.core.errors import BridgeError

BODYLESS_METHODS = {"GET", "HEAD"}
BODYLESS_STATUSES = {204, 304}

BINARY_PREFIXES = ("audio/", "video/", "image/", "font/")
BINARY_TYPES = {
    "application/octet-stream",
    "application/pdf",
    "application/zip",
    "application/gzip",
    "application/wasm",
}


def parse_query(query_params: QueryParams) -> Dict[str, Union[str, List[str]]]:
    """Single values stay strings; repeated names collect into a list."""
    query: Dict[str, Union[str, List[str]]] = {}
    for name, value in query_params.multi_items():
        if name not in query:
            query[name] = value
        elif isinstance(query[name], list):
            query[name].append(value)
        else:
            query[name] = [query[name], value]
    return query


def media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def is_json(content_type: str) -> bool:
    mt = media_type(content_type)
    return mt == "application/json" or mt.endswith("+json")


def is_binary(content_type: str) -> bool:
    mt = media_type(content_type)
    if mt == "image/svg+xml":
        return False
    return mt.startswith(BINARY_PREFIXES) or mt in BINARY_TYPES


class RequestBridge:
    """Converts one exchange in each direction."""

    def __init__(self, catch_all_param: str = "path"):
        """
        Args:
            catch_all_param: Name of the host route's catch-all path parameter,
                which is not exposed to the router
        """
        self.catch_all_param = catch_all_param

    async def to_fetch_request(self, request: Request) -> FetchRequest:
        """
        Build the router-facing request.

        Raises:
            BridgeError: If the inbound request cannot be represented
        """
        try:
            headers = FetchHeaders(
                (name.decode("latin-1"), value.decode("latin-1")) for name, value in request.headers.raw
            )
            params = {k: str(v) for k, v in request.path_params.items() if k != self.catch_all_param}
            body = None
            if request.method.upper() not in BODYLESS_METHODS:
                body = await request.body()

            return FetchRequest(
                method=request.method,
                url=str(request.url),
                headers=headers,
                params=params,
                query=parse_query(request.query_params),
                body=body,
            )
        except Exception as e:
            raise BridgeError(f"Malformed request: {e}") from e

    def render_body(self, response: FetchResponse) -> bytes:
        """Pick the body strategy from the response content type."""
        if response.status in BODYLESS_STATUSES or not response.body:
            return b""

        content_type = response.content_type
        if is_json(content_type):
            try:
                value = json.loads(response.body)
            except ValueError as e:
                raise BridgeError(f"Router returned invalid JSON: {e}") from e
            return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

        if is_binary(content_type):
            return response.body

        return response.body.decode("utf-8", errors="replace").encode("utf-8")

    def to_http_response(self, response: FetchResponse) -> Response:
        """
        Render the router's response for the ASGI server.

        Raises:
            BridgeError: If the body or headers cannot be rendered
        """
        body = self.render_body(response)
        try:
            http_response = Response(content=body, status_code=response.status)
            http_response.raw_headers.extend(
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in response.headers.multi_items()
                if name.lower() != "content-length"
            )
        except (UnicodeEncodeError, ValueError) as e:
            raise BridgeError(f"Router returned an unrenderable response: {e}") from e
        return http_response
