"""
Router contract.

The audio lookup router is supplied from outside this package. It is
called once per request with the bridged request, the environment and an
execution context, and returns a FetchResponse.
"""
import importlib
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from yomitan_local.bridge.fetch import FetchRequest, FetchResponse
from yomitan_local.core.errors import ConfigurationError
from yomitan_local.ports.blob import BlobBinding
from yomitan_local.ports.execution import ExecutionContext
from yomitan_local.ports.relational import RelationalBinding


@dataclass(frozen=True)
class Env:
    """Bindings and flags the router reads. Built once at startup."""

    yomitan_audio_d1_db: RelationalBinding
    yomitan_audio_r2_bucket: BlobBinding
    authentication_enabled: bool = False
    aws_polly_enabled: bool = False
    api_keys: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""


@runtime_checkable
class Router(Protocol):
    async def fetch(self, request: FetchRequest, env: Env, ctx: ExecutionContext) -> FetchResponse: ...


class CallableRouter:
    """Adapts a bare async handler function to the Router protocol."""

    def __init__(self, handler: Callable[[FetchRequest, Env, ExecutionContext], Awaitable[FetchResponse]]):
        self.handler = handler

    async def fetch(self, request: FetchRequest, env: Env, ctx: ExecutionContext) -> FetchResponse:
        return await self.handler(request, env, ctx)


def as_router(target: Any) -> Router:
    """Return target as a Router, wrapping plain async callables."""
    if isinstance(target, Router) and inspect.iscoroutinefunction(getattr(target, "fetch", None)):
        return target
    if inspect.iscoroutinefunction(target):
        return CallableRouter(target)
    raise ConfigurationError(
        f"{target!r} is not a router",
        remediation="The router must have an async fetch(request, env, ctx) method or be an async function.",
    )


def load_router(import_string: str) -> Router:
    """
    Import a router from "package.module:attribute".

    Raises:
        ConfigurationError: If the string is malformed or the import fails
    """
    module_name, sep, attr = (import_string or "").partition(":")
    if not module_name or not sep or not attr:
        raise ConfigurationError(
            f"Invalid router import string {import_string!r}",
            remediation='Set ROUTER to "package.module:attribute".',
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(
            f"Could not import router module {module_name!r}: {e}",
            remediation="Check ROUTER and that the router package is installed.",
        ) from e

    target = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise ConfigurationError(
                f"Module {module_name!r} has no attribute {attr!r}",
                remediation="Check ROUTER.",
            ) from e

    return as_router(target)
