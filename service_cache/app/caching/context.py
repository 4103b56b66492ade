"""
Request context and transport adapters for the response cache interceptor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Tuple, runtime_checkable

from starlette.requests import Request


class TransportKind(str, Enum):
    """Transport styles a handler can be invoked through."""

    HTTP = "http"
    WEBSOCKET = "ws"
    RPC = "rpc"


@runtime_checkable
class HttpAdapter(Protocol):
    """Capability implemented only by request/response style transports."""

    def get_request_method(self, request: Any) -> str:
        ...

    def get_request_url(self, request: Any) -> str:
        ...


class StarletteHttpAdapter:
    """HttpAdapter for Starlette/FastAPI requests."""

    def get_request_method(self, request: Request) -> str:
        return request.method

    def get_request_url(self, request: Request) -> str:
        """Path plus query string, as the client sent it."""
        query = request.url.query
        if query:
            return f"{request.url.path}?{query}"
        return request.url.path


class HttpArgumentsHost:
    """HTTP view over an execution context."""

    def __init__(self, context: "ExecutionContext"):
        self._context = context

    def get_request(self) -> Any:
        return self._context.get_arg_by_index(0)


@dataclass(frozen=True)
class ExecutionContext:
    """Per-invocation handle on the handler being called and its arguments."""

    handler: Callable[..., Any]
    args: Tuple[Any, ...] = field(default_factory=tuple)
    transport: TransportKind = TransportKind.HTTP

    @classmethod
    def for_http(cls, handler: Callable[..., Any], request: Any) -> "ExecutionContext":
        return cls(handler=handler, args=(request,), transport=TransportKind.HTTP)

    def get_handler(self) -> Callable[..., Any]:
        return self.handler

    def get_args(self) -> Tuple[Any, ...]:
        return self.args

    def get_arg_by_index(self, index: int) -> Optional[Any]:
        if 0 <= index < len(self.args):
            return self.args[index]
        return None

    def get_type(self) -> TransportKind:
        return self.transport

    def switch_to_http(self) -> HttpArgumentsHost:
        return HttpArgumentsHost(self)
