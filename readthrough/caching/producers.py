"""
Producers

The operations the read-through orchestrator puts a cache in front of, as a
closed set of variants sharing one ``invoke(args)`` capability:

- FunctionProducer:   a plain or async callable
- QueryProducer:      a structured query plus the executor that runs it
- RemoteCallProducer: a request plus the remote service it is sent to

The orchestrator never branches on the variant; it asks the producer for its
key input, whether it may be cached, and its kind for key metrics.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from readthrough.core.config.constants import NON_CACHEABLE_METHODS, ProducerKind
from readthrough.core.interfaces.host import QueryLike, RemoteService, RequestLike
from readthrough.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Producer(ABC):
    """Base class of the producer variants."""

    kind: ProducerKind
    # Read-through entry point name recorded in key metrics
    operation: str

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the originating construct, recorded in key metrics."""

    @abstractmethod
    async def invoke(self, args: Sequence[Any] = ()) -> Any:
        """Run the underlying operation."""

    @abstractmethod
    def key_input(self) -> Any:
        """Input handed to the key generator when the caller gives no key."""

    def is_cacheable(self) -> bool:
        return True

    @property
    def data_type(self) -> str:
        return self.kind.value


class FunctionProducer(Producer):
    """A sync or async callable; its positional arguments become ``{args[n]}``."""

    kind = ProducerKind.FUNCTION
    operation = "exec"

    def __init__(self, fn: Callable[..., Any], name: str | None = None):
        self._fn = fn
        self._name = name or getattr(fn, "__qualname__", None) or type(fn).__name__

    @property
    def name(self) -> str:
        return self._name

    async def invoke(self, args: Sequence[Any] = ()) -> Any:
        return await _resolve(self._fn(*args))

    def key_input(self) -> Any:
        # Function keys come from the base key and the arguments
        return None


class QueryProducer(Producer):
    """A query executed by a host-supplied executor."""

    kind = ProducerKind.QUERY
    operation = "run"

    def __init__(self, query: QueryLike, executor: Callable[[QueryLike], Awaitable[Any] | Any]):
        self._query = query
        self._executor = executor

    @property
    def query(self) -> QueryLike:
        return self._query

    @property
    def name(self) -> str:
        return str(getattr(self._query, "entity", None) or type(self._query).__name__)

    async def invoke(self, args: Sequence[Any] = ()) -> Any:
        return await _resolve(self._executor(self._query))

    def key_input(self) -> Any:
        return self._query

    def is_cacheable(self) -> bool:
        try:
            return bool(self._query.is_read_only())
        except Exception as e:
            log_stage(logger, "KEY", "Query read-only check failed", level="debug", source=self.name, error=str(e))
            return False


class RemoteCallProducer(Producer):
    """
    A request sent to a remote service.

    Mutating methods (POST, PUT, DELETE, PATCH) still execute but are never
    cached.
    """

    kind = ProducerKind.REMOTE_CALL
    operation = "send"

    def __init__(self, request: RequestLike, service: RemoteService):
        self._request = request
        self._service = service

    @property
    def request(self) -> RequestLike:
        return self._request

    @property
    def name(self) -> str:
        return f"{getattr(self._service, 'name', type(self._service).__name__)}:{self._request.path}"

    async def invoke(self, args: Sequence[Any] = ()) -> Any:
        return await self._service.send(self._request)

    def key_input(self) -> Any:
        return self._request

    def is_cacheable(self) -> bool:
        return str(self._request.method).upper() not in NON_CACHEABLE_METHODS


def as_producer(target: Producer | Callable[..., Any], name: str | None = None) -> Producer:
    """Wrap a plain callable as a FunctionProducer; producers pass through."""
    if isinstance(target, Producer):
        return target
    if callable(target):
        return FunctionProducer(target, name=name)
    raise TypeError(f"Cannot produce values from {type(target).__name__}")
