"""
Host Framework Extraction Contract

The caching core never depends on the host application's request, service or
query object model. It reads them through these narrow protocols; any object
exposing the listed members can be passed to the key generator and to the
Query / RemoteCall producers.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RequestLike(Protocol):
    """
    A framework request.

    Key derivation folds in tenant, user and locale (subject to the
    awareness flags) and a digest of method, path, params, query and data.
    """

    tenant: str | None
    user: str | None
    locale: str | None
    method: str
    path: str
    params: Mapping[str, Any]
    query: Any
    data: Any


@runtime_checkable
class QueryLike(Protocol):
    """A structured data query."""

    def is_read_only(self) -> bool:
        """True for queries whose results may be cached (e.g. SELECT)."""
        ...

    def to_canonical(self) -> Any:
        """A JSON-compatible structure that identifies the query."""
        ...


@runtime_checkable
class RemoteService(Protocol):
    """A remote service a RemoteCall producer sends requests to."""

    name: str

    async def send(self, request: RequestLike) -> Any:
        """Send the request and return the decoded response."""
        ...
