"""
Request and Query Descriptors

Minimal concrete types satisfying the host contract in
``readthrough.core.interfaces.host``. Hosts with their own object model do not
need them; they are used by callers without one and by the test suite.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

READ_ONLY_QUERY_KINDS = frozenset({"SELECT"})


@dataclass
class Request:
    """A remote or framework request."""

    method: str = "GET"
    path: str = "/"
    params: Mapping[str, Any] = field(default_factory=dict)
    query: Any = None
    data: Any = None
    tenant: str | None = None
    user: str | None = None
    locale: str | None = None
    cache_key: str | None = None

    def __post_init__(self):
        self.method = self.method.upper()

    def to_canonical(self) -> dict[str, Any]:
        """Identity of the request, excluding caller identity."""
        return {
            "method": self.method,
            "path": self.path,
            "params": dict(self.params),
            "query": self.query,
            "data": self.data,
        }


@dataclass
class Query:
    """
    A structured data query.

    Usage:
        Query("SELECT", "Books", columns=["ID", "title"], where={"author": "Poe"})
    """

    kind: str
    entity: str
    columns: list[str] = field(default_factory=list)
    where: Mapping[str, Any] = field(default_factory=dict)
    order_by: list[str] = field(default_factory=list)
    limit: int | None = None
    data: Any = None
    cache_key: str | None = None

    def __post_init__(self):
        self.kind = self.kind.upper()

    def is_read_only(self) -> bool:
        return self.kind in READ_ONLY_QUERY_KINDS

    def to_canonical(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "entity": self.entity,
            "columns": list(self.columns),
            "where": dict(self.where),
            "order_by": list(self.order_by),
            "limit": self.limit,
            "data": self.data,
        }
