"""
Relational binding interface.

Mirrors the edge platform's prepared-statement database binding so a
router can run against either the hosted binding or a local adapter.

Two failure conventions coexist, as on the edge platform:
- all() / run() never raise for query failures; they return a QueryResult
  with success=False and the error message.
- first() / batch() raise QueryError.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

Row = Dict[str, Any]


@dataclass(frozen=True)
class QueryResult:
    """Result envelope returned by the binding instead of raising."""

    success: bool
    results: List[Row] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        envelope = {"success": self.success, "results": self.results, "meta": self.meta}
        if self.error is not None:
            envelope["error"] = self.error
        return envelope


class PreparedStatement(ABC):
    """A query text plus its positional parameters."""

    query: str
    params: Sequence[Any]

    @abstractmethod
    def bind(self, *params: Any) -> "PreparedStatement":
        """
        Bind positional parameters.

        Args:
            *params: Values for the query's positional placeholders, in order

        Returns:
            A new statement; this one is left unchanged
        """
        pass

    @abstractmethod
    async def all(self) -> QueryResult:
        """Run the statement and return every row in an envelope."""
        pass

    @abstractmethod
    async def first(self, column: Optional[str] = None) -> Any:
        """
        Run the statement and return the first row.

        Args:
            column: Optional column name; when given, only that value is returned

        Returns:
            Row mapping, column value, or None when there are no rows

        Raises:
            QueryError: If the query fails or the column does not exist
        """
        pass

    @abstractmethod
    async def run(self) -> QueryResult:
        """Run a statement for its side effects; meta carries change counts."""
        pass


class RelationalBinding(ABC):
    """Database binding handed to the router."""

    @abstractmethod
    def prepare(self, query: str) -> PreparedStatement:
        """Create a statement for the query text. No validation is done."""
        pass

    @abstractmethod
    async def batch(self, statements: Sequence[PreparedStatement]) -> List[QueryResult]:
        """
        Run statements in order inside one transaction.

        Raises:
            QueryError: If any statement fails; nothing is committed
        """
        pass

    @abstractmethod
    async def exec(self, query: str) -> QueryResult:
        """Run one or more raw statements without parameters."""
        pass
