"""Core protocols at the library's seams."""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from warehouse_client.types.rpc import RpcRequest
    from warehouse_client.types.values import Schema


@runtime_checkable
class Transport(Protocol):
    """Executes a described RPC against the warehouse service.

    Implementations own authentication, connection reuse and request-level
    retries. Cancellation arrives as cancellation of the awaiting task.
    """

    async def execute(self, request: "RpcRequest") -> dict[str, object]:
        """Send the request and return the decoded JSON response body.

        Raises `TransportError` carrying the service's code, reason and
        details when the call fails.
        """
        ...


@runtime_checkable
class ValueSaver(Protocol):
    """A row that knows how to produce its own wire representation."""

    def save(self) -> tuple[Mapping[str, object], str | None]:
        """Return (column name -> value, insert id).

        Returning `NO_DEDUPE_ID` as the insert id disables deduplication for
        the row; returning None lets the library generate one.
        """
        ...


@runtime_checkable
class ValueLoader(Protocol):
    """A row target that builds itself from decoded values."""

    @classmethod
    def load(cls, values: Sequence[object], schema: "Schema") -> Self:
        """Build an instance from values in schema order."""
        ...
