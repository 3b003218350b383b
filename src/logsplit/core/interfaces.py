from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from logsplit.core.models import AccumulatedResponse, LogicalRequest, PartialResponse, TimeRange


# ---------------------------------------------------------------------------
# IShardDiscovery
# ---------------------------------------------------------------------------

@runtime_checkable
class IShardDiscovery(Protocol):
    """
    Abstract source of shard ids for a query window.

    Domain expectations:
    - It returns the shard ids the store knows for the window and selector.
    - It raises ShardDiscoveryError when sharding is unsupported; any
      failure is treated as "query unsharded", never as fatal.
    """

    async def discover_shard_ids(
        self,
        *,
        selector: str | None,
        time_range: TimeRange,
    ) -> list[int]:
        """
        Return the shard ids for (selector, time_range).

        Implementations:
        - Loki label-values endpoint (`LokiClient`)
        - Static list for testing
        """
        ...


# ---------------------------------------------------------------------------
# IQueryDispatcher
# ---------------------------------------------------------------------------

@runtime_checkable
class IQueryDispatcher(Protocol):
    """
    Abstract executor of one sub-request.

    Domain expectations:
    - `dispatch` returns an async iterator of PartialResponse events.
    - Query errors are reported inside PartialResponse.errors; raising from
      the iterator is reserved for transport failures.
    - Closing the iterator (`aclose`) releases the in-flight call.
    """

    def dispatch(self, request: LogicalRequest) -> AsyncIterator[PartialResponse]:
        ...


# ---------------------------------------------------------------------------
# IResponseMerger
# ---------------------------------------------------------------------------

class IResponseMerger(Protocol):
    """Pure function folding one partial response into the accumulated one."""

    def __call__(
        self,
        accumulated: AccumulatedResponse,
        partial: PartialResponse,
    ) -> AccumulatedResponse:
        ...
