from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

from logsplit.core.config import ShardingConfig
from logsplit.core.interfaces import IQueryDispatcher, IResponseMerger, IShardDiscovery
from logsplit.core.logql import add_sharding_placeholder, interpolate_sharding_selector, service_selector
from logsplit.core.merge import combine_responses
from logsplit.core.models import AccumulatedResponse, LogicalRequest, PartialResponse, QueryError, Target
from logsplit.core.planner import ShardGroup, ShardPlan, plan_shard_groups
from logsplit.core.retry import RetryState, has_max_series_error
from logsplit.core.targets import adjust_targets

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EXHAUSTED: Any = object()


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class ShardSplitStats:
    """
    Counters for one sharded query.

    - how many sub-requests were dispatched (retries included)
    - how many cycles completed cleanly or were given up on
    - whether the query ran unsharded
    """

    dispatched: int = 0
    completed: int = 0
    abandoned: int = 0
    retries: int = 0
    fallback: bool = False


# ---------------------------------------------------------------------------
# Stream helpers
# ---------------------------------------------------------------------------


async def _anext(stream: AsyncIterator[T]) -> T:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def _aclose(stream: AsyncIterator[Any]) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


async def _dispatch_stream(
    dispatcher: IQueryDispatcher,
    request: LogicalRequest,
) -> AsyncIterator[PartialResponse]:
    """Open the dispatch lazily so a failing `dispatch` call is a stream error."""
    stream = dispatcher.dispatch(request)
    try:
        async for partial in stream:
            yield partial
    finally:
        await _aclose(stream)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class ShardSplitQuery:
    """
    One logical query split into sequential per-shard-group sub-requests.

    The operation runs as an explicit loop over cycles:

    1) Discover shard ids once and plan the groups (or fall back to a single
       unsharded request when discovery fails or finds nothing).
    2) For each cycle, apply the remaining line budgets, dispatch the
       sub-request and stage every partial response it streams.
    3) On an error partial or a raised exception, retry the cycle in place
       (bounded by RetryState) or give up on it and keep its data.
    4) Commit the staged partials, emit the accumulated response and move to
       the next group; the final emission is marked "done".

    Emissions happen once per committed cycle, not per partial: a cycle
    with several targets shows nothing until all of them answered, and an
    attempt that is retried emits nothing.

    Cycles never overlap. All state (accumulated response, retries, plan)
    belongs to this instance; create one per logical query.

    `cancel()` stops the operation from any task: no new cycle starts, the
    in-flight discovery or dispatch is cancelled and the stream ends without
    another emission.
    """

    def __init__(
        self,
        request: LogicalRequest,
        *,
        discovery: IShardDiscovery,
        dispatcher: IQueryDispatcher,
        config: ShardingConfig | None = None,
        merge: IResponseMerger = combine_responses,
    ) -> None:
        self._request = request
        self._discovery = discovery
        self._dispatcher = dispatcher
        self._config = config or ShardingConfig()
        self._merge = merge

        self._response = AccumulatedResponse()
        self._retry = RetryState(
            max_retries=self._config.max_retries,
            max_series_marker=self._config.max_series_marker,
        )
        self._plan: ShardPlan | None = None
        self._stats = ShardSplitStats()
        self._cancelled = False
        self._started = False
        self._inflight: asyncio.Future[Any] | None = None

    # -- public state ------------------------------------------------------

    @property
    def response(self) -> AccumulatedResponse:
        return self._response

    @property
    def plan(self) -> ShardPlan | None:
        return self._plan

    @property
    def retry_state(self) -> RetryState:
        return self._retry

    @property
    def stats(self) -> ShardSplitStats:
        return self._stats

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the operation; safe to call from any task, more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    def __aiter__(self) -> AsyncIterator[AccumulatedResponse]:
        return self.stream()

    async def run(self) -> AccumulatedResponse:
        """Consume the whole stream and return the last accumulated response."""
        async for _ in self.stream():
            pass
        return self._response

    # -- main loop ---------------------------------------------------------

    async def stream(self) -> AsyncIterator[AccumulatedResponse]:
        """Yield the accumulated response after each cycle, then once as done."""
        if self._started:
            raise RuntimeError("ShardSplitQuery can only be streamed once")
        self._started = True

        try:
            targets = self._request.targets
            if targets:
                self._plan = await self._plan_shards(targets)

            cycle = 0
            while targets and not self._cancelled:
                group = self._plan[cycle] if self._plan is not None else None

                adjusted = adjust_targets(targets, self._response)
                if not adjusted:
                    logger.info("Line budgets satisfied, stopping before cycle %d", cycle)
                    break

                advance = await self._run_cycle(cycle, group, adjusted)
                if self._cancelled:
                    break
                if not advance:
                    self._stats.retries += 1
                    await self._backoff(cycle)
                    continue

                yield self._response

                cycle += 1
                if self._plan is None or cycle >= len(self._plan):
                    break

            if self._cancelled:
                self._mark_cancelled()
                return

            self._response = self._response.with_state("done")
            yield self._response

        except asyncio.CancelledError:
            if not self._cancelled:
                self._mark_cancelled()
                raise
            self._mark_cancelled()
        except GeneratorExit:
            # Consumer closed the stream.
            if self._response.state != "done":
                self._cancelled = True
                self._mark_cancelled()
            raise

    # -- planning ----------------------------------------------------------

    async def _plan_shards(self, targets: tuple[Target, ...]) -> ShardPlan | None:
        """Discover shards and plan groups; None means run unsharded."""
        sentinel = self._config.sentinel_shard
        try:
            shard_ids = await self._guarded(
                self._discovery.discover_shard_ids(
                    selector=service_selector(targets[0].expr),
                    time_range=self._request.time_range,
                )
            )
        except Exception as e:
            logger.warning("Shard discovery failed, issuing a regular query: %s", e)
            self._stats.fallback = True
            return None

        shards = [s for s in shard_ids if s != sentinel]
        if not shards:
            logger.warning("Shard splitting not supported. Issuing a regular query.")
            self._stats.fallback = True
            return None

        plan = plan_shard_groups(shards, self._request.time_range, self._config)
        logger.info(
            "Querying %d shards in %d requests: %s",
            len(set(shards)),
            len(plan),
            ", ".join(str(s) for s in sorted(set(shards), reverse=True)),
        )
        return plan

    # -- one cycle ---------------------------------------------------------

    def _build_request(
        self,
        cycle: int,
        group: ShardGroup | None,
        targets: tuple[Target, ...],
    ) -> LogicalRequest:
        request_id = None
        if self._request.request_id:
            suffix = cycle if group is not None else "no-shard"
            request_id = f"{self._request.request_id}_shard_{suffix}"
        return self._request.derive(
            targets=interpolate_sharding_selector(targets, group, self._config.sentinel_shard),
            request_id=request_id,
            shards=group,
        )

    async def _run_cycle(
        self,
        cycle: int,
        group: ShardGroup | None,
        targets: tuple[Target, ...],
    ) -> bool:
        """
        Dispatch one cycle and merge what it returns.

        Returns False when the cycle must be dispatched again (retry), True
        when the plan can advance. Partials are only committed when the cycle
        is not retried, so a retried attempt never duplicates rows.
        """
        sub_request = self._build_request(cycle, group, targets)
        logger.debug(
            "Cycle %d: shards=%s targets=%s request_id=%s",
            cycle,
            "none" if group is None else ",".join(str(s) for s in group),
            ",".join(t.ref_id for t in targets),
            sub_request.request_id,
        )

        staged: list[PartialResponse] = []
        gave_up = False
        self._stats.dispatched += 1
        stream = _dispatch_stream(self._dispatcher, sub_request)
        try:
            while True:
                try:
                    partial = await self._guarded(_anext(stream))
                except Exception as e:
                    logger.warning("Cycle %d failed: %s", cycle, e)
                    if self._retry.should_retry(cycle):
                        return False
                    staged.append(PartialResponse(errors=[QueryError(message=str(e))], state="error"))
                    self._stats.abandoned += 1
                    break

                if partial is _EXHAUSTED:
                    if gave_up:
                        self._stats.abandoned += 1
                    else:
                        self._stats.completed += 1
                    break

                if partial.errors:
                    if self._retry.should_retry(cycle, partial.errors):
                        return False
                    # A max-series answer is final for the cycle, not a failure.
                    gave_up = gave_up or not has_max_series_error(partial.errors, self._config.max_series_marker)
                staged.append(partial)

        except asyncio.CancelledError:
            # Keep what this cycle already returned.
            self._commit(staged)
            raise
        finally:
            await _aclose(stream)

        self._commit(staged)
        return True

    def _commit(self, staged: list[PartialResponse]) -> None:
        for partial in staged:
            self._response = self._merge(self._response, partial)
        staged.clear()

    # -- cancellation plumbing ---------------------------------------------

    async def _guarded(self, aw: Awaitable[T]) -> T:
        """Await `aw` as a task that cancel() can interrupt."""
        if self._cancelled:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise asyncio.CancelledError()
        fut = asyncio.ensure_future(aw)
        self._inflight = fut
        try:
            return await fut
        except asyncio.CancelledError:
            if not fut.done():
                fut.cancel()
                await asyncio.wait([fut])
            raise
        finally:
            self._inflight = None

    async def _backoff(self, cycle: int) -> None:
        delay = self._config.retry_delay_s * self._retry.retries(cycle)
        if delay > 0:
            await self._guarded(asyncio.sleep(delay))

    def _mark_cancelled(self) -> None:
        if self._response.state not in ("done", "error"):
            self._response = self._response.with_state("error")


def run_shard_split_query(
    request: LogicalRequest,
    *,
    discovery: IShardDiscovery,
    dispatcher: IQueryDispatcher,
    config: ShardingConfig | None = None,
    merge: IResponseMerger = combine_responses,
) -> ShardSplitQuery:
    """
    Prepare a sharded query for `request`.

    Targets without an expression are dropped and the remaining ones get the
    shard placeholder in their stream selector. Iterate the returned query
    (or call `run()`) to execute it.
    """
    targets = tuple(
        t.with_expr(add_sharding_placeholder(t.expr))
        for t in request.targets
        if t.expr
    )
    prepared = request.derive(targets=targets, request_id=request.request_id, shards=None)
    return ShardSplitQuery(
        prepared,
        discovery=discovery,
        dispatcher=dispatcher,
        config=config,
        merge=merge,
    )
