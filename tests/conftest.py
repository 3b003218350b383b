import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from logsplit.core.models import Frame, LogicalRequest, PartialResponse, QueryError, Target, TimeRange

END = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

HANG = "hang"


def log_frame(ref_id: str, n: int) -> Frame:
    return Frame(
        ref_id=ref_id,
        rows=[{"timestamp": i, "line": f"{ref_id}-{i}", "labels": {}} for i in range(n)],
        meta={"type": "logs"},
    )


def error_partial(message: str, ref_id: str = "A") -> PartialResponse:
    return PartialResponse(errors=[QueryError(message=message, ref_id=ref_id, status=400)], state="error")


Event = PartialResponse | BaseException | str
Responder = Callable[[LogicalRequest, int], Iterable[Event]]


def one_line_per_target(request: LogicalRequest, call: int) -> list[Event]:
    return [PartialResponse(frames=[log_frame(t.ref_id, 1) for t in request.targets])]


class FakeDispatcher:
    """Scripted datasource: `responder(request, call_index)` returns the events of one dispatch.

    An event is a PartialResponse to yield, an exception to raise, or HANG to
    block until cancelled.
    """

    def __init__(self, responder: Responder = one_line_per_target) -> None:
        self.requests: list[LogicalRequest] = []
        self.closed = 0
        self._responder = responder

    async def dispatch(self, request: LogicalRequest) -> Any:
        call = len(self.requests)
        self.requests.append(request)
        try:
            for event in self._responder(request, call):
                if isinstance(event, BaseException):
                    raise event
                if event == HANG:
                    await asyncio.Event().wait()
                yield event
        finally:
            self.closed += 1


def time_range(window: timedelta) -> TimeRange:
    return TimeRange(start=END - window, end=END)


@pytest.fixture
def short_range() -> TimeRange:
    return time_range(timedelta(hours=6))


@pytest.fixture
def long_range() -> TimeRange:
    return time_range(timedelta(hours=6, minutes=1))


@pytest.fixture
def mock_discovery():
    discovery = AsyncMock()
    discovery.discover_shard_ids = AsyncMock(return_value=[5, 4, 3, 2, 1])
    return discovery


@pytest.fixture
def logs_request(short_range: TimeRange) -> LogicalRequest:
    return LogicalRequest(
        targets=(Target(ref_id="A", expr='{service_name="api"} |= "error"', max_lines=100),),
        time_range=short_range,
        request_id="q1",
    )
