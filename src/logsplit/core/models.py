"""Core data models for sharded log queries.

This module defines:
- `TimeRange`, `Target`, `LogicalRequest`: what the caller asks for.
- `Frame`, `QueryError`, `PartialResponse`: one event of a dispatch stream.
- `AccumulatedResponse`: the running merge returned to the caller.

Design notes
------------
- Requests and targets are frozen; per-cycle budgets are applied on copies.
- Frames are keyed by the `ref_id` of the target that produced them.
- `AccumulatedResponse` only moves forward through its states
  (loading -> streaming -> done | error).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Literal

from logsplit.constants import MAX_SERIES_MARKER
from logsplit.errors import InvalidStateTransition

LoadingState = Literal["loading", "streaming", "done", "error"]

_NEXT_STATES: dict[str, frozenset[str]] = {
    "loading": frozenset({"loading", "streaming", "done", "error"}),
    "streaming": frozenset({"streaming", "done", "error"}),
    "done": frozenset({"done"}),
    "error": frozenset({"error"}),
}


# === Request side ===


@dataclass(slots=True, frozen=True)
class TimeRange:
    """Inclusive query window."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("start must be <= end")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(slots=True, frozen=True)
class Target:
    """One sub-query of a logical request."""

    ref_id: str
    expr: str
    max_lines: int | None = None

    def with_max_lines(self, max_lines: int | None) -> Target:
        return replace(self, max_lines=max_lines)

    def with_expr(self, expr: str) -> Target:
        return replace(self, expr=expr)


@dataclass(slots=True, frozen=True)
class LogicalRequest:
    """A query over the whole time range, or one cycle's sub-request.

    `shards` is None for the logical request and for the unsharded fallback;
    for a sharded sub-request it holds the ids of the cycle's group.
    """

    targets: tuple[Target, ...]
    time_range: TimeRange
    request_id: str | None = None
    shards: tuple[int, ...] | None = None

    def derive(
        self,
        *,
        targets: tuple[Target, ...],
        request_id: str | None,
        shards: tuple[int, ...] | None,
    ) -> LogicalRequest:
        return replace(self, targets=targets, request_id=request_id, shards=shards)


# === Response side ===


@dataclass(slots=True)
class Frame:
    """Rows returned for one target (log lines or metric samples)."""

    ref_id: str
    rows: list[dict[str, Any]] = field(default_factory=list)
    name: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(slots=True, frozen=True)
class QueryError:
    """Error reported by the datasource for one sub-request."""

    message: str
    ref_id: str | None = None
    status: int | None = None

    def is_max_series(self, marker: str = MAX_SERIES_MARKER) -> bool:
        return marker.lower() in self.message.lower()


@dataclass(slots=True)
class PartialResponse:
    """One event emitted by a dispatch stream."""

    frames: list[Frame] = field(default_factory=list)
    errors: list[QueryError] = field(default_factory=list)
    state: LoadingState = "done"


@dataclass(slots=True)
class AccumulatedResponse:
    """Running merge of every partial response of one logical operation."""

    state: LoadingState = "streaming"
    frames: list[Frame] = field(default_factory=list)
    errors: list[QueryError] = field(default_factory=list)
    key: str = field(default_factory=lambda: str(uuid.uuid4()))

    def with_state(self, state: LoadingState) -> AccumulatedResponse:
        """Return a copy in `state`; raise if that would move backwards."""
        if state not in _NEXT_STATES[self.state]:
            raise InvalidStateTransition(f"cannot move response from {self.state!r} to {state!r}")
        return replace(self, state=state, frames=list(self.frames), errors=list(self.errors))

    def frames_for(self, ref_id: str) -> list[Frame]:
        return [f for f in self.frames if f.ref_id == ref_id]

    def line_count(self, ref_id: str) -> int:
        """Total rows accumulated for `ref_id` across all its frames."""
        return sum(len(f) for f in self.frames if f.ref_id == ref_id)
