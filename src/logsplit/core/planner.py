"""Shard planning: split discovered shard ids into request groups.

The number of groups grows with the square root of the shard count, so the
number of round-trips stays small while each request covers a bounded slice
of the store. The sentinel group (streams without a shard label) always goes
in its own group, first for short windows and last otherwise.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from logsplit.core.config import ShardingConfig
from logsplit.core.models import TimeRange

ShardGroup = tuple[int, ...]


@dataclass(frozen=True)
class ShardPlan:
    """Ordered shard groups for one logical operation."""

    groups: tuple[ShardGroup, ...]

    def __len__(self) -> int:
        return len(self.groups)

    def __getitem__(self, cycle: int) -> ShardGroup:
        return self.groups[cycle]

    @property
    def shard_ids(self) -> frozenset[int]:
        return frozenset(s for g in self.groups for s in g)


def max_groups(n: int) -> int:
    """Number of non-sentinel groups for `n` shards."""
    if n <= 0:
        return 0
    return max(1, min(math.ceil(math.sqrt(n)), n - 1))


def _walk_groups(shards: list[int]) -> list[ShardGroup]:
    """Slice descending ids into `max_groups` contiguous groups."""
    n = len(shards)
    group_size = math.ceil(n / max_groups(n))
    return [tuple(shards[i:i + group_size]) for i in range(0, n, group_size)]


def plan_shard_groups(
    shard_ids: Iterable[int],
    time_range: TimeRange,
    config: ShardingConfig | None = None,
) -> ShardPlan:
    """Build the dispatch plan for the discovered `shard_ids`.

    Parameters
    ----------
    shard_ids : Iterable[int]
        Discovered ids, any order. Duplicates and the sentinel are ignored.
    time_range : TimeRange
        Query window; decides where the sentinel group goes.
    config : ShardingConfig | None
        Sentinel id and short-window threshold.

    Returns
    -------
    ShardPlan
        Groups in dispatch order, sentinel included.
    """
    config = config or ShardingConfig()
    shards = sorted({s for s in shard_ids if s != config.sentinel_shard}, reverse=True)
    if not shards:
        raise ValueError("cannot plan an empty shard set")

    groups = _walk_groups(shards)
    groups.reverse()

    sentinel: ShardGroup = (config.sentinel_shard,)
    if time_range.duration <= config.short_window:
        groups.insert(0, sentinel)
    else:
        groups.append(sentinel)

    return ShardPlan(groups=tuple(groups))
