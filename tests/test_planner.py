import math
from datetime import timedelta

import pytest

from conftest import time_range
from logsplit.core.config import ShardingConfig
from logsplit.core.planner import max_groups, plan_shard_groups

SIX_HOURS = time_range(timedelta(hours=6))
LONG = time_range(timedelta(hours=6, minutes=1))


def test_example_plan_short_window() -> None:
    plan = plan_shard_groups([5, 4, 3, 2, 1], SIX_HOURS)
    assert plan.groups == ((-1,), (1,), (3, 2), (5, 4))


def test_sentinel_last_for_long_window() -> None:
    plan = plan_shard_groups([5, 4, 3, 2, 1], LONG)
    assert plan.groups == ((1,), (3, 2), (5, 4), (-1,))


def test_input_order_duplicates_and_sentinel_are_ignored() -> None:
    plan = plan_shard_groups([2, 5, -1, 1, 4, 3, 4], SIX_HOURS)
    assert plan.groups == ((-1,), (1,), (3, 2), (5, 4))


@pytest.mark.parametrize("n", range(1, 150))
def test_groups_cover_shards_without_duplicates(n: int) -> None:
    shards = list(range(1, n + 1))
    plan = plan_shard_groups(shards, LONG)

    non_sentinel = [g for g in plan.groups if g != (-1,)]
    assert len(non_sentinel) == max_groups(n)
    flat = [s for g in non_sentinel for s in g]
    assert len(flat) == len(set(flat))
    assert set(flat) == set(shards)
    assert plan.shard_ids == set(shards) | {-1}


@pytest.mark.parametrize("n", range(3, 150))
def test_max_groups_follows_sqrt_rule(n: int) -> None:
    assert max_groups(n) == min(math.ceil(math.sqrt(n)), n - 1)


def test_single_and_pair_of_shards_still_make_progress() -> None:
    assert plan_shard_groups([7], LONG).groups == ((7,), (-1,))
    assert plan_shard_groups([7, 8], LONG).groups == ((8, 7), (-1,))


def test_groups_are_ascending_in_dispatch_order() -> None:
    plan = plan_shard_groups(range(1, 17), LONG)
    firsts = [g[0] for g in plan.groups[:-1]]
    assert firsts == sorted(firsts)


def test_empty_shard_set_is_rejected() -> None:
    with pytest.raises(ValueError):
        plan_shard_groups([], SIX_HOURS)
    with pytest.raises(ValueError):
        plan_shard_groups([-1], SIX_HOURS)


def test_thresholds_come_from_config() -> None:
    config = ShardingConfig(sentinel_shard=0, short_window=timedelta(hours=1))
    plan = plan_shard_groups([3, 2, 1], SIX_HOURS, config)
    assert plan.groups[-1] == (0,)
