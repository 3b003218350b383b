from __future__ import annotations

from .core.config import LokiConfig, ShardingConfig
from .core.merge import combine_responses
from .core.models import AccumulatedResponse, Frame, LogicalRequest, PartialResponse, QueryError, Target, TimeRange
from .core.planner import ShardPlan, plan_shard_groups
from .core.retry import RetryState
from .core.targets import adjust_targets
from .core.use_cases.shard_split import ShardSplitQuery, run_shard_split_query

__all__ = [
    "run_shard_split_query",
    "ShardSplitQuery",
    "plan_shard_groups",
    "ShardPlan",
    "adjust_targets",
    "RetryState",
    "combine_responses",
    "LogicalRequest",
    "Target",
    "TimeRange",
    "Frame",
    "QueryError",
    "PartialResponse",
    "AccumulatedResponse",
    "ShardingConfig",
    "LokiConfig",
]
