"""Core data models, configuration and the shard-split use case.

This package provides:
- Data models (Target, LogicalRequest, Frame, AccumulatedResponse)
- Configuration classes (ShardingConfig, LokiConfig)
- Planning, budget and retry policies used by the orchestrator
"""

from logsplit.core.config import LokiConfig, ShardingConfig
from logsplit.core.models import AccumulatedResponse, Frame, LogicalRequest, PartialResponse, QueryError, Target, TimeRange

__all__ = [
    "LokiConfig",
    "ShardingConfig",
    "AccumulatedResponse",
    "Frame",
    "LogicalRequest",
    "PartialResponse",
    "QueryError",
    "Target",
    "TimeRange",
]
