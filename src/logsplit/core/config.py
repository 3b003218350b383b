from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from logsplit.constants import MAX_RETRIES, MAX_SERIES_MARKER, SENTINEL_SHARD, SHORT_WINDOW


@dataclass(frozen=True)
class ShardingConfig:
    """Numeric policy for shard splitting.

    The defaults are the values the store's own query splitting uses; change
    them only when tuning for a specific deployment.
    """

    sentinel_shard: int = SENTINEL_SHARD
    short_window: timedelta = SHORT_WINDOW
    max_retries: int = MAX_RETRIES
    retry_delay_s: float = 0.0  # linear backoff: delay * retries so far
    max_series_marker: str = MAX_SERIES_MARKER


@dataclass(frozen=True)
class LokiConfig:
    """Configuration for the HTTP datasource client."""

    url: str
    timeout_s: int = 30
    max_connections: int = 16
    tenant_id: str | None = None  # sent as X-Scope-OrgID
    limit: int = 1_000  # default line limit for targets without max_lines
    direction: str = "backward"
