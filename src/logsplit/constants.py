from __future__ import annotations

from datetime import timedelta

# Shard id requested for streams that carry no shard label.
SENTINEL_SHARD = -1

# Windows up to this length dispatch the sentinel group first.
SHORT_WINDOW = timedelta(hours=6)

# Extra attempts per cycle after the first dispatch.
MAX_RETRIES = 2

# Substring Loki puts in the error raised when a query hits its series limit.
MAX_SERIES_MARKER = "maximum of series"

SHARD_LABEL = "__stream_shard__"
SHARD_PLACEHOLDER = "__stream_shard_number__"
