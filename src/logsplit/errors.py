"""
Error classes for logsplit.

Only a few conditions are exceptions:
- ShardDiscoveryError: the store cannot list shards; the orchestrator
  falls back to a single unsharded request.
- DatasourceError: the datasource answered with something we cannot map.
- InvalidStateTransition: an accumulated response was moved backwards.

Per-cycle query errors are values (QueryError) carried inside responses,
never raised to the caller.
"""


class LogsplitError(Exception):
    """Base exception for logsplit."""
    pass


class ShardDiscoveryError(LogsplitError):
    """Shard discovery is unsupported or failed for the requested window."""
    pass


class DatasourceError(LogsplitError):
    """Unexpected payload returned by the datasource."""
    pass


class InvalidStateTransition(LogsplitError, ValueError):
    """An AccumulatedResponse state change that would go backwards."""
    pass
