"""Per-operation retry bookkeeping.

`RetryState` counts retries per cycle. A cycle is dispatched at most
`1 + max_retries` times; a max-series error is never retried because the
store would answer the same way again.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from logsplit.constants import MAX_RETRIES, MAX_SERIES_MARKER
from logsplit.core.models import QueryError

logger = logging.getLogger(__name__)


def has_max_series_error(errors: Sequence[QueryError], marker: str = MAX_SERIES_MARKER) -> bool:
    return any(e.is_max_series(marker) for e in errors)


@dataclass(slots=True)
class RetryState:
    """Retry counters for one logical operation."""

    max_retries: int = MAX_RETRIES
    max_series_marker: str = MAX_SERIES_MARKER
    _retries: dict[int, int] = field(default_factory=dict)

    def retries(self, cycle: int) -> int:
        return self._retries.get(cycle, 0)

    def attempts(self, cycle: int) -> int:
        """Dispatches made so far for `cycle`, counting the first one."""
        return self.retries(cycle) + 1

    def should_retry(self, cycle: int, errors: Sequence[QueryError] = ()) -> bool:
        """Record a retry of `cycle` and return True, or return False to give up."""
        if has_max_series_error(errors, self.max_series_marker):
            logger.info("Maximum series reached on cycle %d, skipping retry", cycle)
            return False

        retries = self.retries(cycle)
        if retries >= self.max_retries:
            logger.warning("Cycle %d failed after %d attempts, moving on", cycle, retries + 1)
            return False

        self._retries[cycle] = retries + 1
        logger.info("Retrying cycle %d (%d)", cycle, retries + 1)
        return True

    def reset(self) -> None:
        self._retries.clear()
