from __future__ import annotations

from collections.abc import Sequence

from logsplit.core.logql import is_logs_query
from logsplit.core.models import AccumulatedResponse, Target


def adjust_targets(
    targets: Sequence[Target],
    response: AccumulatedResponse | None,
) -> tuple[Target, ...]:
    """
    Apply the remaining line budget of each target given `response`.

    Budgets are always computed from the `targets` passed in, so calling this
    again with the same response gives the same result. Targets whose budget
    reaches zero are dropped; targets without `max_lines`, and metric
    queries, pass through unchanged.
    """
    if response is None:
        return tuple(targets)

    out: list[Target] = []
    for t in targets:
        if t.max_lines is None or not is_logs_query(t.expr):
            out.append(t)
            continue
        remaining = max(0, t.max_lines - response.line_count(t.ref_id))
        if remaining > 0:
            out.append(t.with_max_lines(remaining))
    return tuple(out)
