"""LogQL helpers for shard-aware queries.

Functions
---------
- add_sharding_placeholder: add the shard matcher placeholder to a selector.
- interpolate_sharding_selector: resolve the placeholder for one shard group.
- is_logs_query: tell log queries from metric queries.
- get_service_name: extract the `service_name` equality matcher value.

Only the first stream selector of an expression is touched; metric queries
wrap their selector, so the first `{...}` is still the one to shard.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from logsplit.constants import SENTINEL_SHARD, SHARD_LABEL, SHARD_PLACEHOLDER
from logsplit.core.models import Target

PLACEHOLDER_MATCHER = f'{SHARD_LABEL}=~"{SHARD_PLACEHOLDER}"'

_SELECTOR_RE = re.compile(r"\{([^{}]*)\}")
_SERVICE_NAME_RE = re.compile(r'service_name\s*=(?![~=])\s*"((?:[^"\\]|\\.)*)"')


def add_sharding_placeholder(expr: str) -> str:
    """Insert the shard placeholder matcher into the first stream selector."""
    if PLACEHOLDER_MATCHER in expr:
        return expr
    m = _SELECTOR_RE.search(expr)
    if m is None:
        return expr
    inner = m.group(1).strip()
    matchers = f"{inner}, {PLACEHOLDER_MATCHER}" if inner else PLACEHOLDER_MATCHER
    return f"{expr[:m.start()]}{{{matchers}}}{expr[m.end():]}"


def shard_matcher(group: Sequence[int], sentinel: int = SENTINEL_SHARD) -> str:
    """Matcher selecting the streams of one shard group."""
    if list(group) == [sentinel]:
        # Streams without the label match the empty value.
        return f'{SHARD_LABEL}=""'
    return f'{SHARD_LABEL}=~"{"|".join(str(s) for s in group)}"'


def _strip_placeholder(expr: str) -> str:
    expr = expr.replace(f", {PLACEHOLDER_MATCHER}", "")
    return expr.replace(PLACEHOLDER_MATCHER, "")


def interpolate_sharding_selector(
    targets: Sequence[Target],
    group: Sequence[int] | None,
    sentinel: int = SENTINEL_SHARD,
) -> tuple[Target, ...]:
    """Return copies of `targets` with the placeholder resolved for `group`.

    `group=None` removes the placeholder (unsharded request).
    """
    out: list[Target] = []
    for t in targets:
        if group is None:
            expr = _strip_placeholder(t.expr)
        else:
            expr = t.expr.replace(PLACEHOLDER_MATCHER, shard_matcher(group, sentinel))
        out.append(t.with_expr(expr))
    return tuple(out)


def is_logs_query(expr: str) -> bool:
    """True for log selector pipelines, False for metric/aggregate queries."""
    return expr.lstrip().startswith("{")


def get_service_name(expr: str) -> str | None:
    m = _SERVICE_NAME_RE.search(expr)
    return m.group(1) if m else None


def service_selector(expr: str) -> str | None:
    """Stream selector used to scope shard discovery, if the query names a service."""
    name = get_service_name(expr)
    if name is None:
        return None
    return f'{{service_name="{name}"}}'
