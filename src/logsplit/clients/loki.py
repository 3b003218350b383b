"""Async HTTP client for Loki-compatible log stores.

This module provides:
- `LokiClient`: shard discovery (label values) and query dispatch
  (query_range), with sane timeouts/connection limits
- Helpers to convert timestamps and map query results into `Frame`s

Query errors (HTTP 4xx/5xx answers) are returned inside `PartialResponse`
objects so the orchestrator can retry or skip them; transport failures
are raised.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import httpx

from logsplit.constants import SHARD_LABEL
from logsplit.core.config import LokiConfig
from logsplit.core.models import Frame, LogicalRequest, PartialResponse, QueryError, Target, TimeRange
from logsplit.errors import DatasourceError, ShardDiscoveryError


def to_unix_nanos(ts: datetime) -> int:
    """Return `ts` as integer nanoseconds since the epoch."""
    return int(ts.timestamp()) * 1_000_000_000 + ts.microsecond * 1_000


def _error_message(r: httpx.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return r.text.strip() or f"HTTP {r.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


def frames_from_result(ref_id: str, data: dict[str, Any]) -> list[Frame]:
    """Map a query_range `data` payload into frames for `ref_id`."""
    result_type = data.get("resultType")
    result = data.get("result") or []

    if result_type == "streams":
        rows: list[dict[str, Any]] = []
        for stream in result:
            labels = stream.get("stream") or {}
            for ts, line, *_ in stream.get("values", []):
                rows.append({"timestamp": int(ts), "line": line, "labels": labels})
        rows.sort(key=lambda r: r["timestamp"], reverse=True)
        return [Frame(ref_id=ref_id, rows=rows, meta={"type": "logs"})]

    if result_type in ("matrix", "vector"):
        frames: list[Frame] = []
        for series in result:
            metric = series.get("metric") or {}
            samples = series.get("values") or ([series["value"]] if "value" in series else [])
            frames.append(
                Frame(
                    ref_id=ref_id,
                    name=",".join(f"{k}={v}" for k, v in sorted(metric.items())) or None,
                    rows=[{"timestamp": float(ts), "value": v} for ts, v in samples],
                    meta={"type": "metrics", "labels": metric},
                )
            )
        return frames

    raise DatasourceError(f"unsupported result type: {result_type!r}")


class LokiClient:
    """Minimal async Loki client.

    Parameters
    ----------
    config : LokiConfig
        Endpoint URL, timeouts, tenant and default limit.
    transport : httpx.AsyncBaseTransport | None
        Optional custom transport (tests use `httpx.MockTransport`).
    """

    def __init__(self, config: LokiConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        headers = {"X-Scope-OrgID": config.tenant_id} if config.tenant_id else {}
        self.client = httpx.AsyncClient(
            base_url=config.url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(
                connect=config.timeout_s,
                read=config.timeout_s,
                write=config.timeout_s,
                pool=max(30, config.timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=max(1, config.max_connections // 2),
            ),
            transport=transport,
        )

    async def __aenter__(self) -> LokiClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def discover_shard_ids(
        self,
        *,
        selector: str | None,
        time_range: TimeRange,
    ) -> list[int]:
        """Return the integer values of the shard label within `time_range`."""
        params: dict[str, Any] = {
            "start": to_unix_nanos(time_range.start),
            "end": to_unix_nanos(time_range.end),
        }
        if selector:
            params["query"] = selector

        r = await self.client.get(f"/loki/api/v1/label/{SHARD_LABEL}/values", params=params)
        if r.status_code == 404:
            raise ShardDiscoveryError("label values endpoint not available")
        r.raise_for_status()
        data = r.json()
        if data.get("status") != "success":
            raise ShardDiscoveryError(f"label values query failed: {data}")

        out: list[int] = []
        for value in data.get("data") or []:
            try:
                out.append(int(value))
            except (TypeError, ValueError):
                continue
        return out

    async def query_range(self, target: Target, request: LogicalRequest) -> PartialResponse:
        """Run one target over the request window."""
        params: dict[str, Any] = {
            "query": target.expr,
            "start": to_unix_nanos(request.time_range.start),
            "end": to_unix_nanos(request.time_range.end),
            "limit": target.max_lines if target.max_lines is not None else self.config.limit,
            "direction": self.config.direction,
        }
        headers = {"X-Query-Tags": f"Source=logsplit,RequestId={request.request_id}"} if request.request_id else None

        r = await self.client.get("/loki/api/v1/query_range", params=params, headers=headers)
        if r.is_error:
            return PartialResponse(
                errors=[QueryError(message=_error_message(r), ref_id=target.ref_id, status=r.status_code)],
                state="error",
            )

        payload = r.json()
        if payload.get("status") != "success":
            return PartialResponse(
                errors=[QueryError(message=str(payload.get("error") or payload), ref_id=target.ref_id)],
                state="error",
            )
        return PartialResponse(frames=frames_from_result(target.ref_id, payload.get("data") or {}))

    async def dispatch(self, request: LogicalRequest) -> AsyncIterator[PartialResponse]:
        """Stream one partial response per target of `request`."""
        last = len(request.targets) - 1
        for i, target in enumerate(request.targets):
            partial = await self.query_range(target, request)
            if i < last and partial.state == "done":
                partial.state = "streaming"
            yield partial

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
