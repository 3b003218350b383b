"""Additive merge of partial responses.

`combine_responses` never drops accumulated data: frames of the same target
(and frame name) are concatenated, new frames are appended and errors are
collected. Inputs are left untouched.
"""

from __future__ import annotations

from dataclasses import replace

from logsplit.core.models import AccumulatedResponse, Frame, PartialResponse


def _frame_key(frame: Frame) -> tuple[str, str | None]:
    return (frame.ref_id, frame.name)


def combine_responses(
    accumulated: AccumulatedResponse,
    partial: PartialResponse,
) -> AccumulatedResponse:
    """Return a new response holding `accumulated` plus `partial`."""
    frames = list(accumulated.frames)
    index = {_frame_key(f): i for i, f in enumerate(frames)}

    for frame in partial.frames:
        i = index.get(_frame_key(frame))
        if i is None:
            index[_frame_key(frame)] = len(frames)
            frames.append(replace(frame, rows=list(frame.rows), meta=dict(frame.meta)))
            continue
        current = frames[i]
        frames[i] = replace(
            current,
            rows=current.rows + frame.rows,
            meta={**current.meta, **frame.meta},
        )

    return replace(
        accumulated,
        frames=frames,
        errors=accumulated.errors + partial.errors,
    )
