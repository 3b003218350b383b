from logsplit.core.merge import combine_responses
from logsplit.core.models import AccumulatedResponse, Frame, PartialResponse, QueryError

from conftest import log_frame


def test_frames_of_same_target_are_concatenated() -> None:
    acc = combine_responses(AccumulatedResponse(), PartialResponse(frames=[log_frame("A", 2)]))
    acc = combine_responses(acc, PartialResponse(frames=[log_frame("A", 3)]))
    assert len(acc.frames) == 1
    assert acc.line_count("A") == 5


def test_new_targets_and_errors_are_appended() -> None:
    acc = combine_responses(AccumulatedResponse(), PartialResponse(frames=[log_frame("A", 1)]))
    acc = combine_responses(
        acc,
        PartialResponse(frames=[log_frame("B", 2)], errors=[QueryError(message="boom", ref_id="B")]),
    )
    assert [f.ref_id for f in acc.frames] == ["A", "B"]
    assert acc.line_count("B") == 2
    assert [e.message for e in acc.errors] == ["boom"]


def test_metric_series_stay_separate() -> None:
    partial = PartialResponse(
        frames=[
            Frame(ref_id="A", name="level=info", rows=[{"timestamp": 1.0, "value": "3"}]),
            Frame(ref_id="A", name="level=error", rows=[{"timestamp": 1.0, "value": "1"}]),
        ]
    )
    acc = combine_responses(AccumulatedResponse(), partial)
    acc = combine_responses(acc, partial)
    assert len(acc.frames) == 2
    assert [len(f) for f in acc.frames] == [2, 2]


def test_inputs_are_not_mutated() -> None:
    first = AccumulatedResponse()
    first = combine_responses(first, PartialResponse(frames=[log_frame("A", 1)]))
    partial = PartialResponse(frames=[log_frame("A", 1)])
    merged = combine_responses(first, partial)

    assert first.line_count("A") == 1
    assert len(partial.frames[0]) == 1
    assert merged.line_count("A") == 2
    assert merged.key == first.key
    assert merged.state == first.state
