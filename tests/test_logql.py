from logsplit.core.logql import (
    PLACEHOLDER_MATCHER,
    add_sharding_placeholder,
    get_service_name,
    interpolate_sharding_selector,
    is_logs_query,
    service_selector,
)
from logsplit.core.models import Target


def test_placeholder_is_added_to_first_selector() -> None:
    expr = add_sharding_placeholder('sum(count_over_time({app="api"} |= "x" [5m]))')
    assert expr == f'sum(count_over_time({{app="api", {PLACEHOLDER_MATCHER}}} |= "x" [5m]))'
    assert add_sharding_placeholder(expr) == expr


def test_placeholder_in_empty_selector() -> None:
    assert add_sharding_placeholder("{}") == f"{{{PLACEHOLDER_MATCHER}}}"


def test_interpolation_per_group() -> None:
    targets = [Target(ref_id="A", expr=add_sharding_placeholder('{app="api"}'))]

    (sharded,) = interpolate_sharding_selector(targets, (5, 4))
    (sentinel,) = interpolate_sharding_selector(targets, (-1,))
    (unsharded,) = interpolate_sharding_selector(targets, None)

    assert sharded.expr == '{app="api", __stream_shard__=~"5|4"}'
    assert sentinel.expr == '{app="api", __stream_shard__=""}'
    assert unsharded.expr == '{app="api"}'
    assert targets[0].expr == add_sharding_placeholder('{app="api"}')


def test_query_kind() -> None:
    assert is_logs_query('{app="api"} | json')
    assert not is_logs_query('rate({app="api"}[1m])')


def test_service_name() -> None:
    assert get_service_name('{service_name="checkout", env="prod"}') == "checkout"
    assert get_service_name('{service_name=~"check.*"}') is None
    assert service_selector('{service_name="checkout"}') == '{service_name="checkout"}'
    assert service_selector('{app="x"}') is None
