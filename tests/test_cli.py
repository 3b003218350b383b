from click.testing import CliRunner

from logsplit.cli import cli, parse_duration


def test_plan_short_window() -> None:
    result = CliRunner().invoke(cli, ["plan", "--shards", "5,4,3,2,1", "--window", "6h"])
    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ["0: -1", "1: 1", "2: 3,2", "3: 5,4"]


def test_plan_long_window() -> None:
    result = CliRunner().invoke(cli, ["plan", "--shards", "5,4,3,2,1", "--window", "2d"])
    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[-1] == "3: -1"


def test_plan_rejects_bad_input() -> None:
    result = CliRunner().invoke(cli, ["plan", "--shards", "a,b"])
    assert result.exit_code != 0


def test_plan_rejects_sentinel_only() -> None:
    result = CliRunner().invoke(cli, ["plan", "--shards=-1"])
    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)
    assert "cannot plan an empty shard set" in result.output


def test_query_rejects_unknown_log_level() -> None:
    result = CliRunner().invoke(
        cli, ["query", '{app="x"}', "--url", "http://loki.invalid", "--log-level", "bogus"]
    )
    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)


def test_parse_duration() -> None:
    assert parse_duration("90m").total_seconds() == 5400
