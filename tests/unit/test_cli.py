"""
Tests for the sql-studio command line.
"""

import pytest
from click.testing import CliRunner

from sqlstudio import cli as cli_module
from sqlstudio.cli import cli, parse_address


@pytest.fixture
def served(monkeypatch):
    """Capture uvicorn.run instead of starting a server."""
    calls = []
    monkeypatch.setattr(cli_module.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    return calls


class TestParseAddress:
    def test_host_and_port(self):
        assert parse_address("0.0.0.0:8080") == ("0.0.0.0", 8080)
        assert parse_address("[::1]:3030") == ("::1", 3030)

    @pytest.mark.parametrize("address", ["localhost", ":3030", "host:http"])
    def test_invalid(self, address):
        import click

        with pytest.raises(click.BadParameter):
            parse_address(address)


class TestCommands:
    def test_sqlite_serves_with_global_options(self, served, sqlite_db):
        result = CliRunner().invoke(
            cli,
            ["-a", "0.0.0.0:8080", "-t", "500ms", "-b", "studio", "sqlite", str(sqlite_db)],
            obj={},
        )
        assert result.exit_code == 0, result.output
        app, kwargs = served[0]
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 8080
        settings = app.state.settings
        assert settings.query_timeout == 0.5
        assert settings.api_prefix == "/studio/api"
        assert settings.target == str(sqlite_db)
        assert "query timeout 0.5s" in result.output

    def test_postgres_schema_option(self, served):
        pytest.importorskip("psycopg2")
        result = CliRunner().invoke(
            cli, ["postgres", "postgresql://u@db/app", "--schema", "sales"], obj={}
        )
        assert result.exit_code == 0, result.output
        assert served[0][0].state.settings.schema_name == "sales"

    def test_bad_timeout(self, served):
        result = CliRunner().invoke(cli, ["-t", "soon", "sqlite", "x.db"], obj={})
        assert result.exit_code == 2
        assert served == []

    def test_bad_target_exits_with_error(self, served):
        result = CliRunner().invoke(cli, ["mysql", "not a url"], obj={})
        assert result.exit_code == 1
        assert served == []

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "sql-studio" in result.output
