"""Tests for the CLI commands."""

import json

import pytest
import yaml
from typer.testing import CliRunner

from buildbetter_mcp import cli

runner = CliRunner()


@pytest.fixture
def no_config(tmp_path):
    return str(tmp_path / "absent.yaml")


@pytest.fixture
def wired(monkeypatch, toolbox, catalog, prompt_book):
    monkeypatch.setattr("buildbetter_mcp.server.build_components", lambda cfg: (toolbox, catalog, prompt_book))
    return toolbox


class TestConfigInit:
    def test_writes_example(self, tmp_path):
        path = tmp_path / "cfg" / "config.yaml"

        result = runner.invoke(cli.app, ["config", "init", "--path", str(path)])

        assert result.exit_code == 0
        assert yaml.safe_load(path.read_text())["max_lookback_days"] == 365


class TestSchemaCommands:
    def test_pull_writes_schema(self, tmp_path, monkeypatch, schema_json, no_config):
        monkeypatch.setattr(cli, "fetch_full_schema", lambda client: schema_json)
        out = tmp_path / "schema.json"

        result = runner.invoke(cli.app, ["schema", "pull", "--out", str(out), "--config", no_config])

        assert result.exit_code == 0
        assert "Schema pulled" in result.output
        assert json.loads(out.read_text()) == schema_json

    def test_types(self, wired, no_config):
        result = runner.invoke(cli.app, ["types", "--config", no_config])

        assert result.exit_code == 0
        assert "interview" in result.output

    def test_fields(self, wired, no_config):
        result = runner.invoke(cli.app, ["fields", "person", "--config", no_config])

        assert result.exit_code == 0
        assert "email" in result.output


class TestQuery:
    def test_runs_query_file(self, tmp_path, wired, session, no_config):
        session.queue({"data": {"interview": [{"id": 1, "name": "Kickoff"}]}})
        query_file = tmp_path / "q.graphql"
        query_file.write_text("{ interview { id name } }")

        result = runner.invoke(cli.app, ["query", str(query_file), "--config", no_config])

        assert result.exit_code == 0
        assert "Kickoff" in result.output

    def test_variables_option(self, tmp_path, wired, session, no_config):
        query_file = tmp_path / "q.graphql"
        query_file.write_text("query Q($n: Int) { interview(limit: $n) { id } }")

        runner.invoke(cli.app, ["query", str(query_file), "--variables", '{"n": 3}', "--config", no_config])

        assert session.data_calls[0]["json"]["variables"] == {"n": 3}

    def test_mutation_exits_2(self, tmp_path, wired, session, no_config):
        query_file = tmp_path / "m.graphql"
        query_file.write_text("mutation { delete_interview { affected_rows } }")

        result = runner.invoke(cli.app, ["query", str(query_file), "--config", no_config])

        assert result.exit_code == 2
        assert session.calls == []

    def test_validate_only(self, tmp_path, wired, session, no_config):
        query_file = tmp_path / "q.graphql"
        query_file.write_text("{ person { email } }")

        result = runner.invoke(cli.app, ["query", str(query_file), "--validate", "--config", no_config])

        assert result.exit_code == 0
        assert "Query is valid" in result.output
        assert session.data_calls == []

    def test_missing_file_exits_1(self, wired, no_config):
        result = runner.invoke(cli.app, ["query", "/nonexistent/q.graphql", "--config", no_config])
        assert result.exit_code == 1
