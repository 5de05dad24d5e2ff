"""Tests for configuration loading."""

import yaml

from buildbetter_mcp import config


class TestLoad:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        for var in ("BUILDBETTER_ENDPOINT", "BUILDBETTER_API_KEY", "BUILDBETTER_LOG_LEVEL"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.chdir(tmp_path)

        cfg = config.load(str(tmp_path / "missing.yaml"))

        assert cfg.endpoint == config.DEFAULT_ENDPOINT
        assert cfg.api_key is None
        assert cfg.api_key_header == "x-buildbetter-api-key"
        assert cfg.schema_ttl_seconds == 1800
        assert cfg.max_lookback_days == 365

    def test_file_values(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BUILDBETTER_ENDPOINT", raising=False)
        monkeypatch.delenv("BUILDBETTER_LOG_LEVEL", raising=False)
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"endpoint": "https://file.test/graphql", "schema_ttl_seconds": 60, "log_level": "debug"}))

        cfg = config.load(str(path))

        assert cfg.endpoint == "https://file.test/graphql"
        assert cfg.schema_ttl_seconds == 60
        assert cfg.log_level == "DEBUG"

    def test_environment_wins(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"endpoint": "https://file.test/graphql"}))
        monkeypatch.setenv("BUILDBETTER_ENDPOINT", "https://env.test/graphql")
        monkeypatch.setenv("BUILDBETTER_API_KEY", "env-key")

        cfg = config.load(str(path))

        assert cfg.endpoint == "https://env.test/graphql"
        assert cfg.api_key == "env-key"

    def test_empty_api_key_is_unset(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("BUILDBETTER_API_KEY", "")
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"api_key": ""}))

        assert config.load(str(path)).api_key is None


class TestExampleConfig:
    def test_writes_loadable_yaml(self, tmp_path):
        path = config.create_example_config(str(tmp_path / "nested" / "config.yaml"))

        with open(path) as f:
            data = yaml.safe_load(f)
        assert data["api_key_header"] == "x-buildbetter-api-key"
        assert "api_key" not in data
