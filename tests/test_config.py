"""Tests for provider configuration."""

from __future__ import annotations

import pytest

from couchdb_config.config import CouchDbConfig
from couchdb_config.exceptions import ConfigurationError
from couchdb_config.flatten import ArrayPolicy


class TestCouchDbConfig:
    def test_defaults(self):
        config = CouchDbConfig(database="settings")

        assert config.host == "localhost"
        assert config.port == 5984
        assert config.retry_delay == 1.0
        assert config.debounce_delay == 0.5
        assert config.key_delimiter == ":"
        assert config.reserved_prefix == "_"
        assert config.array_policy is ArrayPolicy.OPAQUE
        assert config.reload_on_change is True

    def test_urls(self):
        config = CouchDbConfig(database="settings", host="couch", port=6984)

        assert config.base_url == "http://couch:6984/settings"
        assert config.changes_url == "http://couch:6984/settings/_changes?feed=continuous"
        assert config.all_docs_url == "http://couch:6984/settings/_all_docs?include_docs=true"
        assert config.document_url("a b/c") == "http://couch:6984/settings/a%20b%2Fc"

    def test_changes_url_options(self):
        config = CouchDbConfig(database="settings", heartbeat=10000, since="now")
        assert config.changes_url.endswith("_changes?feed=continuous&heartbeat=10000&since=now")

    @pytest.mark.parametrize(
        ("kwargs", "field"),
        [
            ({"database": ""}, "database"),
            ({"database": "d", "scheme": "ftp"}, "scheme"),
            ({"database": "d", "port": 0}, "port"),
            ({"database": "d", "retry_delay": -1}, "retry_delay"),
            ({"database": "d", "debounce_delay": -0.1}, "debounce_delay"),
            ({"database": "d", "key_delimiter": ""}, "key_delimiter"),
            ({"database": "d", "username": "admin"}, "password"),
        ],
    )
    def test_validation(self, kwargs, field):
        with pytest.raises(ConfigurationError) as exc_info:
            CouchDbConfig(**kwargs)
        assert exc_info.value.field == field


class TestFromEnvironment:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("COUCHDB_CONFIG_DATABASE", "settings")
        monkeypatch.setenv("COUCHDB_CONFIG_HOST", "couch.internal")
        monkeypatch.setenv("COUCHDB_CONFIG_PORT", "6984")
        monkeypatch.setenv("COUCHDB_CONFIG_SCHEME", "https")
        monkeypatch.setenv("COUCHDB_CONFIG_RELOAD", "false")
        monkeypatch.setenv("COUCHDB_CONFIG_DEBOUNCE_DELAY", "0.25")
        monkeypatch.setenv("COUCHDB_CONFIG_ARRAY_POLICY", "INDEXED")

        config = CouchDbConfig.from_environment()

        assert config.base_url == "https://couch.internal:6984/settings"
        assert config.reload_on_change is False
        assert config.debounce_delay == 0.25
        assert config.array_policy is ArrayPolicy.INDEXED

    def test_database_argument_wins(self, monkeypatch):
        monkeypatch.setenv("COUCHDB_CONFIG_DATABASE", "ignored")
        assert CouchDbConfig.from_environment("explicit").database == "explicit"

    def test_missing_database(self, monkeypatch):
        monkeypatch.delenv("COUCHDB_CONFIG_DATABASE", raising=False)
        with pytest.raises(ConfigurationError):
            CouchDbConfig.from_environment()

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("COUCHDB_CONFIG_DATABASE", "settings")
        monkeypatch.setenv("COUCHDB_CONFIG_PORT", "not-a-port")
        with pytest.raises(ConfigurationError):
            CouchDbConfig.from_environment()


class TestFromFile:
    def test_reads_couchdb_section(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "couchdb:\n"
            "  host: couch.internal\n"
            "  database: settings\n"
            "  array_policy: indexed\n"
            "  retry_delay: 2.5\n"
        )

        config = CouchDbConfig.from_file(path)

        assert config.host == "couch.internal"
        assert config.array_policy is ArrayPolicy.INDEXED
        assert config.retry_delay == 2.5

    def test_missing_section(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("identity:\n  user_id: x\n")
        with pytest.raises(ConfigurationError) as exc_info:
            CouchDbConfig.from_file(path)
        assert exc_info.value.field == "couchdb"

    def test_unknown_setting(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("couchdb:\n  database: settings\n  colour: blue\n")
        with pytest.raises(ConfigurationError) as exc_info:
            CouchDbConfig.from_file(path)
        assert exc_info.value.field == "colour"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            CouchDbConfig.from_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("couchdb: [unclosed\n")
        with pytest.raises(ConfigurationError):
            CouchDbConfig.from_file(path)
