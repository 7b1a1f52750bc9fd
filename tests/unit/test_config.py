"""Tests for environment-driven settings."""

from __future__ import annotations

from sqlalchemy.engine import make_url

from craftops.config import DEFAULT_REPOSITORY, Settings, parse_plugin_versions


def test_defaults_from_empty_environment() -> None:
    settings = Settings.from_env({})
    assert settings.github_repository == DEFAULT_REPOSITORY
    assert settings.database_url == "mysql+pymysql://craft:craft@db:3306/craft"
    assert settings.craft_environment == "production"
    assert settings.security_key is None
    assert settings.audit_log_path is None
    assert settings.backup_strategy == "mysqldump"
    assert settings.idempotency_window_seconds == 600


def test_database_url_built_from_parts() -> None:
    settings = Settings.from_env({
        "DB_USER": "u",
        "DB_PASS": "p",
        "DB_HOST": "mysql.internal",
        "DB_PORT": "3307",
        "DB_NAME": "site",
    })
    assert settings.database_url == "mysql+pymysql://u:p@mysql.internal:3307/site"
    assert settings.db_port == 3307


def test_explicit_database_url_wins() -> None:
    settings = Settings.from_env({"DATABASE_URL": "sqlite:///craft.db", "DB_HOST": "ignored"})
    assert settings.database_url == "sqlite:///craft.db"


def test_values_read_from_environment() -> None:
    settings = Settings.from_env({
        "GITHUB_REPOSITORY": "octo/site",
        "CRAFT_ENVIRONMENT": "staging",
        "CRAFT_SECURITY_KEY": "key",
        "CRAFT_VERSION": "5.7.10",
        "CRAFT_PLUGINS": "verbb/formie=2.1.5",
        "PHP_VERSION": "8.2.10",
        "BACKUP_STRATEGY": "container",
        "AUDIT_LOG_PATH": "/var/log/craftops/audit.jsonl",
        "IDEMPOTENCY_WINDOW_SECONDS": "60",
    })
    assert settings.github_repository == "octo/site"
    assert settings.craft_environment == "staging"
    assert settings.security_key == "key"
    assert settings.craft_version == "5.7.10"
    assert settings.craft_plugins == {"verbb/formie": "2.1.5"}
    assert settings.php_version == "8.2.10"
    assert settings.backup_strategy == "container"
    assert settings.audit_log_path == "/var/log/craftops/audit.jsonl"
    assert settings.idempotency_window_seconds == 60


def test_empty_values_treated_as_unset() -> None:
    settings = Settings.from_env({"CRAFT_SECURITY_KEY": "", "CRAFT_ENVIRONMENT": ""})
    assert settings.security_key is None
    assert settings.craft_environment == "production"


def test_parse_plugin_versions() -> None:
    raw = " verbb/formie=2.1.5, nystudio107/craft-seomatic = 5.1.0 ,broken, =1.0"
    assert parse_plugin_versions(raw) == {
        "verbb/formie": "2.1.5",
        "nystudio107/craft-seomatic": "5.1.0",
    }


def test_parse_plugin_versions_empty() -> None:
    assert parse_plugin_versions("") == {}


def test_database_url_escapes_credentials() -> None:
    settings = Settings.from_env({"DB_USER": "craft@site", "DB_PASS": "p@ss/w:rd"})
    url = make_url(settings.database_url)
    assert url.host == "db"
    assert url.port == 3306
    assert url.username == "craft@site"
    assert url.password == "p@ss/w:rd"
    assert url.database == "craft"
