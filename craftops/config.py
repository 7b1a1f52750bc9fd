"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict
from sqlalchemy.engine import URL

DEFAULT_REPOSITORY = "timsteegmueller/craft-test-repo"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    github_repository: str = DEFAULT_REPOSITORY
    database_url: str = "mysql+pymysql://craft:craft@db:3306/craft"
    db_table_prefix: str = ""
    craft_environment: str = "production"
    storage_path: str = "storage"
    security_key: str | None = None
    craft_version: str | None = None
    craft_plugins: dict[str, str] = {}
    php_version: str | None = None
    backup_dir: str = "backups/db"
    backup_strategy: str = "mysqldump"
    backup_service: str = "web"
    db_user: str = "craft"
    db_password: str = "craft"
    db_host: str = "db"
    db_port: int = 3306
    db_name: str = "craft"
    audit_log_path: str | None = None
    audit_log_max_bytes: int = 10_485_760
    audit_log_backup_count: int = 5
    idempotency_window_seconds: int = 600

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Build settings from the process environment (or a given mapping)."""
        env = os.environ if env is None else env
        db_user = env.get("DB_USER", "craft")
        db_password = env.get("DB_PASS", "craft")
        db_host = env.get("DB_HOST", "db")
        db_port = int(env.get("DB_PORT", "3306"))
        db_name = env.get("DB_NAME", "craft")
        database_url = env.get("DATABASE_URL") or URL.create(
            drivername=env.get("DB_DRIVER", "mysql+pymysql"),
            username=db_user,
            password=db_password,
            host=db_host,
            port=db_port,
            database=db_name,
        ).render_as_string(hide_password=False)
        return cls(
            github_repository=env.get("GITHUB_REPOSITORY", DEFAULT_REPOSITORY),
            database_url=database_url,
            db_table_prefix=env.get("CRAFT_DB_TABLE_PREFIX", ""),
            craft_environment=env.get("CRAFT_ENVIRONMENT") or "production",
            storage_path=env.get("CRAFT_STORAGE_PATH", "storage"),
            security_key=env.get("CRAFT_SECURITY_KEY") or None,
            craft_version=env.get("CRAFT_VERSION") or None,
            craft_plugins=parse_plugin_versions(env.get("CRAFT_PLUGINS", "")),
            php_version=env.get("PHP_VERSION") or None,
            backup_dir=env.get("BACKUP_DIR", "backups/db"),
            backup_strategy=env.get("BACKUP_STRATEGY", "mysqldump"),
            backup_service=env.get("BACKUP_SERVICE", "web"),
            db_user=db_user,
            db_password=db_password,
            db_host=db_host,
            db_port=db_port,
            db_name=db_name,
            audit_log_path=env.get("AUDIT_LOG_PATH") or None,
            audit_log_max_bytes=int(env.get("AUDIT_LOG_MAX_BYTES", "10485760")),
            audit_log_backup_count=int(env.get("AUDIT_LOG_BACKUP_COUNT", "5")),
            idempotency_window_seconds=int(env.get("IDEMPOTENCY_WINDOW_SECONDS", "600")),
        )


def parse_plugin_versions(raw: str) -> dict[str, str]:
    """Parse ``vendor/plugin=1.2.3,other/plugin=4.5.6`` into a mapping."""
    plugins: dict[str, str] = {}
    for item in raw.split(","):
        name, sep, version = item.strip().partition("=")
        if sep and name.strip() and version.strip():
            plugins[name.strip()] = version.strip()
    return plugins
