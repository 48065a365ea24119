# settings.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "dashboard.yaml"
BACKENDS = ("db", "yaml")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# env variable -> settings field
ENV_OVERRIDES: dict[str, str] = {
    "DASHBOARD_BACKEND": "backend",
    "DASHBOARD_DB_HOST": "db_host",
    "DASHBOARD_DB_PORT": "db_port",
    "DASHBOARD_DB_NAME": "db_name",
    "DASHBOARD_DB_USER": "db_user",
    "DASHBOARD_DB_PASSWORD": "db_password",
    "DASHBOARD_DATA_DIR": "data_dir",
    "DASHBOARD_STORAGE_DIR": "storage_dir",
    "DASHBOARD_SECRET": "secret",
    "DASHBOARD_LOG_LEVEL": "log_level",
    "DASHBOARD_PAGE_SIZE": "page_size",
}


@dataclass
class Settings:
    backend: str = "yaml"  # 'db' | 'yaml'
    db_host: str = "127.0.0.1"
    db_port: int = 5432
    db_name: str = "studio"
    db_user: str = "postgres"
    db_password: str = ""
    auto_migrate: bool = True
    data_dir: str = "data"
    storage_dir: str = "storage"
    secret: str = "change-me"
    log_level: str = "INFO"
    page_size: int = 7
    host: str = "127.0.0.1"
    port: int = 8000
    require_login: bool = True

    def db_config(self) -> dict[str, Any]:
        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
            "auto_migrate": self.auto_migrate,
        }


def _coerce(name: str, raw: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Setting '{name}' must be a boolean, got {raw!r}")
    if isinstance(default, int):
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Setting '{name}' must be an integer, got {raw!r}") from None
    return str(raw)


def _validate(s: Settings) -> Settings:
    if s.backend not in BACKENDS:
        raise ValueError(f"Setting 'backend' must be one of {', '.join(BACKENDS)}")
    s.log_level = s.log_level.upper()
    if s.log_level not in LOG_LEVELS:
        raise ValueError(f"Setting 'log_level' must be one of {', '.join(LOG_LEVELS)}")
    if s.page_size <= 0:
        raise ValueError("Setting 'page_size' must be a positive integer")
    if not (0 < s.db_port < 65536) or not (0 < s.port < 65536):
        raise ValueError("Ports must be between 1 and 65535")
    if not s.secret:
        raise ValueError("Setting 'secret' must not be empty")
    return s


def load_settings(path: Optional[str] = None,
                  env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Defaults <- YAML file <- environment. The file path comes from the
    argument, DASHBOARD_CONFIG or dashboard.yaml; a missing file means defaults.
    """
    env = os.environ if env is None else env
    path = path or env.get("DASHBOARD_CONFIG") or DEFAULT_CONFIG_PATH
    defaults = Settings()
    known = {f.name: getattr(defaults, f.name) for f in fields(Settings)}

    values: dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping")
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown settings in {path}: {', '.join(unknown)}")
        values.update(data)
        logger.debug("settings loaded from %s", path)

    for var, name in ENV_OVERRIDES.items():
        if var in env:
            values[name] = env[var]

    coerced = {k: _coerce(k, v, known[k]) for k, v in values.items()}
    return _validate(Settings(**coerced))
