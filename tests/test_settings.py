"""Settings: defaults, YAML file and environment overrides."""

from __future__ import annotations

import logging

import pytest

from logging_setup import LOG_FORMAT, configure_logging
from settings import Settings, load_settings


def test_defaults_when_file_missing(tmp_path):
    s = load_settings(str(tmp_path / "missing.yaml"), env={})
    assert s == Settings()
    assert s.page_size == 7


def test_file_then_env(tmp_path):
    path = tmp_path / "dashboard.yaml"
    path.write_text("backend: db\ndb_name: studio_prod\npage_size: 10\n", encoding="utf-8")
    s = load_settings(str(path), env={"DASHBOARD_DB_PORT": "6543", "DASHBOARD_PAGE_SIZE": "5"})
    assert s.backend == "db"
    assert s.db_name == "studio_prod"
    assert s.db_port == 6543
    assert s.page_size == 5
    assert s.db_config()["dbname"] == "studio_prod"


def test_config_path_from_env(tmp_path):
    path = tmp_path / "other.yaml"
    path.write_text("log_level: debug\n", encoding="utf-8")
    s = load_settings(env={"DASHBOARD_CONFIG": str(path)})
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize("env", [
    {"DASHBOARD_BACKEND": "json"},
    {"DASHBOARD_PAGE_SIZE": "0"},
    {"DASHBOARD_PAGE_SIZE": "many"},
    {"DASHBOARD_LOG_LEVEL": "LOUD"},
    {"DASHBOARD_SECRET": ""},
])
def test_invalid_values(tmp_path, env):
    with pytest.raises(ValueError):
        load_settings(str(tmp_path / "none.yaml"), env=env)


def test_unknown_key_in_file(tmp_path):
    path = tmp_path / "dashboard.yaml"
    path.write_text("colour: blue\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(str(path), env={})


def test_configure_logging_installs_one_handler():
    root = configure_logging("DEBUG")
    configure_logging("WARNING")
    ours = [h for h in root.handlers if getattr(h, "_dashboard", False)]
    assert len(ours) == 1
    assert ours[0].formatter._fmt == LOG_FORMAT
    assert root.level == logging.WARNING
    root.removeHandler(ours[0])
