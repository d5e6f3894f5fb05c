"""Tests for the config loader."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from src.core.config.loader import (
    _substitute_env_vars,
    deep_merge,
    get_config,
    get_scheduler_config,
    reload_config,
)


@pytest.fixture(autouse=True)
def _clear_config_cache() -> None:
    """Clear lru_cache before and after each test."""
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture()
def tmp_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory with example files."""
    (tmp_path / "workers.example.yaml").write_text(
        "workers:\n"
        "  crawl_scheduler_worker:\n"
        "    poll_interval_seconds: 60\n"
        "    timezone_refresh_seconds: 300\n"
        "    log_level: INFO\n"
    )
    (tmp_path / "scheduler.example.yaml").write_text(
        "scheduler:\n"
        "  default_timezone: America/Chicago\n"
        "  estimated_durations:\n"
        "    keyword_ranks: 120\n"
        "    competitors: 180\n"
    )
    return tmp_path


def test_workers_config_loaded(tmp_config_dir: Path) -> None:
    """get_config should include 'workers' key when workers.example.yaml exists."""
    config = get_config(config_dir=str(tmp_config_dir))

    worker_cfg = config["workers"]["crawl_scheduler_worker"]
    assert worker_cfg["poll_interval_seconds"] == 60
    assert worker_cfg["timezone_refresh_seconds"] == 300
    assert worker_cfg["log_level"] == "INFO"


def test_workers_yaml_overrides_example(tmp_config_dir: Path) -> None:
    """workers.yaml should deep-merge over workers.example.yaml."""
    (tmp_config_dir / "workers.yaml").write_text(
        "workers:\n"
        "  crawl_scheduler_worker:\n"
        "    poll_interval_seconds: 30\n"
    )

    config = get_config(config_dir=str(tmp_config_dir))

    worker_cfg = config["workers"]["crawl_scheduler_worker"]
    assert worker_cfg["poll_interval_seconds"] == 30
    assert worker_cfg["timezone_refresh_seconds"] == 300
    assert worker_cfg["log_level"] == "INFO"


def test_scheduler_yaml_overrides_single_duration(tmp_config_dir: Path) -> None:
    """One duration can be overridden without restating the others."""
    (tmp_config_dir / "scheduler.yaml").write_text(
        "scheduler:\n"
        "  estimated_durations:\n"
        "    competitors: 600\n"
    )

    config = get_config(config_dir=str(tmp_config_dir))

    durations = config["scheduler"]["estimated_durations"]
    assert durations == {"keyword_ranks": 120, "competitors": 600}
    assert config["scheduler"]["default_timezone"] == "America/Chicago"


def test_missing_directory_gives_empty_config(tmp_path: Path) -> None:
    assert get_config(config_dir=str(tmp_path / "nope")) == {}


def test_repository_config_has_all_durations() -> None:
    """The shipped scheduler example covers every crawl type."""
    from src.core.models import CrawlType

    durations = get_config()["scheduler"]["estimated_durations"]
    assert set(durations) == {t.value for t in CrawlType}


class TestEnvSubstitution:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_variable_set(self) -> None:
        with patch.dict(os.environ, {"RANKING_API_LOGIN": "alice"}):
            assert _substitute_env_vars("${RANKING_API_LOGIN}") == "alice"

    def test_default_used_when_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert _substitute_env_vars("${POSTGRES_HOST:-localhost}") == "localhost"

    def test_embedded_in_string(self) -> None:
        with patch.dict(os.environ, {"POSTGRES_HOST": "db"}):
            assert _substitute_env_vars("${POSTGRES_HOST}:5432") == "db:5432"

    def test_nested_structures(self) -> None:
        with patch.dict(os.environ, {"A": "1"}, clear=True):
            result = _substitute_env_vars({"a": ["${A}", {"b": "${B:-2}"}], "c": 3})
        assert result == {"a": ["1", {"b": "2"}], "c": 3}


def test_deep_merge_does_not_mutate_base() -> None:
    base = {"a": {"b": 1, "c": 2}}
    merged = deep_merge(base, {"a": {"c": 3}})

    assert merged == {"a": {"b": 1, "c": 3}}
    assert base == {"a": {"b": 1, "c": 2}}


def test_reload_config_rereads_files() -> None:
    first = get_config()
    reloaded = reload_config()

    assert reloaded == first
    assert reloaded is not first
    assert get_scheduler_config()["default_timezone"] == "America/Chicago"
