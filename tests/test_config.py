from __future__ import annotations

from pathlib import Path

import allure
import pytest

from gather_pilot.config import Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings"),
]


def test_defaults_from_clean_environment(clean_env) -> None:
    settings = Settings.from_env()
    settings.validate()

    assert settings.gathering.retry_limit == 3
    assert settings.gathering.soft_no_delta_timeout_seconds == 30
    assert settings.gathering.hard_no_delta_timeout_seconds == 60
    assert settings.gathering.stall_timeout_seconds == 300
    assert settings.gathering.finish_node_timeout_seconds == 30
    assert settings.gathering.include_auxiliary_storage is True
    assert settings.escalation.reenable_cooldown_seconds == 10
    assert settings.escalation.max_reenable_failures == 3
    assert settings.escalation.max_reset_cycles == 3
    assert settings.escalation.command_reissue_interval_seconds == 30
    assert settings.dependency.monitor_enabled is True
    assert settings.dependency.wait_timeout_seconds == 120
    assert settings.history.db_path == Path(".gather_pilot.db")


def test_environment_overrides(clean_env) -> None:
    clean_env.setenv("GATHER_PILOT_RETRY_LIMIT", "5")
    clean_env.setenv("GATHER_PILOT_INCLUDE_AUXILIARY_STORAGE", "off")
    clean_env.setenv("GATHER_PILOT_MONITOR_DEPENDENCIES", "no")
    clean_env.setenv("GATHER_PILOT_DB_PATH", "/tmp/history.db")

    settings = Settings.from_env()

    assert settings.gathering.retry_limit == 5
    assert settings.gathering.include_auxiliary_storage is False
    assert settings.dependency.monitor_enabled is False
    assert settings.history.db_path == Path("/tmp/history.db")


def test_explicit_db_path_wins_over_environment(clean_env, tmp_path: Path) -> None:
    clean_env.setenv("GATHER_PILOT_DB_PATH", "/tmp/ignored.db")

    settings = Settings.from_env(db_path=tmp_path / "runs.db")

    assert settings.history.db_path == tmp_path / "runs.db"


def test_invalid_boolean_is_rejected(clean_env) -> None:
    clean_env.setenv("GATHER_PILOT_OPTIMIZE_ROUTE", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value for GATHER_PILOT_OPTIMIZE_ROUTE"):
        Settings.from_env()


def test_hard_timeout_must_exceed_soft_timeout(clean_env) -> None:
    clean_env.setenv("GATHER_PILOT_SOFT_NO_DELTA_TIMEOUT_SECONDS", "60")
    clean_env.setenv("GATHER_PILOT_HARD_NO_DELTA_TIMEOUT_SECONDS", "60")
    settings = Settings.from_env()

    with pytest.raises(ValueError, match="GATHER_PILOT_HARD_NO_DELTA_TIMEOUT_SECONDS must be greater"):
        settings.validate()


def test_node_level_step_must_be_positive(clean_env) -> None:
    clean_env.setenv("GATHER_PILOT_NODE_LEVEL_STEP", "0")
    settings = Settings.from_env()

    with pytest.raises(ValueError, match="GATHER_PILOT_NODE_LEVEL_STEP"):
        settings.validate()


def test_negative_retry_limit_is_rejected(clean_env) -> None:
    clean_env.setenv("GATHER_PILOT_RETRY_LIMIT", "-1")
    settings = Settings.from_env()

    with pytest.raises(ValueError, match="GATHER_PILOT_RETRY_LIMIT must be >= 0"):
        settings.validate()
