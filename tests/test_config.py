from datetime import time

import pytest

from classplan import config


def test_defaults(monkeypatch):
    for name in (
        "CLASSPLAN_SAFETY_HORIZON_DAYS",
        "CLASSPLAN_DEFAULT_DURATION",
        "CLASSPLAN_DAY_START",
        "CLASSPLAN_DAY_END",
        "CLASSPLAN_ROOM_MATCH",
        "CLASSPLAN_PRIVILEGED_ROLES",
        "CLASSPLAN_DB_PATH",
        "CLASSPLAN_STORAGE",
    ):
        monkeypatch.delenv(name, raising=False)

    assert config.safety_horizon_days() == 500
    assert config.default_duration_minutes() == 90
    assert config.operating_window() == (time(7, 0), time(21, 0))
    assert config.room_match_mode() == config.ROOM_MATCH_EXACT
    assert config.privileged_roles() == frozenset({"admin", "manager"})
    assert config.db_path() == "classplan.db"
    assert config.storage_backend() == config.STORAGE_SQLITE


@pytest.mark.parametrize(
    "name, value, getter",
    [
        ("CLASSPLAN_SAFETY_HORIZON_DAYS", "lots", config.safety_horizon_days),
        ("CLASSPLAN_SAFETY_HORIZON_DAYS", "0", config.safety_horizon_days),
        ("CLASSPLAN_DEFAULT_DURATION", "-5", config.default_duration_minutes),
        ("CLASSPLAN_DAY_START", "morning", config.operating_window),
        ("CLASSPLAN_DAY_END", "06:00", config.operating_window),
        ("CLASSPLAN_ROOM_MATCH", "fuzzy", config.room_match_mode),
        ("CLASSPLAN_STORAGE", "postgres", config.storage_backend),
    ],
)
def test_malformed_env_raises(monkeypatch, name, value, getter):
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError) as excinfo:
        getter()

    assert name in str(excinfo.value)


def test_privileged_roles_from_env(monkeypatch):
    monkeypatch.setenv("CLASSPLAN_PRIVILEGED_ROLES", "Director, ops ,")

    assert config.is_privileged_role("director")
    assert config.is_privileged_role(" OPS ")
    assert not config.is_privileged_role("admin")
    assert not config.is_privileged_role(None)


def test_duration_default_applies_to_new_schedules(monkeypatch):
    from classplan.models import ClassSchedule

    monkeypatch.setenv("CLASSPLAN_DEFAULT_DURATION", "60")

    assert ClassSchedule(id="A").duration_minutes == 60
