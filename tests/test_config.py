from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pydantic
import pytest

from assume_role import config


def _write_yaml(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults() -> None:
    settings = config.build_settings()

    assert settings.assume_role.refresh_before_expiry == timedelta(minutes=15)
    assert settings.assume_role.role_prefix == ""
    assert settings.assume_role.profile_name_prefix == ""
    assert settings.aws.duration_seconds == 3600
    assert settings.logging.level == "WARNING"


def test_file_values_are_used() -> None:
    settings = config.build_settings(
        {
            "refresh_before_expiry": "5m",
            "role_prefix": "arn:aws:iam::123:role/",
            "profile_name_prefix": "foobar",
        }
    )

    assert settings.assume_role.refresh_before_expiry == timedelta(minutes=5)
    assert settings.assume_role.role_prefix == "arn:aws:iam::123:role/"
    assert settings.assume_role.profile_name_prefix == "foobar"


def test_environment_overrides_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ASSUME_ROLE_ROLE_PREFIX", "arn:aws:iam::999:role/")
    monkeypatch.setenv("ASSUME_ROLE_REFRESH_BEFORE_EXPIRY", "600")

    settings = config.build_settings({"role_prefix": "arn:aws:iam::123:role/"})

    assert settings.assume_role.role_prefix == "arn:aws:iam::999:role/"
    assert settings.assume_role.refresh_before_expiry == timedelta(minutes=10)


def test_zero_refresh_means_default() -> None:
    settings = config.build_settings({"refresh_before_expiry": 0})
    assert settings.assume_role.refresh_before_expiry == timedelta(minutes=15)


@pytest.mark.parametrize("value", ["soon", "-5m", -30, [1, 2], {"minutes": 5}, True])
def test_invalid_refresh_before_expiry(value: object) -> None:
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.build_settings({"refresh_before_expiry": value})


def test_duration_seconds_out_of_range(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ASSUME_ROLE_DURATION_SECONDS", "60")
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.build_settings()


def test_env_int_invalid_value_returns_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_INT_INVALID", "not_a_number")
    assert config._env_int("TEST_INT_INVALID", 42) == 42


def test_aws_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    monkeypatch.setenv("AWS_PROFILE", "dev")
    monkeypatch.setenv("AWS_CONFIG_FILE", "/tmp/aws-config")

    settings = config.build_settings()

    assert settings.aws.region == "eu-west-1"
    assert settings.aws.profile == "dev"
    assert settings.aws.config_file == "/tmp/aws-config"
    assert settings.aws.credentials_file is None


def test_settings_are_immutable() -> None:
    settings = config.build_settings()
    with pytest.raises(pydantic.ValidationError):
        settings.assume_role.role_prefix = "changed"  # type: ignore[misc]


def test_find_config_file_walks_up_from_cwd(tmp_path: Path) -> None:
    expected = _write_yaml(tmp_path / "project" / "assume-role.yaml", "role_prefix: x\n")
    nested = tmp_path / "project" / "a" / "b"
    nested.mkdir(parents=True)

    found = config.find_config_file(cwd=nested, home=tmp_path / "home", system_dir=tmp_path / "etc")

    assert found == expected.resolve()


def test_find_config_file_falls_back_to_home_then_system(tmp_path: Path) -> None:
    cwd = tmp_path / "work"
    cwd.mkdir()
    home = tmp_path / "home"
    system_dir = tmp_path / "etc"
    system_file = _write_yaml(system_dir / "assume-role.yaml", "{}\n")

    assert config.find_config_file(cwd=cwd, home=home, system_dir=system_dir) == system_file

    user_file = _write_yaml(home / ".aws" / "assume-role.yaml", "{}\n")
    assert config.find_config_file(cwd=cwd, home=home, system_dir=system_dir) == user_file


def test_find_config_file_returns_none(tmp_path: Path) -> None:
    cwd = tmp_path / "work"
    cwd.mkdir()
    assert (
        config.find_config_file(cwd=cwd, home=tmp_path / "home", system_dir=tmp_path / "etc")
        is None
    )


def test_load_config_file_rejects_non_mapping(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "assume-role.yaml", "- a\n- b\n")
    with pytest.raises(RuntimeError, match="must contain a mapping"):
        config.load_config_file(path)


def test_load_config_file_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        config.load_config_file(tmp_path / "missing.yaml")


def test_load_config_file_rejects_malformed_yaml(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "assume-role.yaml", "role_prefix: [unclosed\n")
    with pytest.raises(RuntimeError, match="Invalid configuration"):
        config.load_config_file(path)


def test_load_settings_uses_explicit_config(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    path = _write_yaml(
        tmp_path / "custom.yaml",
        "refresh_before_expiry: 1h30m\nrole_prefix: 'arn:aws:iam::123:role/'\n",
    )
    monkeypatch.setenv("ASSUME_ROLE_CONFIG", str(path))

    settings = config.load_settings()

    assert settings.assume_role.refresh_before_expiry == timedelta(hours=1, minutes=30)
    assert settings.assume_role.role_prefix == "arn:aws:iam::123:role/"
    assert settings.config_path == str(path)
    assert config.load_settings() is settings


def test_load_settings_without_config_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "find_config_file", lambda: None)

    settings = config.load_settings()

    assert settings.config_path is None
    assert settings.assume_role.refresh_before_expiry == timedelta(minutes=15)
