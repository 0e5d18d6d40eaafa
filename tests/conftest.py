from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone

import pytest

from assume_role import config
from assume_role.aws_credentials.sts_provider import TemporaryCredentials

_ISOLATED_ENV = (
    "AWS_CONFIG_FILE",
    "AWS_SHARED_CREDENTIALS_FILE",
    "AWS_PROFILE",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "ASSUME_ROLE_CONFIG",
    "ASSUME_ROLE_REFRESH_BEFORE_EXPIRY",
    "ASSUME_ROLE_ROLE_PREFIX",
    "ASSUME_ROLE_PROFILE_NAME_PREFIX",
    "ASSUME_ROLE_DURATION_SECONDS",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    # Never let a developer's environment leak into a test.
    for key in _ISOLATED_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture
def now() -> datetime:
    return datetime(2018, 4, 23, 23, 45, 43, tzinfo=timezone.utc)


@pytest.fixture
def foo_credentials(now: datetime) -> TemporaryCredentials:
    return TemporaryCredentials(
        access_key_id="ABC123",
        secret_access_key="supersecret",
        session_token="123tok",
        expiration=now,
    )
