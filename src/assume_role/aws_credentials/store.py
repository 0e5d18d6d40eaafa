"""Profile and credential storage in the shared AWS config files.

The AWS config file (``~/.aws/config``) and credentials file
(``~/.aws/credentials``) are linked: access keys live in the credentials
file while metadata about them, including when they expire, lives in the
profile section of the config file. The config file is authoritative for
expiry.

Writes rewrite the whole file. There is no locking between processes, so
two concurrent writers to the same profile race and the last write wins.
"""

from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Protocol

from assume_role.aws_credentials.sts_provider import TemporaryCredentials
from assume_role.errors import StoreIOError
from assume_role.utils.time import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

# configparser otherwise merges a literal [DEFAULT] section into every profile.
_NO_DEFAULT_SECTION = "\x00assume-role-no-defaults"
_CREDENTIALS_FILE_MODE = 0o600


@dataclass(frozen=True)
class ProfileConfiguration:
    """Metadata for one assumed-role profile."""

    expiration: datetime | None = None
    mfa_serial: str = ""
    source_profile: str = ""
    role_arn: str = ""
    role_session_name: str = ""


class CredentialStore(Protocol):
    def get_profile(self, name: str) -> ProfileConfiguration: ...

    def set_profile(self, name: str, profile: ProfileConfiguration) -> None: ...

    def get_credentials(self, name: str) -> TemporaryCredentials: ...

    def set_credentials(self, name: str, credentials: TemporaryCredentials) -> None: ...


def profile_section_name(name: str) -> str:
    """Section for ``name`` in the config file, as the AWS CLI names it."""
    if name == "default":
        return name
    return f"profile {name}"


def default_config_path() -> Path:
    env_path = os.getenv("AWS_CONFIG_FILE")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".aws" / "config"


def default_credentials_path() -> Path:
    env_path = os.getenv("AWS_SHARED_CREDENTIALS_FILE")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".aws" / "credentials"


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section=_NO_DEFAULT_SECTION,
    )
    # Keep key case of sections this tool does not own.
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def _expiration_to_text(expiration: datetime | None) -> str:
    return format_timestamp(expiration) if expiration is not None else ""


class SharedFileCredentialStore:
    """CredentialStore over the INI files shared with the AWS CLI and SDKs."""

    def __init__(
        self,
        config_path: str | Path | None = None,
        credentials_path: str | Path | None = None,
    ) -> None:
        self.config_path = Path(config_path) if config_path else default_config_path()
        self.credentials_path = (
            Path(credentials_path) if credentials_path else default_credentials_path()
        )

    def _read(self, path: Path) -> configparser.ConfigParser:
        parser = _new_parser()
        if not path.exists():
            return parser
        try:
            with path.open("r", encoding="utf-8") as handle:
                parser.read_file(handle)
        except (OSError, configparser.Error) as exc:
            raise StoreIOError(f"unable to read {path}: {exc}") from exc
        return parser

    def _write(self, path: Path, parser: configparser.ConfigParser, mode: int | None = None) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                parser.write(handle)
            if mode is not None:
                path.chmod(mode)
        except OSError as exc:
            raise StoreIOError(f"unable to write {path}: {exc}") from exc
        logger.debug("Wrote %s", path)

    @staticmethod
    def _set_values(
        parser: configparser.ConfigParser, section: str, values: dict[str, str]
    ) -> None:
        if not parser.has_section(section):
            parser.add_section(section)
        for key, value in values.items():
            parser.set(section, key, value)

    def get_profile(self, name: str) -> ProfileConfiguration:
        parser = self._read(self.config_path)
        section = profile_section_name(name)
        if not parser.has_section(section):
            return ProfileConfiguration()

        values = parser[section]
        expiration: datetime | None = None
        raw_expiration = values.get("expiration", "").strip()
        if raw_expiration:
            try:
                expiration = parse_timestamp(raw_expiration)
            except ValueError:
                logger.warning(
                    "Ignoring unparseable expiration %r for profile %s", raw_expiration, name
                )

        return ProfileConfiguration(
            expiration=expiration,
            mfa_serial=values.get("mfa_serial", ""),
            source_profile=values.get("source_profile", ""),
            role_arn=values.get("role_arn", ""),
            role_session_name=values.get("role_session_name", ""),
        )

    def set_profile(self, name: str, profile: ProfileConfiguration) -> None:
        parser = self._read(self.config_path)
        self._set_values(
            parser,
            profile_section_name(name),
            {
                "expiration": _expiration_to_text(profile.expiration),
                "mfa_serial": profile.mfa_serial,
                "source_profile": profile.source_profile,
                "role_arn": profile.role_arn,
                "role_session_name": profile.role_session_name,
            },
        )
        self._write(self.config_path, parser)

    def get_credentials(self, name: str) -> TemporaryCredentials:
        parser = self._read(self.credentials_path)
        values = parser[name] if parser.has_section(name) else {}
        profile = self.get_profile(name)
        return TemporaryCredentials(
            access_key_id=values.get("aws_access_key_id", ""),
            secret_access_key=values.get("aws_secret_access_key", ""),
            session_token=values.get("aws_session_token", ""),
            expiration=profile.expiration,
        )

    def set_credentials(self, name: str, credentials: TemporaryCredentials) -> None:
        # Expiry is stamped on the profile first; a failure writing the
        # credentials file afterwards leaves the profile pointing at keys
        # that were never saved.
        config = self._read(self.config_path)
        self._set_values(
            config,
            profile_section_name(name),
            {"expiration": _expiration_to_text(credentials.expiration)},
        )
        self._write(self.config_path, config)

        parser = self._read(self.credentials_path)
        self._set_values(
            parser,
            name,
            {
                "aws_access_key_id": credentials.access_key_id,
                "aws_secret_access_key": credentials.secret_access_key,
                "aws_session_token": credentials.session_token,
            },
        )
        self._write(self.credentials_path, parser, mode=_CREDENTIALS_FILE_MODE)


class InMemoryCredentialStore:
    """CredentialStore kept in dictionaries, with the same pairing rules."""

    def __init__(self) -> None:
        self.profiles: dict[str, ProfileConfiguration] = {}
        self.credentials: dict[str, TemporaryCredentials] = {}
        self.writes: list[tuple[str, str]] = []

    def get_profile(self, name: str) -> ProfileConfiguration:
        return self.profiles.get(name, ProfileConfiguration())

    def set_profile(self, name: str, profile: ProfileConfiguration) -> None:
        self.profiles[name] = profile
        self.writes.append(("profile", name))

    def get_credentials(self, name: str) -> TemporaryCredentials:
        stored = self.credentials.get(name, TemporaryCredentials())
        return replace(stored, expiration=self.get_profile(name).expiration)

    def set_credentials(self, name: str, credentials: TemporaryCredentials) -> None:
        self.profiles[name] = replace(self.get_profile(name), expiration=credentials.expiration)
        self.credentials[name] = credentials
        self.writes.append(("credentials", name))
