"""Credential acquisition: cache check, AssumeRole, MFA fallback, persistence."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TextIO

from assume_role.aws_credentials.store import (
    CredentialStore,
    ProfileConfiguration,
    SharedFileCredentialStore,
)
from assume_role.aws_credentials.sts_provider import (
    AWSProvider,
    BotocoreAWSProvider,
    TemporaryCredentials,
)
from assume_role.config import AssumeRoleSettings, Settings
from assume_role.errors import (
    AccessDeniedError,
    AssumeRoleError,
    InputError,
    PhaseError,
    ProviderError,
    ValidationError,
)
from assume_role.mfa_prompt import MFAPrompt
from assume_role.roles import RoleResolver, is_assumed_role_arn
from assume_role.utils.time import Clock, SystemClock

logger = logging.getLogger(__name__)

WITHOUT_MFA = "without MFA"
WITH_MFA = "with MFA"

ERR_ASSUMED_ROLE_NEEDS_SESSION_NAME = (
    "Validation error: missing role session name when current IAM principal is an assumed role"
)


@dataclass(frozen=True)
class AssumeRoleParameters:
    """Parameters for one AssumeRole request."""

    # Role name (combined with the configured prefix) or full role ARN.
    role: str
    # Overrides the session name stored on the profile and the IAM username.
    role_session_name: str = ""
    # Ignore cached credentials even if they are still fresh.
    force_refresh: bool = False


class AssumeRoleApp:
    """Obtains temporary credentials for a role, reusing cached ones when fresh."""

    def __init__(
        self,
        aws: AWSProvider,
        store: CredentialStore,
        settings: AssumeRoleSettings | None = None,
        clock: Clock | None = None,
        prompt: MFAPrompt | None = None,
    ) -> None:
        self._aws = aws
        self._store = store
        self._settings = settings or AssumeRoleSettings()
        self._clock = clock or SystemClock()
        self._prompt = prompt or MFAPrompt(sys.stdin, sys.stderr)
        self._resolver = RoleResolver(
            role_prefix=self._settings.role_prefix,
            profile_name_prefix=self._settings.profile_name_prefix,
        )

    def credentials_expired(self, expiration: datetime | None) -> bool:
        """True once ``now`` reaches ``expiration - refresh_before_expiry``."""
        if expiration is None:
            return True
        return self._clock.now() >= expiration - self._settings.refresh_before_expiry

    def current_principal_is_assumed_role(self) -> bool:
        try:
            principal_arn = self._aws.current_principal_arn()
        except ProviderError as exc:
            raise ProviderError(
                f"unable to check IAM principal type: {exc}", code=exc.code
            ) from exc
        return is_assumed_role_arn(principal_arn)

    def assume_role(self, params: AssumeRoleParameters | str) -> TemporaryCredentials:
        """Return credentials for ``params.role``.

        Raises:
            ValidationError: Invalid role, or no usable session name.
            ProviderError: AWS failed with something other than access denied.
            StoreIOError: The config or credentials file could not be used.
            AssumeRoleError: Both the plain and the MFA attempt failed.
        """
        if isinstance(params, str):
            params = AssumeRoleParameters(role=params)

        role_arn, profile_name = self._resolver.resolve(params.role)
        profile = self._store.get_profile(profile_name)

        if not params.force_refresh and not self.credentials_expired(profile.expiration):
            cached = self._store.get_credentials(profile_name)
            if not cached.is_empty:
                logger.info("Using cached credentials for profile %s", profile_name)
                return cached
            logger.warning(
                "Profile %s has a fresh expiration but no stored credentials; refreshing",
                profile_name,
            )

        is_assumed_role: bool | None = None
        session_name = params.role_session_name or profile.role_session_name
        if not session_name:
            is_assumed_role = self.current_principal_is_assumed_role()
            if is_assumed_role:
                raise ValidationError(ERR_ASSUMED_ROLE_NEEDS_SESSION_NAME)
            try:
                session_name = self._aws.username()
            except ProviderError as exc:
                raise ProviderError(
                    f"unable to get username from AWS: {exc}", code=exc.code
                ) from exc

        profile = replace(profile, role_arn=role_arn, role_session_name=session_name)

        causes: list[BaseException] = []

        try:
            creds = self._aws.assume_role(role_arn, session_name)
        except AccessDeniedError as exc:
            logger.info("AssumeRole %s denied without MFA, trying MFA", role_arn)
            causes.append(PhaseError(WITHOUT_MFA, exc))
        else:
            self._save(profile_name, profile, creds)
            return creds

        if is_assumed_role is None:
            try:
                is_assumed_role = self.current_principal_is_assumed_role()
            except ProviderError as exc:
                causes.append(PhaseError(WITH_MFA, exc))
                raise AssumeRoleError(causes) from exc
        if is_assumed_role:
            # Assumed roles have neither a username nor MFA devices.
            raise AssumeRoleError(causes)

        try:
            mfa_serial = self._mfa_device()
            token = self._prompt.read_token()
        except (ProviderError, InputError) as exc:
            causes.append(PhaseError(WITH_MFA, exc))
            raise AssumeRoleError(causes) from exc

        profile = replace(profile, mfa_serial=mfa_serial)

        try:
            creds = self._aws.assume_role_with_mfa(role_arn, session_name, mfa_serial, token)
        except ProviderError as exc:
            causes.append(PhaseError(WITH_MFA, exc, "giving up"))
            raise AssumeRoleError(causes) from exc

        self._save(profile_name, profile, creds)
        return creds

    def _mfa_device(self) -> str:
        devices = self._aws.mfa_devices()
        if not devices:
            raise ProviderError("no MFA devices found", code="NoMFADevices")
        if len(devices) == 1:
            return devices[0]
        return self._prompt.select_device(devices)

    def _save(
        self,
        profile_name: str,
        profile: ProfileConfiguration,
        creds: TemporaryCredentials,
    ) -> None:
        # Profile first: it is authoritative for expiry.
        profile = replace(profile, expiration=creds.expiration)
        self._store.set_profile(profile_name, profile)
        self._store.set_credentials(profile_name, creds)
        logger.info("Saved credentials for profile %s (expires %s)", profile_name, creds.expiration)


def build_app(settings: Settings, stdin: TextIO, stderr: TextIO) -> AssumeRoleApp:
    """Wire the botocore provider and the shared-file store from settings."""
    aws = BotocoreAWSProvider(
        region=settings.aws.region,
        profile=settings.aws.profile,
        duration_seconds=settings.aws.duration_seconds,
    )
    store = SharedFileCredentialStore(
        config_path=settings.aws.config_file,
        credentials_path=settings.aws.credentials_file,
    )
    return AssumeRoleApp(
        aws=aws,
        store=store,
        settings=settings.assume_role,
        prompt=MFAPrompt(stdin, stderr),
    )
