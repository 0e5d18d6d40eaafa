"""STS/IAM provider used to assume roles.

Two implementations of :class:`AWSProvider` live here: the botocore-backed
provider that talks to AWS, and :class:`InMemoryAWSProvider`, a scripted
double for tests and dry runs.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, Union

import botocore.session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from assume_role.errors import AccessDeniedError, ProviderError
from assume_role.utils.time import ensure_utc

logger = logging.getLogger(__name__)

ACCESS_DENIED_CODE = "AccessDenied"


@dataclass(frozen=True)
class TemporaryCredentials:
    """Immutable temporary AWS credentials from STS."""

    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    expiration: datetime | None = None

    def __repr__(self) -> str:
        expiration = self.expiration.isoformat() if self.expiration else None
        return (
            f"TemporaryCredentials(access_key_id={self.access_key_id[:8]}***, "
            f"expiration={expiration})"
        )

    @property
    def is_empty(self) -> bool:
        return not (self.access_key_id and self.secret_access_key)

    def to_env(self) -> dict[str, str]:
        return {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
            "AWS_SESSION_TOKEN": self.session_token,
        }


class AWSProvider(Protocol):
    """Capabilities needed from AWS to assume a role."""

    def assume_role(self, role_arn: str, session_name: str) -> TemporaryCredentials: ...

    def assume_role_with_mfa(
        self,
        role_arn: str,
        session_name: str,
        mfa_serial: str,
        token_code: str,
    ) -> TemporaryCredentials: ...

    def mfa_devices(self) -> list[str]: ...

    def username(self) -> str: ...

    def current_principal_arn(self) -> str: ...


def translate_client_error(exc: ClientError, operation: str) -> ProviderError:
    """Map a botocore ClientError onto the package error taxonomy."""
    error_code = exc.response.get("Error", {}).get("Code", "Unknown")
    error_message = exc.response.get("Error", {}).get("Message", str(exc))
    message = f"{error_code}: {error_message}"
    if error_code == ACCESS_DENIED_CODE:
        return AccessDeniedError(message, code=error_code)
    logger.debug("%s failed: %s", operation, message)
    return ProviderError(message, code=error_code)


class BotocoreAWSProvider:
    """AWSProvider backed by botocore STS and IAM clients."""

    def __init__(
        self,
        region: str | None = None,
        profile: str | None = None,
        duration_seconds: int = 3600,
    ) -> None:
        self._region = region
        self._profile = profile
        self._duration_seconds = duration_seconds
        self._session: Any = None
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _get_client(self, service: str) -> Any:
        client = self._clients.get(service)
        if client is not None:
            return client

        with self._lock:
            client = self._clients.get(service)
            if client is not None:
                return client

            if self._session is None:
                self._session = botocore.session.Session(profile=self._profile)
            client = self._session.create_client(
                service,
                region_name=self._region,
                config=Config(
                    connect_timeout=5,
                    read_timeout=15,
                    retries={"max_attempts": 2},
                ),
            )
            self._clients[service] = client
            logger.info("%s client initialized (region=%s)", service.upper(), self._region)
            return client

    def _call(self, service: str, operation: str, **params: Any) -> dict[str, Any]:
        try:
            client = self._get_client(service)
            return getattr(client, operation)(**params)
        except ClientError as exc:
            raise translate_client_error(exc, operation) from exc
        except BotoCoreError as exc:
            raise ProviderError(str(exc), code=type(exc).__name__) from exc

    def assume_role(self, role_arn: str, session_name: str) -> TemporaryCredentials:
        return self.assume_role_with_mfa(role_arn, session_name, "", "")

    def assume_role_with_mfa(
        self,
        role_arn: str,
        session_name: str,
        mfa_serial: str,
        token_code: str,
    ) -> TemporaryCredentials:
        params: dict[str, Any] = {
            "RoleArn": role_arn,
            "RoleSessionName": session_name,
            "DurationSeconds": self._duration_seconds,
        }
        if mfa_serial:
            params["SerialNumber"] = mfa_serial
        if token_code:
            params["TokenCode"] = token_code

        response = self._call("sts", "assume_role", **params)
        creds = response["Credentials"]

        logger.info(
            "Assumed role: %s, session=%s, mfa=%s", role_arn, session_name, bool(mfa_serial)
        )

        return TemporaryCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds["SessionToken"],
            expiration=ensure_utc(creds["Expiration"]),
        )

    def mfa_devices(self) -> list[str]:
        username = self.username()
        response = self._call("iam", "list_mfa_devices", UserName=username)
        return [device["SerialNumber"] for device in response.get("MFADevices", [])]

    def username(self) -> str:
        response = self._call("iam", "get_user")
        return response["User"]["UserName"]

    def current_principal_arn(self) -> str:
        response = self._call("sts", "get_caller_identity")
        return response["Arn"]


ScriptedResult = Union[TemporaryCredentials, Exception]


class InMemoryAWSProvider:
    """Scripted AWSProvider.

    Each assume call consumes the next scripted result: credentials are
    returned, exceptions are raised. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        *,
        username: str = "",
        principal_arn: str = "",
        mfa_devices: Iterable[str] = (),
        assume_role_results: Iterable[ScriptedResult] = (),
        assume_role_with_mfa_results: Iterable[ScriptedResult] = (),
    ) -> None:
        self._username = username
        self.principal_arn = principal_arn
        self.devices = list(mfa_devices)
        self._assume_role_results: deque[ScriptedResult] = deque(assume_role_results)
        self._assume_role_with_mfa_results: deque[ScriptedResult] = deque(
            assume_role_with_mfa_results
        )
        self.calls: list[tuple[Any, ...]] = []

    def _next(self, results: deque[ScriptedResult], operation: str) -> TemporaryCredentials:
        if not results:
            raise ProviderError(f"no scripted result left for {operation}", code="Unscripted")
        result = results.popleft()
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, operation: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]

    def assume_role(self, role_arn: str, session_name: str) -> TemporaryCredentials:
        self.calls.append(("assume_role", role_arn, session_name))
        return self._next(self._assume_role_results, "assume_role")

    def assume_role_with_mfa(
        self,
        role_arn: str,
        session_name: str,
        mfa_serial: str,
        token_code: str,
    ) -> TemporaryCredentials:
        self.calls.append(("assume_role_with_mfa", role_arn, session_name, mfa_serial, token_code))
        return self._next(self._assume_role_with_mfa_results, "assume_role_with_mfa")

    def mfa_devices(self) -> list[str]:
        self.calls.append(("mfa_devices",))
        return list(self.devices)

    def username(self) -> str:
        self.calls.append(("username",))
        if not self._username:
            raise ProviderError("no username configured", code="NoSuchEntity")
        return self._username

    def current_principal_arn(self) -> str:
        self.calls.append(("current_principal_arn",))
        return self.principal_arn
