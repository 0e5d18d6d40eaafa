"""Role ARN resolution and profile naming."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass

from assume_role.errors import ValidationError

logger = logging.getLogger(__name__)

# arn:<partition>:<service>:<region>:<account>:<resource>
_ARN_RE = re.compile(
    r"^arn:(?P<partition>[^:]+):(?P<service>[^:]+):(?P<region>[^:]*):"
    r"(?P<account_id>[^:]*):(?P<resource>.+)$"
)
_ASSUMED_ROLE_RE = re.compile(r"^arn:aws(?:-cn|-us-gov)?:sts::\d+:assumed-role/")


@dataclass(frozen=True)
class ParsedARN:
    partition: str
    service: str
    region: str
    account_id: str
    resource: str

    @property
    def basename(self) -> str:
        return posixpath.basename(self.resource)


def parse_arn(value: str) -> ParsedARN:
    match = _ARN_RE.match(value)
    if match is None:
        raise ValidationError(f"invalid ARN: {value}")
    return ParsedARN(**match.groupdict())


def is_valid_arn(value: str) -> bool:
    return _ARN_RE.match(value) is not None


def is_assumed_role_arn(value: str) -> bool:
    return _ASSUMED_ROLE_RE.match(value) is not None


def resolve_role_arn(role: str, role_prefix: str = "") -> str:
    """Return ``role`` if it is already an ARN, otherwise ``role_prefix + role``.

    Raises:
        ValidationError: If neither form is a valid ARN.
    """
    if is_valid_arn(role):
        return role

    combined = f"{role_prefix}{role}"
    if is_valid_arn(combined):
        return combined

    raise ValidationError(f"invalid role ARN: {combined}")


def profile_name(role_arn: str, profile_name_prefix: str = "") -> str:
    """Build ``<prefix-or-account-id>-<role basename>`` for a role ARN."""
    parsed = parse_arn(role_arn)
    prefix = profile_name_prefix or parsed.account_id
    return f"{prefix}-{parsed.basename}"


@dataclass(frozen=True)
class RoleResolver:
    """Combines a user-supplied role with the configured prefixes."""

    role_prefix: str = ""
    profile_name_prefix: str = ""

    def resolve(self, role: str) -> tuple[str, str]:
        role_arn = resolve_role_arn(role, self.role_prefix)
        name = profile_name(role_arn, self.profile_name_prefix)
        logger.debug("Resolved role %s to %s (profile %s)", role, role_arn, name)
        return role_arn, name
