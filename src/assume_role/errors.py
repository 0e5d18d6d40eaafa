"""Error types raised while acquiring role credentials."""

from __future__ import annotations

from collections.abc import Iterable


class AssumeRoleBaseError(Exception):
    """Root of every error raised by this package."""


class ValidationError(AssumeRoleBaseError):
    """Invalid role identifier or missing required input."""


class ProviderError(AssumeRoleBaseError):
    """Raised when an STS or IAM call fails."""

    def __init__(self, message: str, code: str = "Unknown") -> None:
        super().__init__(message)
        self.code = code


class AccessDeniedError(ProviderError):
    """The provider rejected the call; retrying with MFA may succeed."""

    def __init__(self, message: str, code: str = "AccessDenied") -> None:
        super().__init__(message, code)


class StoreIOError(AssumeRoleBaseError):
    """Reading or writing the shared config/credentials files failed."""


class InputError(AssumeRoleBaseError):
    """Interactive input could not be read."""


class AssumeRoleError(AssumeRoleBaseError):
    """Terminal failure carrying every cause collected along the way, in order."""

    def __init__(self, causes: Iterable[BaseException]) -> None:
        self.causes: list[BaseException] = list(causes)
        super().__init__("; ".join(str(cause) for cause in self.causes))

    def __str__(self) -> str:
        if len(self.causes) == 1:
            return str(self.causes[0])
        lines = [f"{len(self.causes)} errors occurred:"]
        lines.extend(f"\t* {cause}" for cause in self.causes)
        return "\n".join(lines)


class PhaseError(AssumeRoleBaseError):
    """Wraps the failure of one authentication phase with a readable prefix."""

    def __init__(self, phase: str, cause: BaseException, suffix: str = "") -> None:
        self.phase = phase
        self.cause = cause
        message = f"error trying to AssumeRole {phase}: {cause}"
        if suffix:
            message = f"{message}; {suffix}"
        super().__init__(message)
