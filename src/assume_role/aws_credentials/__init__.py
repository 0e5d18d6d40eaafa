"""AWS credential providers and the local credential store."""

from assume_role.aws_credentials.store import (
    CredentialStore,
    InMemoryCredentialStore,
    ProfileConfiguration,
    SharedFileCredentialStore,
)
from assume_role.aws_credentials.sts_provider import (
    AWSProvider,
    BotocoreAWSProvider,
    InMemoryAWSProvider,
    TemporaryCredentials,
)

__all__ = [
    "AWSProvider",
    "BotocoreAWSProvider",
    "CredentialStore",
    "InMemoryAWSProvider",
    "InMemoryCredentialStore",
    "ProfileConfiguration",
    "SharedFileCredentialStore",
    "TemporaryCredentials",
]
