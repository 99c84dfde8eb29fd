"""
aws-mfa-session: Store MFA-backed temporary AWS credentials in a profile.

A Python CLI utility that looks up the IAM user behind a long-term AWS
profile, derives its virtual MFA device serial, exchanges an MFA code for
short-lived STS session credentials and merges them into a named profile of
the shared credentials file.

Key features:
- MFA serial derived from sts:GetCallerIdentity, no configuration needed
- Only the session keys of the output profile are rewritten
- Atomic credentials file updates with 0600 permissions
- aws_security_token written alongside aws_session_token for boto2 tools
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .core import (
    DEFAULT_DURATION_SECONDS,
    Identity,
    SessionClient,
    SessionCredentials,
    derive_mfa_serial,
    get_aws_credentials_path,
    run,
    update_profile_credentials,
)
from .credentials import CredentialStore, load, save, upsert_section
from .exceptions import (
    IdentityLookupError,
    MalformedIdentityError,
    MfaSessionError,
    PersistenceError,
    SessionExchangeError,
)

__all__ = [
    # Python API - Most commonly used for programmatic access
    "run",
    "SessionClient",
    "get_aws_credentials_path",
    "DEFAULT_DURATION_SECONDS",
    # Data types
    "Identity",
    "SessionCredentials",
    "derive_mfa_serial",
    # Credentials file
    "CredentialStore",
    "load",
    "save",
    "upsert_section",
    "update_profile_credentials",
    # Errors
    "MfaSessionError",
    "IdentityLookupError",
    "MalformedIdentityError",
    "SessionExchangeError",
    "PersistenceError",
]
