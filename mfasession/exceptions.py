"""
Exceptions raised by mfasession.

Every failure of a run surfaces as one of the MfaSessionError subclasses below.
None of them are retried; the CLI reports the message and exits non-zero.
"""


class MfaSessionError(Exception):
    """Base class for all mfasession failures."""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class IdentityLookupError(MfaSessionError):
    """sts:GetCallerIdentity failed or returned an unusable response."""


class MalformedIdentityError(MfaSessionError):
    """The caller identity is not an IAM user, so no MFA serial can be derived."""


class SessionExchangeError(MfaSessionError):
    """sts:GetSessionToken rejected the MFA code, duration or profile."""


class PersistenceError(MfaSessionError):
    """The credentials file could not be written."""
