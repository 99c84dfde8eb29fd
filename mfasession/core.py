"""
Core STS session and credential management functions for mfasession.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from . import credentials as credential_store
from .exceptions import (
    IdentityLookupError,
    MalformedIdentityError,
    SessionExchangeError,
)

DEFAULT_DURATION_SECONDS = 36000
DEFAULT_REGION = "us-east-1"
USER_MARKER = ":user/"
MFA_MARKER = ":mfa/"

# Custom User-Agent suffix for AWS API calls
BOTO_CONFIG = Config(user_agent_extra="aws-mfa-session")

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    arn: str
    account: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class SessionCredentials:
    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime

    def profile_fields(self):
        """Return the keys written to the output profile."""
        return {
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "aws_session_token": self.session_token,
            # boto2 only reads aws_security_token
            "aws_security_token": self.session_token,
        }


def get_aws_credentials_path():
    """Get the AWS credentials file path, honouring AWS_SHARED_CREDENTIALS_FILE."""
    override = os.environ.get("AWS_SHARED_CREDENTIALS_FILE")
    if override:
        return os.path.expanduser(override)
    return os.path.expanduser("~/.aws/credentials")


def mask(value, visible=4):
    """Mask a credential value for log output."""
    if not value:
        return value
    return f"{value[:visible]}***"


def _error_message(error):
    """Pull the human-readable message out of a botocore exception."""
    if isinstance(error, ClientError):
        err = error.response.get("Error", {})
        code = err.get("Code")
        message = err.get("Message", str(error))
        return f"{message} ({code})" if code else message
    return str(error)


def derive_mfa_serial(identity):
    """
    Derive the virtual MFA device serial from an IAM user identity.

    Examples:
        arn:aws:iam::123456789012:user/alice → arn:aws:iam::123456789012:mfa/alice

    Args:
        identity: Identity returned by resolve_identity

    Returns:
        str: MFA device serial number

    Raises:
        MalformedIdentityError: If the ARN is not an IAM user ARN
    """
    arn = identity.arn
    if USER_MARKER not in arn:
        raise MalformedIdentityError(
            "Identity is not an IAM user, cannot derive an MFA serial",
            f"ARN: {arn}",
        )
    return arn.replace(USER_MARKER, MFA_MARKER, 1)


class SessionClient:
    """
    Typed wrapper around the two STS calls needed for an MFA session.

    Args:
        session_factory: Callable returning a boto3 Session for a profile name
        logger: Logger receiving step tracing (defaults to this module's logger)
    """

    def __init__(self, session_factory=None, logger=None):
        self.session_factory = session_factory or boto3.Session
        self.logger = logger or log

    def _sts_client(self, profile_name):
        session = self.session_factory(profile_name=profile_name)
        region = session.region_name or DEFAULT_REGION
        self.logger.debug("Creating STS client for profile %s in %s", profile_name, region)
        return session.client("sts", region_name=region, config=BOTO_CONFIG)

    def resolve_identity(self, profile_name):
        """
        Look up the caller identity of a profile with sts:GetCallerIdentity.

        Raises:
            IdentityLookupError: If the profile is unknown, its credentials are
                invalid or the response has no Arn
        """
        self.logger.debug("Calling sts:GetCallerIdentity with profile %s", profile_name)
        try:
            response = self._sts_client(profile_name).get_caller_identity()
        except (BotoCoreError, ClientError) as e:
            raise IdentityLookupError(
                f"Failed to get caller identity for profile '{profile_name}'",
                _error_message(e),
            ) from e

        try:
            identity = Identity(
                arn=response["Arn"],
                account=response.get("Account"),
                user_id=response.get("UserId"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise IdentityLookupError(
                f"Unexpected sts:GetCallerIdentity response for profile '{profile_name}'",
                f"missing {e}",
            ) from e

        self.logger.debug("Caller identity: %s", identity.arn)
        return identity

    def derive_mfa_serial(self, identity):
        serial = derive_mfa_serial(identity)
        self.logger.debug("Derived MFA serial number: %s", serial)
        return serial

    def exchange_for_session(self, profile_name, mfa_serial, code, duration_seconds):
        """
        Exchange an MFA code for temporary credentials with sts:GetSessionToken.

        The duration is passed through unchanged; STS decides what is allowed.

        Raises:
            SessionExchangeError: If STS rejects the request or the response
                is missing credentials
        """
        self.logger.debug(
            "Calling sts:GetSessionToken with profile %s, serial %s, duration %ss",
            profile_name,
            mfa_serial,
            duration_seconds,
        )
        try:
            response = self._sts_client(profile_name).get_session_token(
                SerialNumber=mfa_serial,
                TokenCode=code,
                DurationSeconds=duration_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise SessionExchangeError(
                f"Failed to get session token for profile '{profile_name}'",
                _error_message(e),
            ) from e

        try:
            creds = response["Credentials"]
            session = SessionCredentials(
                access_key_id=creds["AccessKeyId"],
                secret_access_key=creds["SecretAccessKey"],
                session_token=creds["SessionToken"],
                expiration=creds["Expiration"],
            )
        except (KeyError, TypeError) as e:
            raise SessionExchangeError(
                f"Unexpected sts:GetSessionToken response for profile '{profile_name}'",
                f"missing {e}",
            ) from e

        self.logger.debug(
            "Received temporary access key %s expiring %s",
            mask(session.access_key_id),
            session.expiration,
        )
        return session


def prompt_for_mfa_code(mfa_serial):
    """Read an MFA code for the given device from the terminal."""
    return input(f"MFA code for {mfa_serial}: ").strip()


def update_profile_credentials(credentials_path, profile_name, session, logger=None):
    """
    Merge session credentials into one profile of the credentials file.

    Args:
        credentials_path: Path to the credentials file
        profile_name: Name of the profile to update
        session: SessionCredentials to store

    Raises:
        PersistenceError: If the file cannot be written
    """
    logger = logger or log
    store = credential_store.load(credentials_path)
    if profile_name in store:
        logger.debug("Output profile %s already exists, updating it", profile_name)
    else:
        logger.debug("Output profile %s does not exist, creating it", profile_name)
    credential_store.upsert_section(store, profile_name, session.profile_fields())
    credential_store.save(store, credentials_path)
    return store


def run(
    profile_name,
    output_profile_name,
    mfa_code=None,
    duration_seconds=DEFAULT_DURATION_SECONDS,
    credentials_path=None,
    client=None,
    prompt=None,
    on_serial=None,
    logger=None,
):
    """
    Fetch MFA session credentials for a profile and store them in another.

    Steps run strictly in order; the credentials file is only read and
    written after STS has issued the session, so any earlier failure leaves
    it untouched.

    Args:
        profile_name: Profile holding the long-term access key
        output_profile_name: Profile that receives the temporary credentials
        mfa_code: MFA code; prompted for when omitted
        duration_seconds: Requested session lifetime (default: 36000)
        credentials_path: Credentials file (default: get_aws_credentials_path())
        client: SessionClient to use
        prompt: Callable taking the MFA serial and returning a code
        on_serial: Callable receiving the MFA serial once it is derived
        logger: Logger receiving step tracing

    Returns:
        SessionCredentials

    Raises:
        IdentityLookupError, MalformedIdentityError, SessionExchangeError,
        PersistenceError
    """
    logger = logger or log
    client = client or SessionClient(logger=logger)
    prompt = prompt or prompt_for_mfa_code
    if duration_seconds is None:
        duration_seconds = DEFAULT_DURATION_SECONDS
    credentials_path = credentials_path or get_aws_credentials_path()

    logger.debug("Starting with profile %s", profile_name)
    logger.debug("Using credentials file %s", credentials_path)
    logger.debug("Output profile will be %s", output_profile_name)
    logger.debug("Session duration set to %s seconds", duration_seconds)

    identity = client.resolve_identity(profile_name)
    mfa_serial = client.derive_mfa_serial(identity)
    if on_serial:
        on_serial(mfa_serial)

    if mfa_code:
        logger.debug("Using MFA code provided by the caller")
        code = mfa_code
    else:
        logger.debug("Prompting for MFA code")
        code = prompt(mfa_serial)

    session = client.exchange_for_session(profile_name, mfa_serial, code, duration_seconds)

    update_profile_credentials(credentials_path, output_profile_name, session, logger=logger)
    logger.debug("Credentials file %s updated", credentials_path)
    return session
