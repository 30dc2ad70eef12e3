"""
STS exchanges for awsts: MFA login and role assumption.

login() trades the caller's long-lived identity plus an MFA code for a
session token and caches it in the config. fetch_role_credentials() trades
the cached session token for credentials scoped to one role; those are
returned to the caller and never stored.
"""

import logging
import re
import shlex
import sys
from datetime import datetime, timedelta, timezone

import boto3
import botocore.session
from botocore.exceptions import BotoCoreError, ClientError

from .config import Credentials
from .errors import (
    DateTimeParseError,
    NoCredentialsInResponseError,
    NoSessionTokenError,
    RemoteServiceError,
    RoleNotFoundError,
)

logger = logging.getLogger(__name__)

# Bound on the metadata-service lookups in the default discovery chain
CHAIN_TIMEOUT_SECONDS = 2

# Tolerance before a cached token is reported as expired
CLOCK_SKEW = timedelta(minutes=5)

RFC3339_PATTERN = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(\.\d+)?"
    r"([Zz]|[+-]\d{2}:\d{2})",
    re.ASCII,
)


class ProfileResolver:
    """Resolve credentials from a named profile in ~/.aws/credentials or ~/.aws/config."""

    def __init__(self, profile, region):
        self.profile = profile
        self.region = region

    def resolve(self):
        try:
            session = boto3.Session(profile_name=self.profile, region_name=self.region)
        except BotoCoreError as e:
            raise RemoteServiceError(str(e)) from e
        return _require_credentials(session, f"profile '{self.profile}'")


class ChainResolver:
    """
    Resolve credentials through botocore's default discovery chain.

    Environment variables, shared files, container and instance metadata are
    tried in botocore's usual order. Metadata lookups are limited to a single
    attempt of `timeout` seconds so a machine without ambient credentials
    fails quickly instead of hanging.
    """

    def __init__(self, region, timeout=CHAIN_TIMEOUT_SECONDS):
        self.region = region
        self.timeout = timeout

    def resolve(self):
        try:
            core_session = botocore.session.get_session()
            core_session.set_config_variable("metadata_service_timeout", self.timeout)
            core_session.set_config_variable("metadata_service_num_attempts", 1)
            session = boto3.Session(botocore_session=core_session, region_name=self.region)
        except BotoCoreError as e:
            raise RemoteServiceError(str(e)) from e
        return _require_credentials(session, "the default credential chain")


class StaticResolver:
    """Fixed, non-refreshing credentials taken from a cached session token."""

    def __init__(self, credentials, region):
        self.credentials = credentials
        self.region = region

    def resolve(self):
        return boto3.Session(
            aws_access_key_id=self.credentials.access_key_id,
            aws_secret_access_key=self.credentials.secret_access_key,
            aws_session_token=self.credentials.session_token,
            region_name=self.region,
        )


def _require_credentials(session, source):
    try:
        credentials = session.get_credentials()
    except BotoCoreError as e:
        raise RemoteServiceError(str(e)) from e
    if credentials is None:
        raise RemoteServiceError(f"Unable to locate credentials from {source}")
    logger.debug("Resolved credentials from %s", source)
    return session


def parse_rfc3339(value):
    """
    Parse a strict RFC 3339 timestamp into an aware datetime.

    Raises:
        DateTimeParseError: If the value is not RFC 3339
    """
    match = RFC3339_PATTERN.fullmatch(value) if isinstance(value, str) else None
    if not match:
        raise DateTimeParseError(value)

    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    fraction, offset = match.group(7), match.group(8)
    microsecond = int(fraction[1:7].ljust(6, "0")) if fraction else 0

    try:
        if offset in ("Z", "z"):
            tz = timezone.utc
        else:
            offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
            if offset_minutes > 59:
                raise ValueError("offset minutes out of range")
            delta = timedelta(hours=offset_hours, minutes=offset_minutes)
            tz = timezone(-delta if offset[0] == "-" else delta)
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    except ValueError as e:
        raise DateTimeParseError(value) from e


def read_token_code(mfa_serial, stdin=None, stdout=None):
    """Prompt for an MFA code and read one line from stdin."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stdout.write(f"Enter token code for MFA ({mfa_serial}): ")
    stdout.flush()
    return stdin.readline().rstrip()


def login(config, profile=None, resolver=None, stdin=None, stdout=None):
    """
    Fetch a session token with an MFA code and cache it in the config.

    Args:
        config: Loaded CliConfig
        profile: Named AWS profile to authenticate with; the default chain if None
        resolver: Credential resolver to use instead of profile/chain resolution
        stdin, stdout: Streams for the MFA prompt (default: sys.stdin, sys.stdout)

    Returns:
        Credentials: The session token that was stored

    Raises:
        RemoteServiceError: If credential resolution or GetSessionToken fails
        NoCredentialsInResponseError: If STS returned no credentials
        ConfigIOError: If the token could not be saved
    """
    mfa_serial = config.get_mfa()
    code = read_token_code(mfa_serial, stdin, stdout)

    region = config.get_region()
    if resolver is None:
        if profile:
            resolver = ProfileResolver(profile, region)
        else:
            resolver = ChainResolver(region)

    session = resolver.resolve()
    logger.debug("Requesting session token for MFA device %s", mfa_serial)
    try:
        sts_client = session.client("sts")
        response = sts_client.get_session_token(SerialNumber=mfa_serial, TokenCode=code)
    except (ClientError, BotoCoreError) as e:
        raise RemoteServiceError(str(e)) from e

    payload = response.get("Credentials")
    if not payload:
        raise NoCredentialsInResponseError()

    credentials = Credentials.from_response(payload)
    config.set_session_token(credentials)
    logger.info(
        "Cached session token %s... expiring %s",
        credentials.access_key_id[:8],
        credentials.expiration,
    )
    return credentials


def fetch_role_credentials(config, name):
    """
    Assume a role with the cached session token.

    The token's expiration is parsed but not enforced: STS decides whether the
    token is still valid. The config is not modified.

    Args:
        config: Loaded CliConfig
        name: Role alias registered with add_role()

    Returns:
        Credentials: Temporary credentials for the role

    Raises:
        NoSessionTokenError: If no session token is cached
        DateTimeParseError: If the cached expiration is not RFC 3339
        RoleNotFoundError: If the alias is unknown
        RemoteServiceError: If AssumeRole fails
        NoCredentialsInResponseError: If STS returned no credentials
    """
    token = config.get_session_token()
    if token is None:
        raise NoSessionTokenError()

    expiry = parse_rfc3339(token.expiration)
    if expiry < datetime.now(timezone.utc) - CLOCK_SKEW:
        logger.warning("Cached session token expired at %s, STS may reject it", token.expiration)

    role_arn = config.get_role_arn(name)
    if role_arn is None:
        raise RoleNotFoundError(name)

    session = StaticResolver(token, config.get_region()).resolve()
    logger.debug("Assuming role %s as session %s", role_arn, config.get_session_name())
    try:
        sts_client = session.client("sts")
        response = sts_client.assume_role(
            RoleArn=role_arn,
            RoleSessionName=config.get_session_name(),
        )
    except (ClientError, BotoCoreError) as e:
        raise RemoteServiceError(str(e)) from e

    payload = response.get("Credentials")
    if not payload:
        raise NoCredentialsInResponseError()

    return Credentials.from_response(payload)


def format_exports(credentials):
    """Render credentials as shell export lines, quoted for eval."""
    return [
        f"export AWS_ACCESS_KEY_ID={shlex.quote(credentials.access_key_id)}",
        f"export AWS_SECRET_ACCESS_KEY={shlex.quote(credentials.secret_access_key)}",
        f"export AWS_SESSION_TOKEN={shlex.quote(credentials.session_token)}",
        f"export AWS_SESSION_EXPIRATION={shlex.quote(credentials.expiration)}",
    ]
