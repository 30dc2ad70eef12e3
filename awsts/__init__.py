"""
awsts: Managed access to AWS roles via STS.

A small CLI that trades a long-lived AWS identity plus an MFA code for a
session token, caches that token locally, and exchanges it on demand for
temporary credentials of a named role, printed as shell export lines.

Key features:
- One cached MFA session token per user
- Short aliases for role ARNs
- `eval "$(awsts fetch <alias>)"` to load role credentials into a shell
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config import CliConfig, Credentials, get_config_dir, get_config_path
from .errors import (
    AwstsError,
    ConfigDirUnavailableError,
    ConfigIOError,
    DateTimeParseError,
    MalformedConfigError,
    NoCredentialsInResponseError,
    NoSessionTokenError,
    RemoteServiceError,
    RoleNotFoundError,
)
from .sts import (
    ChainResolver,
    ProfileResolver,
    StaticResolver,
    fetch_role_credentials,
    format_exports,
    login,
    parse_rfc3339,
)

__all__ = [
    # Configuration store
    "CliConfig",
    "Credentials",
    "get_config_dir",
    "get_config_path",
    # STS exchanges
    "login",
    "fetch_role_credentials",
    "format_exports",
    "parse_rfc3339",
    # Credential resolvers
    "ChainResolver",
    "ProfileResolver",
    "StaticResolver",
    # Errors
    "AwstsError",
    "ConfigDirUnavailableError",
    "ConfigIOError",
    "DateTimeParseError",
    "MalformedConfigError",
    "NoCredentialsInResponseError",
    "NoSessionTokenError",
    "RemoteServiceError",
    "RoleNotFoundError",
]
