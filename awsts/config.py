"""
Configuration store for awsts.

Holds the MFA serial, session name, region, role aliases and the cached
session token in a single JSON file under the user's config directory.
Every setter persists the whole file before returning.
"""

import copy
import json
import logging
import os
import stat
import sys
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path

from .errors import ConfigDirUnavailableError, ConfigIOError, MalformedConfigError

logger = logging.getLogger(__name__)

PROGRAM_NAME = "awsts"
DEFAULT_SESSION_NAME = "default"
DEFAULT_REGION = "us-east-1"

CREDENTIAL_FIELDS = ("access_key_id", "secret_access_key", "session_token", "expiration")


@dataclass(frozen=True)
class Credentials:
    """Temporary AWS credentials, either a session token or an assumed role."""

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: str

    @classmethod
    def from_dict(cls, data):
        """
        Build credentials from the config file representation.

        Raises:
            ValueError: If a field is missing or is not a string
        """
        if not isinstance(data, dict):
            raise ValueError("credentials must be an object")
        missing = [name for name in CREDENTIAL_FIELDS if name not in data]
        if missing:
            raise ValueError(f"credentials missing {', '.join(missing)}")
        for name in CREDENTIAL_FIELDS:
            if not isinstance(data[name], str):
                raise ValueError(f"credentials field '{name}' must be a string")
        return cls(**{name: data[name] for name in CREDENTIAL_FIELDS})

    @classmethod
    def from_response(cls, credentials):
        """
        Build credentials from an STS response 'Credentials' payload.

        Args:
            credentials: Dict with AccessKeyId, SecretAccessKey, SessionToken, Expiration

        Returns:
            Credentials with the expiration rendered as an ISO 8601 string
        """
        expiration = credentials["Expiration"]
        if hasattr(expiration, "isoformat"):
            expiration = expiration.isoformat()
        return cls(
            access_key_id=credentials["AccessKeyId"],
            secret_access_key=credentials["SecretAccessKey"],
            session_token=credentials["SessionToken"],
            expiration=expiration,
        )

    def to_dict(self):
        return asdict(self)


def get_config_dir():
    """
    Get the platform's per-user configuration directory.

    Raises:
        ConfigDirUnavailableError: If the directory cannot be determined
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if not appdata:
            raise ConfigDirUnavailableError()
        return Path(appdata)

    home = os.path.expanduser("~")
    if home == "~" or not os.path.isabs(home):
        raise ConfigDirUnavailableError()

    if sys.platform == "darwin":
        return Path(home) / "Library" / "Application Support"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path(home) / ".config"


def get_config_path(program_name=PROGRAM_NAME):
    """Get the config file path for a program: <config dir>/<program>/config."""
    return get_config_dir() / program_name / "config"


def default_options():
    return {
        "mfa_serial_number": "",
        "session_name": DEFAULT_SESSION_NAME,
        "region": DEFAULT_REGION,
        "roles": {},
        "session_token": None,
    }


def parse_options(data):
    """
    Validate a decoded config document and fill in defaults for missing keys.

    Raises:
        ValueError: If the document does not match the config schema
    """
    if not isinstance(data, dict):
        raise ValueError("top level must be an object")

    options = default_options()

    for key in ("mfa_serial_number", "session_name"):
        if key in data:
            if not isinstance(data[key], str):
                raise ValueError(f"'{key}' must be a string")
            options[key] = data[key]

    region = data.get("region")
    if region is not None and not isinstance(region, str):
        raise ValueError("'region' must be a string")
    # Absent region stays None; get_region() supplies the default
    options["region"] = region

    roles = data.get("roles", {})
    if not isinstance(roles, dict):
        raise ValueError("'roles' must be an object")
    for alias, arn in roles.items():
        if not isinstance(arn, str):
            raise ValueError(f"role '{alias}' must map to a string")
    options["roles"] = dict(roles)

    token = data.get("session_token")
    if token is not None:
        options["session_token"] = Credentials.from_dict(token)

    return options


class CliConfig:
    """
    File-backed configuration for one awsts invocation.

    Load it once with CliConfig.load(); every set_*/add_*/remove_* call
    rewrites the file. If the write fails the in-memory state is left
    unchanged and the error is raised.
    """

    def __init__(self, path, options=None):
        self.path = Path(path)
        self._options = options if options is not None else default_options()

    @classmethod
    def load(cls, program_name=PROGRAM_NAME):
        return cls.from_path(get_config_path(program_name))

    @classmethod
    def from_path(cls, path):
        """
        Load configuration from a file, or defaults if the file does not exist.

        Raises:
            ConfigIOError: If the file exists but cannot be read
            MalformedConfigError: If the file is not valid config JSON
        """
        path = Path(path)
        try:
            exists = stat.S_ISREG(path.stat().st_mode)
        except (FileNotFoundError, NotADirectoryError):
            exists = False
        except OSError as e:
            raise ConfigIOError(path, e) from e
        if not exists:
            logger.debug("No config file at %s, using defaults", path)
            return cls(path)

        try:
            contents = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigIOError(path, e) from e
        except UnicodeDecodeError as e:
            raise MalformedConfigError(path, str(e)) from e

        try:
            data = json.loads(contents)
        except ValueError as e:
            raise MalformedConfigError(path, str(e)) from e

        try:
            options = parse_options(data)
        except ValueError as e:
            raise MalformedConfigError(path, str(e)) from e

        logger.debug("Loaded config from %s", path)
        return cls(path, options)

    def to_dict(self):
        return self._serialize(self._options)

    @staticmethod
    def _serialize(options):
        document = {
            "mfa_serial_number": options["mfa_serial_number"],
            "session_name": options["session_name"],
            "roles": dict(options["roles"]),
            "session_token": None,
        }
        if options["region"] is not None:
            document["region"] = options["region"]
        if options["session_token"] is not None:
            document["session_token"] = options["session_token"].to_dict()
        return document

    def save(self):
        """
        Write the full configuration to disk.

        Raises:
            ConfigIOError: On any filesystem error
        """
        self._write(self._options)

    def _write(self, options):
        contents = json.dumps(self._serialize(options), indent=2) + "\n"
        directory = self.path.parent

        try:
            directory.mkdir(parents=True, exist_ok=True)
            # mkstemp creates the file with 0o600, so the token is never world-readable
            fd, tmp_path = tempfile.mkstemp(prefix=".config-", dir=directory)
        except OSError as e:
            raise ConfigIOError(directory, e) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(contents)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise ConfigIOError(self.path, e) from e

        logger.debug("Saved config to %s", self.path)

    def _update(self, **changes):
        options = copy.deepcopy(self._options)
        options.update(changes)
        self._write(options)
        self._options = options

    def set_mfa(self, serial_number):
        self._update(mfa_serial_number=serial_number)

    def get_mfa(self):
        return self._options["mfa_serial_number"]

    def set_session_name(self, session_name):
        self._update(session_name=session_name)

    def get_session_name(self):
        return self._options["session_name"]

    def set_region(self, region):
        self._update(region=region)

    def get_region(self):
        return self._options["region"] or DEFAULT_REGION

    def set_session_token(self, credentials):
        """Replace the cached session token."""
        if not isinstance(credentials, Credentials):
            credentials = Credentials.from_dict(credentials)
        self._update(session_token=credentials)

    def get_session_token(self):
        # Credentials is frozen, so handing out the instance is a copy in effect
        return self._options["session_token"]

    def add_role(self, name, arn):
        roles = dict(self._options["roles"])
        roles[name] = arn
        self._update(roles=roles)

    def remove_role(self, name):
        roles = dict(self._options["roles"])
        roles.pop(name, None)
        self._update(roles=roles)

    def get_role_arn(self, name):
        return self._options["roles"].get(name)

    def get_roles(self):
        return dict(self._options["roles"])
