"""
Error types raised by awsts.

Every error is raised where it originates and reaches the CLI unmodified,
which prints the message and exits with status 1.
"""


class AwstsError(Exception):
    """Base class for all awsts errors."""


class ConfigIOError(AwstsError):
    """The configuration file could not be read or written."""

    def __init__(self, path, error):
        self.path = str(path)
        self.error = error
        super().__init__(f"{error.strerror or error} ({self.path})")


class MalformedConfigError(AwstsError):
    """The configuration file exists but does not match the expected schema."""

    def __init__(self, path, reason):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Malformed config file {self.path}: {reason}")


class ConfigDirUnavailableError(AwstsError):
    def __init__(self):
        super().__init__("Platform has no available config directory")


class NoSessionTokenError(AwstsError):
    def __init__(self):
        super().__init__("No session token, use awsts login to fetch one")


class RoleNotFoundError(AwstsError):
    def __init__(self, alias):
        self.alias = alias
        super().__init__(f"Role {alias} not found")


class NoCredentialsInResponseError(AwstsError):
    """STS reported success but the response carried no credentials."""

    def __init__(self):
        super().__init__("No credentials provided in response")


class DateTimeParseError(AwstsError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Could not parse expiration timestamp '{value}'")


class RemoteServiceError(AwstsError):
    """Wraps any botocore failure: credential resolution, auth, MFA rejection, network."""
