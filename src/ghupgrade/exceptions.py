"""
Exceptions raised by ghupgrade.

Each failure class is owned by one layer: transport errors by the fetcher and
circuit breaker, payload errors by the manager's decoder, archive errors by
the archive handler, configuration errors by the config loader.
"""


class GhUpgradeError(Exception):
    """
    Root of every ghupgrade exception.

    Attributes:
        message: Short description shown to the user.
        details: Underlying cause, appended to `str()` when present.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(GhUpgradeError):
    """The YAML configuration could not be used."""

    pass


class ConfigFileError(ConfigurationError):
    """The configuration file is unreadable, not YAML, or not a mapping."""

    pass


class ConfigValidationError(ConfigurationError):
    """A configuration value has the wrong type or shape."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value


# =============================================================================
# Network
# =============================================================================


class DownloadError(GhUpgradeError):
    """
    A release endpoint or module archive could not be retrieved.

    Attributes:
        url: Request URL.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


class NetworkError(DownloadError):
    pass


class TransportError(NetworkError):
    """
    Transport-level failure of a single HTTP request.

    Raised for connection refused, DNS, TLS and timeout errors. Non-2xx
    responses are never transport errors. This is the only failure the
    circuit breaker counts.

    Attributes:
        error_code: Low-level error code (errno or exception class name).
    """

    def __init__(
        self,
        url: str,
        error_code: str | int | None = None,
        details: str | None = None,
    ) -> None:
        message = f"Failed to download {url} (error code {error_code})"
        super().__init__(message, url=url, details=details)
        self.error_code = error_code


# =============================================================================
# Payloads
# =============================================================================


class ValidationError(GhUpgradeError):
    """
    Data received from upstream did not have the expected form.

    Attributes:
        field: Which part of the data was wrong.
        value: The offending value, or where it came from.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value


class PayloadError(ValidationError):
    """A release API body was empty, not JSON, or not a JSON object."""

    pass


# =============================================================================
# Archives
# =============================================================================


class ArchiveError(GhUpgradeError):
    """
    A downloaded module archive could not be installed.

    Attributes:
        archive_path: Staged archive that failed.
    """

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.archive_path = archive_path


class ExtractionError(ArchiveError):
    """The archive is corrupt or contains members outside the install directory."""

    pass
