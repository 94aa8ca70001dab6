"""Error taxonomy for stream aggregation."""

from __future__ import annotations


class SourcerrError(Exception):
    """Base class for all sourcerr errors."""


class ConfigurationError(SourcerrError):
    """A required precondition is missing (credential, eligible providers).

    Terminal for the request: surfaced verbatim, never retried.
    """


class FetchError(SourcerrError):
    """Transient fetch failure (timeout, network, non-2xx, invalid content)."""

    def __init__(self, message: str, *, url: str = "", status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ManifestError(SourcerrError):
    """Provider manifest could not be fetched or parsed at install time."""


class UnsupportedSchemeError(ManifestError):
    """Manifest URL does not use http or https."""


class DebridError(SourcerrError):
    """Debrid service call failed."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RequestCancelled(SourcerrError):
    """The request was superseded or abandoned by its caller."""
