from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    FETCH_ERROR = 3
    PROTOCOL_ERROR = 4
    RUNTIME_ERROR = 5


class PagingError(Exception):
    """Base error for paged list access."""


class ConfigurationError(PagingError):
    """Raised for malformed descriptors, requests or configuration values."""


class InvalidArgumentError(ConfigurationError, ValueError):
    """Raised when the request handed to a paged sequence is absent or malformed."""


class FetchError(PagingError):
    """Raised by bundled fetchers when the remote list call fails."""


class ProtocolError(PagingError):
    """Raised when a response lacks a field the descriptor promises."""


class ExhaustedSequence(StopIteration):
    """
    Normal end of a paged sequence. Subclasses StopIteration so for-loops
    terminate cleanly; it is intentionally not a PagingError.
    """


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigurationError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, FetchError):
        return int(ExitCode.FETCH_ERROR)
    if isinstance(exc, ProtocolError):
        return int(ExitCode.PROTOCOL_ERROR)
    if isinstance(exc, PagingError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def _transport_error_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = []
    try:
        from oci.exceptions import RequestException, ServiceError  # type: ignore
    except Exception:
        pass
    else:
        types.extend([ServiceError, RequestException])
    try:
        from requests import RequestException as HttpRequestException
    except Exception:
        pass
    else:
        types.append(HttpRequestException)
    return tuple(types)


def is_oci_error(exc: BaseException) -> bool:
    """
    Return True if the exception looks like an OCI SDK error.
    """
    return exc.__class__.__module__.startswith("oci.")


def map_fetch_error(exc: BaseException, context: str) -> FetchError | None:
    """
    Wrap OCI SDK and requests errors with FetchError for consistent exit codes.
    Returns None for anything that is not a transport failure.
    """
    transport_types = _transport_error_types()
    if (transport_types and isinstance(exc, transport_types)) or is_oci_error(exc):
        return FetchError(f"{context}: {exc}")
    return None
