"""Error taxonomy for the durable storage layer.

Propagation rules:

- ``ConfigurationError`` and ``ConcurrencyError`` always reach the caller.
- ``QuotaError`` and ``UploadError`` reach the write orchestrator, which falls
  back for multi-backend feedback writes and re-raises for registrations.
- ``ResolutionError`` and ``DocumentParseError`` reach whoever loaded the URI.
- ``ConfirmationTimeout`` is advisory and only ever logged.

Messages carry backend names, identifiers and upstream statuses; they never
carry credentials.

The classes must stay unfrozen: ``contextlib`` assigns ``__traceback__`` when
an error leaves a ``@contextmanager`` block such as ``log_context``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class StorageError(Exception):
    """Base error type for storage layer failures."""

    message: str
    backend: str = ""

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message


@dataclass(eq=False)
class ConfigurationError(StorageError):
    """Missing or malformed backend credential/configuration."""


@dataclass(eq=False)
class UploadError(StorageError):
    """Generic network or protocol failure while writing content."""

    retryable: bool = True
    cause: Exception | None = None


@dataclass(eq=False)
class QuotaError(UploadError):
    """Upload rejected for balance, credit or plan reasons."""

    remediation: str = ""
    retryable: bool = False


@dataclass(eq=False)
class ResolutionError(StorageError):
    """Every read path for one identifier failed."""

    identifier: str = ""
    failures: tuple[str, ...] = ()


@dataclass(eq=False)
class DocumentParseError(StorageError):
    """Payload was retrieved but is not the expected JSON document."""

    identifier: str = ""


@dataclass(eq=False)
class ConcurrencyError(StorageError):
    """A write for the same entity instance is already in flight."""

    entity: str = ""


@dataclass(eq=False)
class ConfirmationTimeout(StorageError):
    """On-chain confirmation was not observed within the wait budget."""

    tx_hash: str = ""
    timeout_seconds: float = 0.0


class RecordValidationError(ValueError):
    """Metadata record is not writable (for example a blank name)."""
