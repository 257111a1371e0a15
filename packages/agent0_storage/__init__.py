"""Durable multi-backend storage for agent registration documents."""

from .agent import Agent, RegistrationResult
from .annotations import generate_feedback_annotations, generate_registration_annotations
from .backends import ArweaveBackend, BaseStorageBackend, IpfsBackend, StorageBackend
from .builder import StorageBackends, build_storage_backends, build_uri_resolver
from .chain import (
    ConfirmationResult,
    ConfirmationStatus,
    IdentityRegistry,
    ReputationRegistry,
    await_confirmation,
)
from .domain import (
    Annotation,
    ChainContext,
    Endpoint,
    EndpointType,
    Feedback,
    RegistrationFile,
    TrustModel,
)
from .errors import (
    ConcurrencyError,
    ConfigurationError,
    ConfirmationTimeout,
    DocumentParseError,
    QuotaError,
    RecordValidationError,
    ResolutionError,
    StorageError,
    UploadError,
)
from .formatting import (
    build_feedback_document,
    format_registration_document,
    parse_registration_document,
    serialize_document,
)
from .gateways import GatewayReader, GatewaySet, default_gateways
from .orchestrator import FeedbackResult, FeedbackWriter, WriteGuard
from .resolver import LoadResult, LoadStatus, UriResolver
from .sdk import AgentStorageSdk
from .uris import build_uri, split_uri

__all__ = [
    "Agent",
    "AgentStorageSdk",
    "Annotation",
    "ArweaveBackend",
    "BaseStorageBackend",
    "ChainContext",
    "ConcurrencyError",
    "ConfigurationError",
    "ConfirmationResult",
    "ConfirmationStatus",
    "ConfirmationTimeout",
    "DocumentParseError",
    "Endpoint",
    "EndpointType",
    "Feedback",
    "FeedbackResult",
    "FeedbackWriter",
    "GatewayReader",
    "GatewaySet",
    "IdentityRegistry",
    "IpfsBackend",
    "LoadResult",
    "LoadStatus",
    "QuotaError",
    "RecordValidationError",
    "RegistrationFile",
    "RegistrationResult",
    "ReputationRegistry",
    "ResolutionError",
    "StorageBackend",
    "StorageBackends",
    "StorageError",
    "TrustModel",
    "UploadError",
    "UriResolver",
    "WriteGuard",
    "await_confirmation",
    "build_feedback_document",
    "build_storage_backends",
    "build_uri",
    "build_uri_resolver",
    "default_gateways",
    "format_registration_document",
    "generate_feedback_annotations",
    "generate_registration_annotations",
    "parse_registration_document",
    "serialize_document",
    "split_uri",
]
