"""Shared upload/read plumbing for concrete storage backends."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping, Sequence

from packages.agent0_shared.http import HttpClientError, HttpStatusError
from packages.agent0_storage.annotations import (
    generate_feedback_annotations,
    generate_registration_annotations,
)
from packages.agent0_storage.constants import QUOTA_MARKERS
from packages.agent0_storage.domain import Annotation, ChainContext, Feedback, RegistrationFile
from packages.agent0_storage.errors import QuotaError, StorageError, UploadError
from packages.agent0_storage.formatting import (
    build_feedback_document,
    format_registration_document,
    serialize_document,
)
from packages.agent0_storage.gateways import GatewayReader
from packages.agent0_storage.uris import build_uri


class BaseStorageBackend(ABC):
    """Template for backends: subclasses only implement ``_upload``.

    Upload failures are mapped once here so every backend reports quota
    rejections as ``QuotaError`` and everything else as ``UploadError``.
    """

    name: ClassVar[str]
    scheme: ClassVar[str]
    quota_remediation: ClassVar[str] = ""

    def __init__(self, *, reader: GatewayReader, upload_timeout_seconds: float) -> None:
        if upload_timeout_seconds <= 0:
            raise ValueError("upload_timeout_seconds must be > 0")
        self._reader = reader
        self._upload_timeout_seconds = upload_timeout_seconds

    @property
    def reader(self) -> GatewayReader:
        """Return the gateway reader used to resolve this backend's identifiers."""
        return self._reader

    @abstractmethod
    async def _upload(self, data: bytes, annotations: Sequence[Annotation]) -> str:
        """Perform the protocol-specific upload and return the identifier."""

    async def upload(self, data: bytes, annotations: Sequence[Annotation] = ()) -> str:
        """Upload raw bytes within the upload timeout."""
        try:
            return await asyncio.wait_for(
                self._upload(data, tuple(annotations)),
                timeout=self._upload_timeout_seconds,
            )
        except StorageError:
            raise
        except asyncio.TimeoutError as exc:
            raise UploadError(
                message=(
                    f"{self.name} upload timed out after {self._upload_timeout_seconds:g}s"
                ),
                backend=self.name,
                cause=exc,
            ) from exc
        except HttpStatusError as exc:
            raise self._classify_status_error(exc) from exc
        except HttpClientError as exc:
            raise UploadError(
                message=f"{self.name} upload failed: {exc}",
                backend=self.name,
                retryable=exc.retryable,
                cause=exc,
            ) from exc

    async def upload_json(
        self,
        document: Mapping[str, Any],
        annotations: Sequence[Annotation] = (),
    ) -> str:
        """Upload one document using the canonical serialization."""
        return await self.upload(serialize_document(document), annotations)

    async def upload_registration_file(
        self,
        record: RegistrationFile,
        chain_context: ChainContext | None = None,
    ) -> str:
        """Upload one registration document; annotate only with a chain id."""
        document = format_registration_document(record, chain_context)
        annotations: list[Annotation] = []
        if chain_context is not None and chain_context.chain_id:
            annotations = generate_registration_annotations(record, chain_context.chain_id)
        return await self.upload_json(document, annotations)

    async def upload_feedback_file(
        self,
        feedback: Feedback,
        *,
        agent_id: str,
        client_address: str,
        chain_context: ChainContext | None = None,
    ) -> str:
        """Upload one feedback document; annotate only with a chain id."""
        document = build_feedback_document(
            feedback,
            agent_id=agent_id,
            client_address=client_address,
            chain_context=chain_context,
        )
        annotations: list[Annotation] = []
        if chain_context is not None and chain_context.chain_id:
            annotations = generate_feedback_annotations(
                feedback,
                chain_context.chain_id,
                agent_id=agent_id,
                client_address=client_address,
            )
        return await self.upload_json(document, annotations)

    async def resolve(self, identifier: str) -> bytes:
        """Race this backend's gateways for one identifier."""
        return await self._reader.resolve(identifier)

    async def resolve_json(self, identifier: str) -> dict[str, Any]:
        """Race this backend's gateways and decode a JSON object."""
        return await self._reader.resolve_json(identifier)

    def uri_for(self, identifier: str) -> str:
        """Return ``<scheme>://<identifier>``."""
        return build_uri(self.scheme, identifier)

    async def aclose(self) -> None:
        """Backends share an injected HTTP client and own nothing to close."""

    def _classify_status_error(self, exc: HttpStatusError) -> UploadError:
        """Map one upstream status failure to quota or generic upload errors."""
        detail = exc.response_body or exc.message
        if is_quota_failure(exc.status_code, detail):
            return QuotaError(
                message=(
                    f"{self.name} upload failed: {self.quota_remediation} "
                    f"Details: HTTP {exc.status_code} {detail}"
                ),
                backend=self.name,
                cause=exc,
                remediation=self.quota_remediation,
            )
        return UploadError(
            message=f"{self.name} upload failed: HTTP {exc.status_code} {detail}",
            backend=self.name,
            retryable=exc.retryable,
            cause=exc,
        )


def is_quota_failure(status_code: int, detail: str) -> bool:
    """Return True for payment-required statuses or balance/credit messages."""
    if status_code == 402:
        return True
    lowered = detail.lower()
    return any(marker in lowered for marker in QUOTA_MARKERS)
