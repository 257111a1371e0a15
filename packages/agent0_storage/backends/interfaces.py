"""Narrow capability interface shared by every durable storage backend."""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from packages.agent0_storage.domain import Annotation, ChainContext, Feedback, RegistrationFile


class StorageBackend(Protocol):
    """Protocol for one content-addressed or permanent-ledger backend."""

    @property
    def name(self) -> str:
        """Return the backend name used in logs and errors."""

    @property
    def scheme(self) -> str:
        """Return the URI scheme for identifiers this backend issues."""

    async def upload(self, data: bytes, annotations: Sequence[Annotation] = ()) -> str:
        """Upload raw bytes and return the backend-native identifier."""

    async def upload_json(
        self,
        document: Mapping[str, Any],
        annotations: Sequence[Annotation] = (),
    ) -> str:
        """Upload one canonical JSON document and return its identifier."""

    async def upload_registration_file(
        self,
        record: RegistrationFile,
        chain_context: ChainContext | None = None,
    ) -> str:
        """Format, annotate and upload one registration record."""

    async def upload_feedback_file(
        self,
        feedback: Feedback,
        *,
        agent_id: str,
        client_address: str,
        chain_context: ChainContext | None = None,
    ) -> str:
        """Build, annotate and upload one feedback document."""

    async def resolve(self, identifier: str) -> bytes:
        """Return the payload stored under one identifier."""

    async def resolve_json(self, identifier: str) -> dict[str, Any]:
        """Return the JSON object stored under one identifier."""

    def uri_for(self, identifier: str) -> str:
        """Wrap one identifier into this backend's storage URI."""

    async def aclose(self) -> None:
        """Release backend-owned resources."""
