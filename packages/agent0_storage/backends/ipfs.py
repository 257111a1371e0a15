"""Content-addressed pinning backend (Pinata or a local IPFS node)."""

from __future__ import annotations

import json
from typing import Any, ClassVar, Sequence

from packages.agent0_shared.config import IpfsSettings
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_storage.backends.base import BaseStorageBackend
from packages.agent0_storage.constants import (
    PINATA_MAX_KEYVALUES,
    QUOTA_REMEDIATION_IPFS,
    SCHEME_IPFS,
)
from packages.agent0_storage.domain import Annotation
from packages.agent0_storage.errors import ConfigurationError, UploadError
from packages.agent0_storage.gateways import GatewayReader, GatewaySet

_DEFAULT_DOCUMENT_NAME = "agent0-document"


class IpfsBackend(BaseStorageBackend):
    """Pin documents on IPFS and read them back through public gateways."""

    name: ClassVar[str] = "ipfs"
    scheme: ClassVar[str] = SCHEME_IPFS
    quota_remediation: ClassVar[str] = QUOTA_REMEDIATION_IPFS

    def __init__(self, *, settings: IpfsSettings, http: AsyncHttpClient) -> None:
        if settings.provider == "pinata" and not (settings.pinata_jwt or "").strip():
            raise ConfigurationError(
                message="IPFS provider 'pinata' requires storage.ipfs.pinata_jwt",
                backend=self.name,
            )
        super().__init__(
            reader=GatewayReader(
                gateways=GatewaySet(protocol=SCHEME_IPFS, urls=settings.gateways),
                http=http,
                timeout_seconds=settings.gateway_timeout_seconds,
            ),
            upload_timeout_seconds=settings.upload_timeout_seconds,
        )
        self._settings = settings
        self._http = http

    async def _upload(self, data: bytes, annotations: Sequence[Annotation]) -> str:
        if self._settings.provider == "pinata":
            return await self._pin_with_pinata(data, annotations)
        return await self._add_to_node(data, annotations)

    async def _pin_with_pinata(self, data: bytes, annotations: Sequence[Annotation]) -> str:
        filename = _document_name(annotations)
        metadata: dict[str, Any] = {"name": filename}
        if annotations:
            metadata["keyvalues"] = {
                annotation.name: annotation.value
                for annotation in annotations[:PINATA_MAX_KEYVALUES]
            }
        payload = await self._http.post_json(
            f"{self._settings.pinata_api_url.rstrip('/')}/pinning/pinFileToIPFS",
            headers={"Authorization": f"Bearer {self._settings.pinata_jwt}"},
            files={"file": (filename, data, _content_type(annotations))},
            data={"pinataMetadata": json.dumps(metadata)},
            timeout=self._upload_timeout_seconds,
        )
        return self._identifier_from(payload, "IpfsHash")

    async def _add_to_node(self, data: bytes, annotations: Sequence[Annotation]) -> str:
        payload = await self._http.post_json(
            f"{self._settings.node_api_url.rstrip('/')}/api/v0/add",
            params={"pin": "true"},
            timeout=self._upload_timeout_seconds,
            files={"file": (_document_name(annotations), data, _content_type(annotations))},
        )
        return self._identifier_from(payload, "Hash")

    def _identifier_from(self, payload: Any, key: str) -> str:
        identifier = payload.get(key) if isinstance(payload, dict) else None
        if not isinstance(identifier, str) or identifier == "":
            raise UploadError(
                message=f"{self.name} upload response is missing {key!r}",
                backend=self.name,
                retryable=False,
            )
        return identifier


def _document_name(annotations: Sequence[Annotation]) -> str:
    for annotation in annotations:
        if annotation.name == "Data-Type":
            return f"{annotation.value}.json"
    return f"{_DEFAULT_DOCUMENT_NAME}.json"


def _content_type(annotations: Sequence[Annotation]) -> str:
    for annotation in annotations:
        if annotation.name == "Content-Type":
            return annotation.value
    return "application/json"
