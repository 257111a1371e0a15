"""Permanent-ledger backend writing signed data items through Turbo."""

from __future__ import annotations

from typing import ClassVar, Sequence

from packages.agent0_shared.config import ArweaveSettings
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_storage.backends.base import BaseStorageBackend
from packages.agent0_storage.backends.dataitem import EthereumSigner, create_data_item
from packages.agent0_storage.constants import QUOTA_REMEDIATION_ARWEAVE, SCHEME_ARWEAVE
from packages.agent0_storage.domain import Annotation
from packages.agent0_storage.errors import ConfigurationError, UploadError
from packages.agent0_storage.gateways import GatewayReader, GatewaySet


class ArweaveBackend(BaseStorageBackend):
    """Upload annotated data items to Arweave and read them from AR.IO gateways.

    Annotations become signed data item tags. Turbo serves uploads from its
    optimistic cache immediately, so reads work before the bundle settles.
    """

    name: ClassVar[str] = "arweave"
    scheme: ClassVar[str] = SCHEME_ARWEAVE
    quota_remediation: ClassVar[str] = QUOTA_REMEDIATION_ARWEAVE

    def __init__(
        self,
        *,
        settings: ArweaveSettings,
        private_key: str | None,
        http: AsyncHttpClient,
    ) -> None:
        if not (private_key or "").strip():
            raise ConfigurationError(
                message=(
                    "Arweave storage requires storage.arweave.private_key "
                    "or storage.signer_private_key"
                ),
                backend=self.name,
            )
        try:
            signer = EthereumSigner(private_key or "")
        except ValueError as exc:
            raise ConfigurationError(
                message=f"Arweave signing key is malformed: {exc}",
                backend=self.name,
            ) from exc

        super().__init__(
            reader=GatewayReader(
                gateways=GatewaySet(protocol=SCHEME_ARWEAVE, urls=settings.gateways),
                http=http,
                timeout_seconds=settings.gateway_timeout_seconds,
            ),
            upload_timeout_seconds=settings.upload_timeout_seconds,
        )
        self._settings = settings
        self._signer = signer
        self._http = http

    @property
    def signer_address(self) -> str:
        """Return the address that signs uploaded data items."""
        return self._signer.address

    async def _upload(self, data: bytes, annotations: Sequence[Annotation]) -> str:
        item = create_data_item(
            data,
            self._signer,
            tags=[(annotation.name, annotation.value) for annotation in annotations],
        )
        payload = await self._http.post_json(
            f"{self._settings.upload_url.rstrip('/')}/v1/tx",
            content=item.raw,
            headers={"Content-Type": "application/octet-stream"},
            timeout=self._upload_timeout_seconds,
        )
        identifier = payload.get("id") if isinstance(payload, dict) else None
        if not isinstance(identifier, str) or identifier == "":
            raise UploadError(
                message=f"{self.name} upload response is missing 'id'",
                backend=self.name,
                retryable=False,
            )
        return identifier
