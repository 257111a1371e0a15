"""Storage URI dispatch to gateway readers or direct HTTP."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from packages.agent0_shared.http import AsyncHttpClient, HttpClientError
from packages.agent0_shared.logging import fields, get_logger, log_context
from packages.agent0_storage.backends.interfaces import StorageBackend
from packages.agent0_storage.constants import (
    SCHEME_ARWEAVE,
    SCHEME_HTTP,
    SCHEME_HTTPS,
    SCHEME_IPFS,
)
from packages.agent0_storage.errors import ResolutionError
from packages.agent0_storage.gateways import (
    GatewayReader,
    GatewaySet,
    decode_json_document,
    default_gateways,
)
from packages.agent0_storage.uris import split_uri

_LOGGER = get_logger(__name__)


class LoadStatus(str, Enum):
    """Outcome of loading one storage URI."""

    LOADED = "loaded"
    UNCONFIGURED = "unconfigured"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class LoadResult:
    """Loaded document or the sentinel outcome for blank/unknown URIs."""

    status: LoadStatus
    uri: str
    scheme: str = ""
    document: dict[str, Any] | None = None

    @property
    def loaded(self) -> bool:
        """Return True when a document was retrieved."""
        return self.status is LoadStatus.LOADED


class UriResolver:
    """Resolve ``ipfs://``, ``ar://`` and ``http(s)://`` URIs to documents.

    Ledger and pinning schemes go through the configured backend when one is
    present. Without a backend the same parallel gateway race runs over the
    fallback gateway set for that scheme.
    """

    def __init__(
        self,
        *,
        http: AsyncHttpClient,
        ipfs: StorageBackend | None = None,
        arweave: StorageBackend | None = None,
        ipfs_gateways: GatewaySet | None = None,
        arweave_gateways: GatewaySet | None = None,
        ipfs_gateway_timeout_seconds: float = 10.0,
        arweave_gateway_timeout_seconds: float = 10.0,
        http_timeout_seconds: float = 10.0,
    ) -> None:
        self._http = http
        self._http_timeout_seconds = http_timeout_seconds
        self._backends: dict[str, StorageBackend] = {}
        if ipfs is not None:
            self._backends[SCHEME_IPFS] = ipfs
        if arweave is not None:
            self._backends[SCHEME_ARWEAVE] = arweave
        self._fallback_readers = {
            SCHEME_IPFS: GatewayReader(
                gateways=ipfs_gateways or default_gateways(SCHEME_IPFS),
                http=http,
                timeout_seconds=ipfs_gateway_timeout_seconds,
            ),
            SCHEME_ARWEAVE: GatewayReader(
                gateways=arweave_gateways or default_gateways(SCHEME_ARWEAVE),
                http=http,
                timeout_seconds=arweave_gateway_timeout_seconds,
            ),
        }

    async def load(self, uri: str) -> LoadResult:
        """Load one URI; blank and unknown-scheme URIs are sentinel outcomes."""
        if uri.strip() == "":
            return LoadResult(status=LoadStatus.UNCONFIGURED, uri=uri)

        scheme, _ = split_uri(uri)
        if not self.supports(scheme):
            with log_context({fields.URI: uri}):
                _LOGGER.info("Unsupported storage URI scheme %r", scheme)
            return LoadResult(status=LoadStatus.UNSUPPORTED, uri=uri, scheme=scheme)

        payload = await self._fetch(scheme, uri)
        document = decode_json_document(payload, identifier=uri, backend=scheme)
        return LoadResult(status=LoadStatus.LOADED, uri=uri, scheme=scheme, document=document)

    async def load_bytes(self, uri: str) -> bytes:
        """Return the raw payload behind one URI.

        Unlike ``load`` this raises ``ValueError`` for blank URIs and unknown
        schemes, since there is no payload to return.
        """
        if uri.strip() == "":
            raise ValueError("storage URI is empty")
        scheme, _ = split_uri(uri)
        if not self.supports(scheme):
            raise ValueError(f"unsupported storage URI scheme: {scheme!r}")
        return await self._fetch(scheme, uri)

    def supports(self, scheme: str) -> bool:
        """Return True for schemes this resolver can dispatch."""
        return scheme in (SCHEME_IPFS, SCHEME_ARWEAVE, SCHEME_HTTP, SCHEME_HTTPS)

    async def _fetch(self, scheme: str, uri: str) -> bytes:
        if scheme in (SCHEME_HTTP, SCHEME_HTTPS):
            return await self._fetch_direct(uri)
        backend = self._backends.get(scheme)
        if backend is not None:
            return await backend.resolve(uri)
        return await self._fallback_readers[scheme].resolve(uri)

    async def _fetch_direct(self, uri: str) -> bytes:
        try:
            return await asyncio.wait_for(
                self._http.get_bytes(uri),
                timeout=self._http_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            failure = f"{uri}: timed out"
            cause: Exception = exc
        except HttpClientError as exc:
            failure = f"{uri}: {exc}"
            cause = exc
        raise ResolutionError(
            message=f"Failed to retrieve {uri}: {failure}",
            backend=SCHEME_HTTPS if uri.startswith("https") else SCHEME_HTTP,
            identifier=uri,
            failures=(failure,),
        ) from cause
