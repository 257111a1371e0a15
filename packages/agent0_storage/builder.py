"""Resolve optional storage backend slots once at startup."""

from __future__ import annotations

from dataclasses import dataclass

from packages.agent0_shared.config import StorageSettings
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_shared.logging import get_logger
from packages.agent0_storage.backends.arweave import ArweaveBackend
from packages.agent0_storage.backends.interfaces import StorageBackend
from packages.agent0_storage.backends.ipfs import IpfsBackend
from packages.agent0_storage.constants import SCHEME_ARWEAVE, SCHEME_IPFS
from packages.agent0_storage.gateways import GatewaySet
from packages.agent0_storage.resolver import UriResolver

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class StorageBackends:
    """Configured backends; an absent slot means the backend is disabled."""

    ipfs: StorageBackend | None = None
    arweave: StorageBackend | None = None

    def by_priority(self) -> tuple[StorageBackend, ...]:
        """Return configured backends, permanent ledger before pinning."""
        return tuple(backend for backend in (self.arweave, self.ipfs) if backend is not None)


def build_storage_backends(settings: StorageSettings, http: AsyncHttpClient) -> StorageBackends:
    """Construct every enabled backend; credential problems fail here."""
    ipfs: StorageBackend | None = None
    arweave: StorageBackend | None = None
    if settings.ipfs.enabled:
        ipfs = IpfsBackend(settings=settings.ipfs, http=http)
    if settings.arweave.enabled:
        arweave = ArweaveBackend(
            settings=settings.arweave,
            private_key=settings.arweave_private_key(),
            http=http,
        )
    _LOGGER.info(
        "Storage backends configured: ipfs=%s arweave=%s",
        ipfs is not None,
        arweave is not None,
    )
    return StorageBackends(ipfs=ipfs, arweave=arweave)


def build_uri_resolver(
    settings: StorageSettings,
    http: AsyncHttpClient,
    backends: StorageBackends,
) -> UriResolver:
    """Build a resolver that prefers configured backends over fallback gateways."""
    return UriResolver(
        http=http,
        ipfs=backends.ipfs,
        arweave=backends.arweave,
        ipfs_gateways=_gateway_set(SCHEME_IPFS, settings.ipfs.gateways),
        arweave_gateways=_gateway_set(SCHEME_ARWEAVE, settings.arweave.gateways),
        ipfs_gateway_timeout_seconds=settings.ipfs.gateway_timeout_seconds,
        arweave_gateway_timeout_seconds=settings.arweave.gateway_timeout_seconds,
        http_timeout_seconds=settings.http_timeout_seconds,
    )


def _gateway_set(protocol: str, urls: tuple[str, ...]) -> GatewaySet | None:
    if len(urls) == 0:
        return None
    return GatewaySet(protocol=protocol, urls=urls)
