"""Gateway sets and the parallel gateway read race."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

from packages.agent0_shared.config import DEFAULT_ARWEAVE_GATEWAYS, DEFAULT_IPFS_GATEWAYS
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_shared.logging import fields, get_logger, log_context
from packages.agent0_storage.constants import SCHEME_ARWEAVE, SCHEME_IPFS
from packages.agent0_storage.errors import DocumentParseError, ResolutionError
from packages.agent0_storage.uris import strip_scheme

_LOGGER = get_logger(__name__)

_DEFAULT_GATEWAYS: dict[str, tuple[str, ...]] = {
    SCHEME_IPFS: DEFAULT_IPFS_GATEWAYS,
    SCHEME_ARWEAVE: DEFAULT_ARWEAVE_GATEWAYS,
}


@dataclass(frozen=True)
class GatewaySet:
    """Ordered, non-empty read gateways for one storage protocol."""

    protocol: str
    urls: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.urls) == 0:
            raise ValueError(f"gateway set for {self.protocol!r} must not be empty")

    def urls_for(self, identifier: str) -> list[str]:
        """Return one fetch URL per gateway, in list order."""
        segment = identifier.lstrip("/")
        return [f"{base.rstrip('/')}/{segment}" for base in self.urls]


def default_gateways(protocol: str) -> GatewaySet:
    """Return the built-in gateway set for ``ipfs`` or ``ar``."""
    try:
        urls = _DEFAULT_GATEWAYS[protocol]
    except KeyError as exc:
        raise ValueError(f"no default gateways for protocol {protocol!r}") from exc
    return GatewaySet(protocol=protocol, urls=urls)


class GatewayReader:
    """Resolve identifiers by fetching from every gateway at once.

    All fetches run to completion (success, error or per-gateway timeout).
    The payload of the first successful gateway in list order is returned,
    so a slower gateway listed earlier wins over a faster one listed later.
    """

    def __init__(
        self,
        *,
        gateways: GatewaySet,
        http: AsyncHttpClient,
        timeout_seconds: float = 10.0,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._gateways = gateways
        self._http = http
        self._timeout_seconds = timeout_seconds

    @property
    def gateways(self) -> GatewaySet:
        """Return the gateway set this reader races."""
        return self._gateways

    async def resolve(self, identifier: str) -> bytes:
        """Return the payload for one identifier from the first healthy gateway."""
        normalized = self._normalize(identifier)
        urls = self._gateways.urls_for(normalized)
        results = await asyncio.gather(
            *(self._fetch(url) for url in urls),
            return_exceptions=True,
        )

        failures: list[str] = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                failures.append(f"{url}: {_describe(result)}")
                continue
            if failures:
                self._log_failures(normalized, failures)
            return result

        self._log_failures(normalized, failures)
        raise ResolutionError(
            message=(
                f"Failed to retrieve data from all {self._gateways.protocol} gateways. "
                f"Identifier: {normalized}"
            ),
            backend=self._gateways.protocol,
            identifier=normalized,
            failures=tuple(failures),
        )

    async def resolve_json(self, identifier: str) -> dict[str, Any]:
        """Resolve one identifier and decode it as a JSON object."""
        payload = await self.resolve(identifier)
        return decode_json_document(payload, identifier=identifier, backend=self._gateways.protocol)

    def _normalize(self, identifier: str) -> str:
        normalized = strip_scheme(identifier, self._gateways.protocol)
        if normalized.strip() == "":
            raise ValueError(f"invalid {self._gateways.protocol} identifier: empty or blank")
        return normalized

    async def _fetch(self, url: str) -> bytes:
        return await asyncio.wait_for(self._http.get_bytes(url), timeout=self._timeout_seconds)

    def _log_failures(self, identifier: str, failures: list[str]) -> None:
        with log_context(
            {
                fields.EVENT: fields.GATEWAY_FAILURE_EVENT,
                fields.BACKEND: self._gateways.protocol,
                fields.IDENTIFIER: identifier,
            }
        ):
            _LOGGER.warning(
                "%d of %d gateways failed: %s",
                len(failures),
                len(self._gateways.urls),
                "; ".join(failures),
            )


def decode_json_document(payload: bytes, *, identifier: str, backend: str = "") -> dict[str, Any]:
    """Decode one payload as a JSON object or raise ``DocumentParseError``."""
    try:
        document = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DocumentParseError(
            message=f"payload for {identifier} is not valid JSON: {exc}",
            backend=backend,
            identifier=identifier,
        ) from exc
    if not isinstance(document, dict):
        raise DocumentParseError(
            message=f"payload for {identifier} is not a JSON object",
            backend=backend,
            identifier=identifier,
        )
    return document


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    return f"{type(exc).__name__}: {exc}"
