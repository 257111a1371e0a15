"""Agent entity: owns one registration record and sequences its writes."""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from typing import Any, Mapping

from packages.agent0_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from packages.agent0_storage.backends.interfaces import StorageBackend
from packages.agent0_storage.chain import ConfirmationResult, IdentityRegistry, await_confirmation
from packages.agent0_storage.constants import (
    METADATA_KEY_ENS,
    METADATA_KEY_WALLET,
    SCHEME_HTTP,
    SCHEME_HTTPS,
)
from packages.agent0_storage.domain import (
    ChainContext,
    Endpoint,
    EndpointType,
    RegistrationFile,
    TrustModel,
    format_agent_id,
)
from packages.agent0_storage.errors import ConfigurationError, RecordValidationError
from packages.agent0_storage.orchestrator import WriteGuard
from packages.agent0_storage.uris import split_uri

_LOGGER = get_logger(__name__)
COMPONENT_ID = "agent0_storage.agent"

DEFAULT_MCP_VERSION = "2025-06-18"
DEFAULT_A2A_VERSION = "0.30"
DEFAULT_ENS_VERSION = "1.0"

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of one registration write."""

    agent_id: str
    agent_uri: str
    confirmation: ConfirmationResult
    registration_file: RegistrationFile


class Agent:
    """One agent and its in-memory registration record.

    The record is mutated only through this wrapper. Writes are serialized by
    a per-instance ``WriteGuard``: a second write started while one is in
    flight fails immediately with ``ConcurrencyError``.
    """

    def __init__(
        self,
        *,
        registration_file: RegistrationFile,
        identity_registry: IdentityRegistry,
        ipfs: StorageBackend | None = None,
        arweave: StorageBackend | None = None,
        confirmation_timeout_seconds: float = 30.0,
    ) -> None:
        self._record = registration_file
        self._registry = identity_registry
        self._ipfs = ipfs
        self._arweave = arweave
        self._confirmation_timeout_seconds = confirmation_timeout_seconds
        self._dirty_metadata: set[str] = set()
        self._guard = WriteGuard(entity=self._guard_label)

    @property
    def agent_id(self) -> str | None:
        return self._record.agent_id

    @property
    def agent_uri(self) -> str | None:
        return self._record.agent_uri

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def description(self) -> str:
        return self._record.description

    @property
    def registration_file(self) -> RegistrationFile:
        """Return the live record owned by this agent."""
        return self._record

    @property
    def dirty_metadata(self) -> frozenset[str]:
        """Return on-chain metadata keys changed since the last write."""
        return frozenset(self._dirty_metadata)

    @property
    def write_in_progress(self) -> bool:
        return self._guard.held

    # Mutators

    def update_info(
        self,
        name: str | None = None,
        description: str | None = None,
        image: str | None = None,
    ) -> Agent:
        """Update display fields; ``None`` leaves a field unchanged."""
        if name is not None:
            self._record.name = name
        if description is not None:
            self._record.description = description
        if image is not None:
            self._record.image = image
        return self._touch()

    def set_mcp(self, endpoint: str, version: str = DEFAULT_MCP_VERSION) -> Agent:
        """Replace the MCP endpoint."""
        return self._replace_endpoint(EndpointType.MCP, endpoint, {"version": version})

    def set_a2a(self, agent_card: str, version: str = DEFAULT_A2A_VERSION) -> Agent:
        """Replace the A2A agent card endpoint."""
        return self._replace_endpoint(EndpointType.A2A, agent_card, {"version": version})

    def set_ens(self, name: str, version: str = DEFAULT_ENS_VERSION) -> Agent:
        """Replace the ENS endpoint and mark the on-chain name as changed."""
        self._dirty_metadata.add(METADATA_KEY_ENS)
        return self._replace_endpoint(EndpointType.ENS, name, {"version": version})

    def set_agent_wallet(self, address: str, chain_id: int | None = None) -> Agent:
        """Set the agent wallet; the chain id defaults at write time."""
        if not _ADDRESS_PATTERN.match(address):
            raise RecordValidationError(f"invalid wallet address: {address!r}")
        self._record.wallet_address = address
        self._record.wallet_chain_id = chain_id
        self._dirty_metadata.add(METADATA_KEY_WALLET)
        return self._touch()

    def set_active(self, active: bool) -> Agent:
        self._record.active = active
        return self._touch()

    def set_x402_support(self, supported: bool) -> Agent:
        self._record.x402support = supported
        return self._touch()

    def set_trust(
        self,
        reputation: bool = False,
        crypto_economic: bool = False,
        tee_attestation: bool = False,
    ) -> Agent:
        """Replace the advertised trust models."""
        selected = (
            (reputation, TrustModel.REPUTATION),
            (crypto_economic, TrustModel.CRYPTO_ECONOMIC),
            (tee_attestation, TrustModel.TEE_ATTESTATION),
        )
        self._record.trust_models = [model.value for enabled, model in selected if enabled]
        return self._touch()

    def set_metadata(self, metadata: Mapping[str, Any]) -> Agent:
        """Merge on-chain metadata entries; each key is flushed on next write."""
        merged = dict(self._record.metadata)
        merged.update(metadata)
        self._record.metadata = merged
        self._dirty_metadata.update(metadata.keys())
        return self._touch()

    def remove_endpoint(
        self,
        endpoint_type: str | EndpointType | None = None,
        value: str | None = None,
    ) -> Agent:
        """Remove endpoints matching type and/or value; no filters removes all."""
        wanted_type = endpoint_type.value if isinstance(endpoint_type, EndpointType) else endpoint_type
        self._record.endpoints = [
            endpoint
            for endpoint in self._record.endpoints
            if not (
                (wanted_type is None or endpoint.type == wanted_type)
                and (value is None or endpoint.value == value)
            )
        ]
        return self._touch()

    # Writes

    @public_api_instrumented(logger=_LOGGER, component_id=COMPONENT_ID)
    async def register(self, backend: StorageBackend) -> RegistrationResult:
        """Upload the record to ``backend`` and point the registry at it.

        A new agent is first registered with an empty URI so the uploaded
        document can carry its own agent id.
        """
        with self._guard:
            self._validate_for_write()
            if self._record.agent_id is None:
                await self._register_without_uri()
            identifier = await backend.upload_registration_file(self._record, self._chain_context())
            return await self._link(backend.uri_for(identifier))

    async def register_ipfs(self) -> RegistrationResult:
        """Register through the configured IPFS backend."""
        if self._ipfs is None:
            raise ConfigurationError(message="IPFS storage is not configured", backend="ipfs")
        return await self.register(self._ipfs)

    async def register_arweave(self) -> RegistrationResult:
        """Register through the configured Arweave backend."""
        if self._arweave is None:
            raise ConfigurationError(message="Arweave storage is not configured", backend="arweave")
        return await self.register(self._arweave)

    @public_api_instrumented(logger=_LOGGER, component_id=COMPONENT_ID, id_fields=("agent_uri",))
    async def register_http(self, *, agent_uri: str) -> RegistrationResult:
        """Point the registry at a document the caller hosts; nothing is uploaded."""
        scheme, _ = split_uri(agent_uri)
        if scheme not in (SCHEME_HTTP, SCHEME_HTTPS):
            raise RecordValidationError(f"agent URI must be http(s): {agent_uri!r}")
        with self._guard:
            self._validate_for_write()
            if self._record.agent_id is None:
                await self._register_without_uri()
            return await self._link(agent_uri)

    def _validate_for_write(self) -> None:
        self._record.validate_for_write()
        context = self._chain_context()
        if self._record.wallet_address and not (self._record.wallet_chain_id or context.chain_id):
            with log_context({fields.AGENT_ID: self._record.agent_id}):
                _LOGGER.warning(
                    "Wallet %s has no chain id and no chain context; the document will "
                    "fall back to chain 1",
                    self._record.wallet_address,
                )

    async def _register_without_uri(self) -> None:
        token_id, tx_hash = await self._registry.register(agent_uri="")
        agent_id = format_agent_id(self._registry.chain_id, token_id)
        self._record.agent_id = agent_id
        with log_context({fields.AGENT_ID: agent_id, fields.TX_HASH: tx_hash}):
            _LOGGER.info("Registered agent without URI")

    async def _link(self, agent_uri: str) -> RegistrationResult:
        """Flush metadata, update the URI, wait, then record the new URI."""
        agent_id = self._record.agent_id or ""
        token_id = self._record.token_id()
        if token_id is None:
            raise RecordValidationError("agent has no id after registration")

        await self._flush_metadata(token_id)
        tx_hash = await self._registry.set_agent_uri(token_id=token_id, agent_uri=agent_uri)
        confirmation = await await_confirmation(
            self._registry,
            tx_hash=tx_hash,
            timeout_seconds=self._confirmation_timeout_seconds,
        )
        self._dirty_metadata.clear()
        self._record.agent_uri = agent_uri
        with log_context(
            {
                fields.AGENT_ID: agent_id,
                fields.URI: agent_uri,
                fields.TX_HASH: tx_hash,
                fields.OUTCOME: confirmation.status.value,
            }
        ):
            _LOGGER.info("Agent URI updated")
        return RegistrationResult(
            agent_id=agent_id,
            agent_uri=agent_uri,
            confirmation=confirmation,
            registration_file=self._record,
        )

    async def _flush_metadata(self, token_id: int) -> None:
        """Write changed on-chain metadata; failures are logged, not raised."""
        for key in sorted(self._dirty_metadata):
            try:
                await self._registry.set_metadata(
                    token_id=token_id,
                    key=key,
                    value=self._metadata_value(key),
                )
            except Exception as exc:  # noqa: BLE001
                with log_context(
                    {
                        fields.AGENT_ID: self._record.agent_id,
                        fields.ERROR_TYPE: type(exc).__name__,
                    }
                ):
                    _LOGGER.warning("Failed to update on-chain metadata %r: %s", key, exc)

    def _metadata_value(self, key: str) -> bytes:
        if key == METADATA_KEY_WALLET:
            return bytes.fromhex((self._record.wallet_address or "")[2:])
        if key == METADATA_KEY_ENS:
            for endpoint in self._record.endpoints:
                if endpoint.type == EndpointType.ENS.value:
                    return endpoint.value.encode("utf-8")
            return b""
        value = self._record.metadata.get(key)
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        return json.dumps(value).encode("utf-8")

    def _guard_label(self) -> str:
        return f"agent {self._record.agent_id or '<unregistered>'}"

    def _chain_context(self) -> ChainContext:
        return ChainContext(chain_id=self._registry.chain_id, registry_address=self._registry.address)

    def _replace_endpoint(self, endpoint_type: EndpointType, value: str, meta: dict[str, Any]) -> Agent:
        endpoints = [ep for ep in self._record.endpoints if ep.type != endpoint_type.value]
        endpoints.append(Endpoint(type=endpoint_type, value=value, meta=meta))
        self._record.endpoints = endpoints
        return self._touch()

    def _touch(self) -> Agent:
        self._record.updated_at = int(time.time())
        return self
