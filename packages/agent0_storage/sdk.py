"""Top-level composition of settings, HTTP, backends and registries."""

from __future__ import annotations

from packages.agent0_shared.config import StorageSettings
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_shared.logging import fields, get_logger, log_context, public_api_instrumented
from packages.agent0_storage.agent import Agent
from packages.agent0_storage.builder import StorageBackends, build_storage_backends, build_uri_resolver
from packages.agent0_storage.chain import IdentityRegistry, ReputationRegistry
from packages.agent0_storage.domain import Feedback, RegistrationFile, parse_token_id
from packages.agent0_storage.errors import ConfigurationError, ResolutionError
from packages.agent0_storage.formatting import parse_registration_document
from packages.agent0_storage.orchestrator import FeedbackResult, FeedbackWriter
from packages.agent0_storage.resolver import LoadStatus, UriResolver

_LOGGER = get_logger(__name__)
COMPONENT_ID = "agent0_storage.sdk"


class AgentStorageSdk:
    """Entry point owning the shared HTTP client and the configured backends.

    Backends are built once here and injected into every ``Agent``; nothing
    is looked up globally.
    """

    def __init__(
        self,
        *,
        settings: StorageSettings,
        identity_registry: IdentityRegistry,
        reputation_registry: ReputationRegistry | None = None,
        http: AsyncHttpClient | None = None,
        backends: StorageBackends | None = None,
    ) -> None:
        self._settings = settings
        self._identity_registry = identity_registry
        self._reputation_registry = reputation_registry
        self._owns_http = http is None
        self._http = http or AsyncHttpClient(timeout_seconds=settings.http_timeout_seconds)
        self._backends = backends or build_storage_backends(settings, self._http)
        self._resolver = build_uri_resolver(settings, self._http, self._backends)

    @property
    def backends(self) -> StorageBackends:
        return self._backends

    @property
    def resolver(self) -> UriResolver:
        """Return the URI resolver shared by agent loads."""
        return self._resolver

    async def aclose(self) -> None:
        """Close backends and the HTTP client when owned."""
        for backend in self._backends.by_priority():
            await backend.aclose()
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> AgentStorageSdk:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    def create_agent(self, name: str, description: str, image: str | None = None) -> Agent:
        """Create an unregistered agent wrapper around a fresh record."""
        record = RegistrationFile(name=name, description=description, image=image)
        return self._wrap(record)

    @public_api_instrumented(logger=_LOGGER, component_id=COMPONENT_ID, id_fields=("agent_id",))
    async def load_agent(self, *, agent_id: str) -> Agent:
        """Load an agent by reading its URI on-chain and resolving the document.

        An agent registered without a URI loads as an empty record carrying
        only its id; the caller fills it in and registers again.
        """
        token_id = parse_token_id(agent_id)
        agent_uri = await self._identity_registry.get_agent_uri(token_id=token_id)
        result = await self._resolver.load(agent_uri)

        if result.status is LoadStatus.LOADED:
            record = parse_registration_document(
                result.document,
                agent_uri=agent_uri,
                agent_id=agent_id,
            )
            return self._wrap(record)

        if result.status is LoadStatus.UNSUPPORTED:
            raise ResolutionError(
                message=f"Agent {agent_id} has an unsupported URI: {agent_uri}",
                identifier=agent_uri,
            )

        with log_context({fields.AGENT_ID: agent_id}):
            _LOGGER.info("Agent has no storage URI yet; loading an empty record")
        return self._wrap(
            RegistrationFile(agent_id=agent_id, agent_uri=None, name="", description="")
        )

    async def give_feedback(self, *, agent_id: str, feedback: Feedback) -> FeedbackResult:
        """Store feedback with ledger-then-pinning fallback and submit it on-chain."""
        if self._reputation_registry is None:
            raise ConfigurationError(message="No reputation registry configured")
        writer = FeedbackWriter(
            reputation_registry=self._reputation_registry,
            backends=self._backends.by_priority(),
            identity_registry_address=self._identity_registry.address,
            confirmation_timeout_seconds=self._settings.confirmation_timeout_seconds,
        )
        return await writer.give_feedback(agent_id=agent_id, feedback=feedback)

    def _wrap(self, record: RegistrationFile) -> Agent:
        return Agent(
            registration_file=record,
            identity_registry=self._identity_registry,
            ipfs=self._backends.ipfs,
            arweave=self._backends.arweave,
            confirmation_timeout_seconds=self._settings.confirmation_timeout_seconds,
        )
