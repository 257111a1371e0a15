"""Write orchestration: single-writer guard and backend fallback."""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import Callable, Sequence

from eth_utils import keccak

from packages.agent0_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
    record_backend_failure,
)
from packages.agent0_storage.annotations import generate_feedback_annotations
from packages.agent0_storage.backends.interfaces import StorageBackend
from packages.agent0_storage.chain import ConfirmationResult, ReputationRegistry, await_confirmation
from packages.agent0_storage.domain import Annotation, ChainContext, Feedback, parse_token_id
from packages.agent0_storage.errors import ConcurrencyError, RecordValidationError, StorageError
from packages.agent0_storage.formatting import build_feedback_document, serialize_document

_LOGGER = get_logger(__name__)
COMPONENT_ID = "agent0_storage.feedback"
ZERO_HASH = b"\x00" * 32


class WriteGuard:
    """Per-entity in-progress flag used as a ``with`` block around writes.

    Entering while held raises ``ConcurrencyError`` immediately. Leaving the
    block always releases the flag, whatever happened inside it. ``entity`` may
    be a callable so the label follows an id assigned after construction.
    """

    def __init__(self, entity: str | Callable[[], str]) -> None:
        self._entity = entity
        self._held = False

    @property
    def entity(self) -> str:
        """Return the current label of the guarded entity."""
        if callable(self._entity):
            return self._entity()
        return self._entity

    @property
    def held(self) -> bool:
        """Return True while a write is in progress."""
        return self._held

    def __enter__(self) -> WriteGuard:
        if self._held:
            entity = self.entity
            raise ConcurrencyError(
                message=f"A write for {entity} is already in progress",
                entity=entity,
            )
        self._held = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self._held = False


@dataclass(frozen=True)
class FeedbackResult:
    """Outcome of one feedback write.

    ``feedback_uri`` is empty when every storage backend failed and the
    feedback was recorded on-chain only.
    """

    agent_id: str
    tx_hash: str
    feedback_uri: str
    backend: str
    feedback_hash: bytes
    failures: tuple[str, ...]
    confirmation: ConfirmationResult

    @property
    def on_chain_only(self) -> bool:
        """Return True when no storage backend accepted the document."""
        return self.feedback_uri == ""


class FeedbackWriter:
    """Store feedback documents with ordered backend fallback.

    Backends are tried in the order given (ledger before pinning when built by
    ``StorageBackends.by_priority``). A backend failure is logged and counted
    but never stops the on-chain feedback submission.
    """

    def __init__(
        self,
        *,
        reputation_registry: ReputationRegistry,
        backends: Sequence[StorageBackend],
        identity_registry_address: str | None = None,
        confirmation_timeout_seconds: float = 30.0,
    ) -> None:
        self._registry = reputation_registry
        self._backends = tuple(backends)
        self._identity_registry_address = identity_registry_address
        self._confirmation_timeout_seconds = confirmation_timeout_seconds

    @property
    def backends(self) -> tuple[StorageBackend, ...]:
        """Return backends in the order they are attempted."""
        return self._backends

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=COMPONENT_ID,
        id_fields=("agent_id",),
    )
    async def give_feedback(self, *, agent_id: str, feedback: Feedback) -> FeedbackResult:
        """Store one feedback document, then submit the score on-chain."""
        if feedback.score is None:
            raise RecordValidationError("feedback score is required for on-chain submission")
        token_id = parse_token_id(agent_id)
        chain_context = ChainContext(
            chain_id=self._registry.chain_id,
            registry_address=self._identity_registry_address,
        )
        client_address = self._registry.client_address

        payload = b""
        annotations: list[Annotation] = []
        if self._backends:
            payload = serialize_document(
                build_feedback_document(
                    feedback,
                    agent_id=agent_id,
                    client_address=client_address,
                    chain_context=chain_context,
                )
            )
            annotations = generate_feedback_annotations(
                feedback,
                self._registry.chain_id,
                agent_id=agent_id,
                client_address=client_address,
            )

        feedback_uri = ""
        backend_name = ""
        failures: list[str] = []
        for backend in self._backends:
            try:
                identifier = await backend.upload(payload, annotations)
            except StorageError as exc:
                failures.append(f"{backend.name}: {type(exc).__name__}: {exc}")
                self._log_fallback(backend.name, agent_id, exc)
                continue
            feedback_uri = backend.uri_for(identifier)
            backend_name = backend.name
            break

        if feedback_uri == "" and self._backends:
            with log_context({fields.AGENT_ID: agent_id}):
                _LOGGER.warning("All storage backends failed; recording feedback on-chain only")

        feedback_hash = keccak(payload) if feedback_uri else ZERO_HASH
        tx_hash = await self._registry.give_feedback(
            token_id=token_id,
            score=feedback.score,
            tag1=feedback.tag1 or "",
            tag2=feedback.tag2 or "",
            feedback_uri=feedback_uri,
            feedback_hash=feedback_hash,
        )
        confirmation = await await_confirmation(
            self._registry,
            tx_hash=tx_hash,
            timeout_seconds=self._confirmation_timeout_seconds,
        )
        return FeedbackResult(
            agent_id=agent_id,
            tx_hash=tx_hash,
            feedback_uri=feedback_uri,
            backend=backend_name,
            feedback_hash=feedback_hash,
            failures=tuple(failures),
            confirmation=confirmation,
        )

    def _log_fallback(self, backend: str, agent_id: str, exc: StorageError) -> None:
        record_backend_failure(
            backend=backend,
            operation="give_feedback",
            error_type=type(exc).__name__,
        )
        with log_context(
            {
                fields.EVENT: fields.BACKEND_FALLBACK_EVENT,
                fields.BACKEND: backend,
                fields.AGENT_ID: agent_id,
                fields.ERROR_TYPE: type(exc).__name__,
            }
        ):
            _LOGGER.warning("Storage backend %s failed, trying next: %s", backend, exc)
