"""On-chain registry collaborators and typed confirmation results.

Contract calls live outside this package. Callers inject objects satisfying
``IdentityRegistry`` and ``ReputationRegistry``; tests inject fakes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from packages.agent0_shared.logging import fields, get_logger, log_context
from packages.agent0_storage.errors import ConfirmationTimeout

_LOGGER = get_logger(__name__)


class IdentityRegistry(Protocol):
    """Protocol for the agent identity registry contract."""

    @property
    def chain_id(self) -> int:
        """Return the chain id the registry is deployed on."""

    @property
    def address(self) -> str:
        """Return the registry contract address."""

    async def register(self, *, agent_uri: str) -> tuple[int, str]:
        """Register a new agent with one URI; return ``(token_id, tx_hash)``."""

    async def set_agent_uri(self, *, token_id: int, agent_uri: str) -> str:
        """Point one agent at a new URI; return the transaction hash."""

    async def get_agent_uri(self, *, token_id: int) -> str:
        """Return the agent's current URI (empty when never set)."""

    async def set_metadata(self, *, token_id: int, key: str, value: bytes) -> str:
        """Write one on-chain metadata entry; return the transaction hash."""

    async def wait_for_transaction(self, *, tx_hash: str, timeout_seconds: float) -> None:
        """Wait until one transaction is mined or raise ``TimeoutError``."""


class ReputationRegistry(Protocol):
    """Protocol for the reputation registry contract."""

    @property
    def chain_id(self) -> int:
        """Return the chain id the registry is deployed on."""

    @property
    def client_address(self) -> str:
        """Return the address that submits feedback."""

    async def give_feedback(
        self,
        *,
        token_id: int,
        score: int,
        tag1: str,
        tag2: str,
        feedback_uri: str,
        feedback_hash: bytes,
    ) -> str:
        """Submit one feedback entry; return the transaction hash."""

    async def wait_for_transaction(self, *, tx_hash: str, timeout_seconds: float) -> None:
        """Wait until one transaction is mined or raise ``TimeoutError``."""


class ConfirmationStatus(str, Enum):
    """Observed state of one submitted transaction."""

    CONFIRMED = "confirmed"
    SUBMITTED_UNCONFIRMED = "submitted_unconfirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class ConfirmationResult:
    """Typed outcome of waiting for one transaction."""

    status: ConfirmationStatus
    tx_hash: str
    error: str = ""

    @property
    def confirmed(self) -> bool:
        """Return True when the transaction was observed as mined."""
        return self.status is ConfirmationStatus.CONFIRMED


class _TransactionWaiter(Protocol):
    async def wait_for_transaction(self, *, tx_hash: str, timeout_seconds: float) -> None:
        """Wait until one transaction is mined or raise ``TimeoutError``."""


async def await_confirmation(
    registry: _TransactionWaiter,
    *,
    tx_hash: str,
    timeout_seconds: float,
) -> ConfirmationResult:
    """Wait for one transaction without ever raising.

    A timeout only means confirmation was not observed in time; the
    transaction was submitted and may still be mined.
    """
    try:
        await registry.wait_for_transaction(tx_hash=tx_hash, timeout_seconds=timeout_seconds)
    except (TimeoutError, asyncio.TimeoutError):
        advisory = ConfirmationTimeout(
            message=(
                f"Transaction {tx_hash} not confirmed within {timeout_seconds:g}s; "
                "it was submitted and may still confirm"
            ),
            tx_hash=tx_hash,
            timeout_seconds=timeout_seconds,
        )
        _log_confirmation(tx_hash, ConfirmationStatus.SUBMITTED_UNCONFIRMED, str(advisory))
        return ConfirmationResult(
            status=ConfirmationStatus.SUBMITTED_UNCONFIRMED,
            tx_hash=tx_hash,
            error=f"{type(advisory).__name__}: {advisory}",
        )
    except Exception as exc:  # noqa: BLE001
        error = f"{type(exc).__name__}: {exc}"
        _log_confirmation(tx_hash, ConfirmationStatus.FAILED, error)
        return ConfirmationResult(status=ConfirmationStatus.FAILED, tx_hash=tx_hash, error=error)

    return ConfirmationResult(status=ConfirmationStatus.CONFIRMED, tx_hash=tx_hash)


def _log_confirmation(tx_hash: str, status: ConfirmationStatus, error: str) -> None:
    with log_context(
        {
            fields.EVENT: fields.CONFIRMATION_EVENT,
            fields.TX_HASH: tx_hash,
            fields.OUTCOME: status.value,
        }
    ):
        _LOGGER.warning("Transaction confirmation not observed: %s", error)
