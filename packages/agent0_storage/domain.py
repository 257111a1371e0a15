"""Domain contracts for agent registration storage."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.agent0_storage.errors import RecordValidationError


class EndpointType(str, Enum):
    """Well-known endpoint protocol tags."""

    MCP = "MCP"
    A2A = "A2A"
    ENS = "ENS"
    DID = "DID"
    WALLET = "agentWallet"


class TrustModel(str, Enum):
    """Trust models an agent can advertise."""

    REPUTATION = "reputation"
    CRYPTO_ECONOMIC = "crypto-economic"
    TEE_ATTESTATION = "tee-attestation"


class Endpoint(BaseModel):
    """One advertised endpoint; several may share the same type."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    value: str
    meta: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", mode="before")
    @classmethod
    def _plain_type(cls, value: Any) -> Any:
        """Store enum members as their plain string value."""
        if isinstance(value, Enum):
            return value.value
        return value


class RegistrationFile(BaseModel):
    """Mutable in-memory agent metadata record.

    Owned exclusively by the ``Agent`` wrapper that created or loaded it.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    agent_id: str | None = None
    agent_uri: str | None = None
    name: str
    description: str
    image: str | None = None
    endpoints: list[Endpoint] = Field(default_factory=list)
    trust_models: list[str] = Field(default_factory=list)
    owners: list[str] = Field(default_factory=list)
    operators: list[str] = Field(default_factory=list)
    active: bool = False
    x402support: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    updated_at: int = Field(default_factory=lambda: int(time.time()))
    wallet_address: str | None = None
    wallet_chain_id: int | None = None

    def validate_for_write(self) -> None:
        """Raise when the record is missing fields every document requires."""
        if self.name.strip() == "":
            raise RecordValidationError("agent name must be non-empty before writing")
        if self.description.strip() == "":
            raise RecordValidationError("agent description must be non-empty before writing")

    def token_id(self) -> int | None:
        """Return the numeric registry token id parsed from ``agent_id``."""
        if not self.agent_id:
            return None
        return parse_token_id(self.agent_id)

    def has_endpoint_type(self, endpoint_type: str) -> bool:
        """Return True when at least one endpoint has the given type."""
        return any(endpoint.type == endpoint_type for endpoint in self.endpoints)


@dataclass(frozen=True)
class ChainContext:
    """Chain id and identity registry address a document is written for."""

    chain_id: int | None = None
    registry_address: str | None = None


@dataclass(frozen=True)
class Annotation:
    """One searchable name/value tag attached to an upload."""

    name: str
    value: str


def parse_token_id(agent_id: str) -> int:
    """Parse the token id from ``<chainId>:<tokenId>`` (or a bare token id)."""
    token = agent_id.rsplit(":", 1)[-1].strip()
    try:
        return int(token, 10)
    except ValueError as exc:
        raise RecordValidationError(f"agent id has no numeric token id: {agent_id!r}") from exc


def format_agent_id(chain_id: int, token_id: int) -> str:
    """Return the canonical ``<chainId>:<tokenId>`` agent id."""
    return f"{chain_id}:{token_id}"


class Feedback(BaseModel):
    """Reviewer feedback content stored off-chain next to an on-chain score."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    score: int | None = Field(default=None, ge=0, le=100)
    tag1: str | None = None
    tag2: str | None = None
    text: str | None = None
    capability: str | None = None
    skill: str | None = None
    context: dict[str, Any] | None = None
    proof_of_payment: dict[str, Any] | None = None
