"""In-memory collaborators shared by storage test modules."""

from __future__ import annotations

import asyncio
import hashlib
import json
from typing import Any, Mapping, Sequence

from packages.agent0_storage.domain import Annotation, ChainContext, Feedback, RegistrationFile
from packages.agent0_storage.formatting import (
    build_feedback_document,
    format_registration_document,
    serialize_document,
)
from packages.agent0_storage.uris import build_uri

REGISTRY_ADDRESS = "0x8004a6090Cd10A7288092483047B097295Fb8847"
CLIENT_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"


class FakeBackend:
    """Backend storing payloads in memory, optionally failing every upload."""

    def __init__(
        self,
        *,
        name: str,
        scheme: str,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.scheme = scheme
        self.error = error
        self.gate = gate
        self.objects: dict[str, bytes] = {}
        self.uploads: list[tuple[bytes, tuple[Annotation, ...]]] = []

    async def upload(self, data: bytes, annotations: Sequence[Annotation] = ()) -> str:
        self.uploads.append((data, tuple(annotations)))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        identifier = f"{self.name}-{hashlib.sha256(data).hexdigest()[:16]}"
        self.objects[identifier] = data
        return identifier

    async def upload_json(
        self,
        document: Mapping[str, Any],
        annotations: Sequence[Annotation] = (),
    ) -> str:
        return await self.upload(serialize_document(document), annotations)

    async def upload_registration_file(
        self,
        record: RegistrationFile,
        chain_context: ChainContext | None = None,
    ) -> str:
        return await self.upload_json(format_registration_document(record, chain_context))

    async def upload_feedback_file(
        self,
        feedback: Feedback,
        *,
        agent_id: str,
        client_address: str,
        chain_context: ChainContext | None = None,
    ) -> str:
        document = build_feedback_document(
            feedback,
            agent_id=agent_id,
            client_address=client_address,
            chain_context=chain_context,
        )
        return await self.upload_json(document)

    async def resolve(self, identifier: str) -> bytes:
        return self.objects[identifier.split("://", 1)[-1]]

    async def resolve_json(self, identifier: str) -> dict[str, Any]:
        return json.loads(await self.resolve(identifier))

    def uri_for(self, identifier: str) -> str:
        return build_uri(self.scheme, identifier)

    async def aclose(self) -> None:
        return None


class FakeIdentityRegistry:
    """Identity registry recording every call in order."""

    def __init__(
        self,
        *,
        chain_id: int = 11155111,
        next_token_id: int = 42,
        confirm_error: BaseException | None = None,
        metadata_error: Exception | None = None,
        register_gate: asyncio.Event | None = None,
    ) -> None:
        self.chain_id = chain_id
        self.address = REGISTRY_ADDRESS
        self.next_token_id = next_token_id
        self.confirm_error = confirm_error
        self.metadata_error = metadata_error
        self.register_gate = register_gate
        self.calls: list[tuple[str, Any]] = []
        self.uris: dict[int, str] = {}
        self.metadata: dict[tuple[int, str], bytes] = {}

    async def register(self, *, agent_uri: str) -> tuple[int, str]:
        self.calls.append(("register", agent_uri))
        if self.register_gate is not None:
            await self.register_gate.wait()
        token_id = self.next_token_id
        self.next_token_id += 1
        self.uris[token_id] = agent_uri
        return token_id, f"0xregister{token_id}"

    async def set_agent_uri(self, *, token_id: int, agent_uri: str) -> str:
        self.calls.append(("set_agent_uri", (token_id, agent_uri)))
        self.uris[token_id] = agent_uri
        return f"0xseturi{token_id}"

    async def get_agent_uri(self, *, token_id: int) -> str:
        self.calls.append(("get_agent_uri", token_id))
        return self.uris.get(token_id, "")

    async def set_metadata(self, *, token_id: int, key: str, value: bytes) -> str:
        self.calls.append(("set_metadata", (token_id, key)))
        if self.metadata_error is not None:
            raise self.metadata_error
        self.metadata[(token_id, key)] = value
        return f"0xmeta{token_id}{key}"

    async def wait_for_transaction(self, *, tx_hash: str, timeout_seconds: float) -> None:
        self.calls.append(("wait_for_transaction", tx_hash))
        if self.confirm_error is not None:
            raise self.confirm_error


class FakeReputationRegistry:
    """Reputation registry recording submitted feedback."""

    def __init__(self, *, chain_id: int = 11155111) -> None:
        self.chain_id = chain_id
        self.client_address = CLIENT_ADDRESS
        self.submissions: list[dict[str, Any]] = []

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
        self.submissions.append(
            {
                "token_id": token_id,
                "score": score,
                "tag1": tag1,
                "tag2": tag2,
                "feedback_uri": feedback_uri,
                "feedback_hash": feedback_hash,
            }
        )
        return f"0xfeedback{len(self.submissions)}"

    async def wait_for_transaction(self, *, tx_hash: str, timeout_seconds: float) -> None:
        return None
