"""Unit tests for SDK composition, agent loading and feedback routing."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from packages.agent0_shared.config import StorageSettings
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_storage.builder import StorageBackends, build_storage_backends
from packages.agent0_storage.domain import Feedback
from packages.agent0_storage.errors import ConfigurationError, QuotaError, ResolutionError
from packages.agent0_storage.sdk import AgentStorageSdk
from tests.storage.fakes import FakeBackend, FakeIdentityRegistry, FakeReputationRegistry


def _http() -> AsyncHttpClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    return AsyncHttpClient(transport=httpx.MockTransport(handler))


def test_registered_agent_loads_back_through_its_backend() -> None:
    """A registered agent should load back with the same record content."""
    registry = FakeIdentityRegistry(next_token_id=42)
    ipfs = FakeBackend(name="ipfs", scheme="ipfs")

    async def _scenario() -> None:
        sdk = AgentStorageSdk(
            settings=StorageSettings(),
            identity_registry=registry,
            http=_http(),
            backends=StorageBackends(ipfs=ipfs),
        )
        async with sdk:
            agent = sdk.create_agent("Weather Bot", "Forecasts", image="https://img.example.com/a.png")
            agent.set_mcp("https://mcp.example.com").set_trust(reputation=True).set_active(True)
            registered = await agent.register_ipfs()

            loaded = await sdk.load_agent(agent_id=registered.agent_id)

        record = loaded.registration_file
        assert loaded.agent_id == "11155111:42"
        assert loaded.agent_uri == registered.agent_uri
        assert record.name == "Weather Bot"
        assert record.description == "Forecasts"
        assert record.image == "https://img.example.com/a.png"
        assert [(ep.type, ep.value) for ep in record.endpoints] == [("MCP", "https://mcp.example.com")]
        assert record.trust_models == ["reputation"]
        assert record.active is True

    asyncio.run(_scenario())
    assert ("get_agent_uri", 42) in registry.calls


def test_agent_without_uri_loads_as_empty_record() -> None:
    """An agent registered with an empty URI loads with only its id set."""
    registry = FakeIdentityRegistry()
    registry.uris[7] = ""

    async def _scenario():
        async with AgentStorageSdk(
            settings=StorageSettings(),
            identity_registry=registry,
            http=_http(),
            backends=StorageBackends(),
        ) as sdk:
            return await sdk.load_agent(agent_id="11155111:7")

    agent = asyncio.run(_scenario())

    assert agent.agent_id == "11155111:7"
    assert agent.agent_uri is None
    assert agent.name == ""
    assert agent.registration_file.endpoints == []


def test_agent_with_unsupported_uri_raises_resolution_error() -> None:
    """Unknown URI schemes on-chain should surface as ResolutionError."""
    registry = FakeIdentityRegistry()
    registry.uris[8] = "ftp://example.com/agent.json"

    async def _scenario():
        async with AgentStorageSdk(
            settings=StorageSettings(),
            identity_registry=registry,
            http=_http(),
            backends=StorageBackends(),
        ) as sdk:
            return await sdk.load_agent(agent_id="11155111:8")

    with pytest.raises(ResolutionError) as exc_info:
        asyncio.run(_scenario())
    assert exc_info.value.identifier == "ftp://example.com/agent.json"


def test_give_feedback_prefers_ledger_then_pinning() -> None:
    """Feedback should try Arweave first and fall back to IPFS."""
    arweave = FakeBackend(name="arweave", scheme="ar", error=QuotaError(message="no credits"))
    ipfs = FakeBackend(name="ipfs", scheme="ipfs")
    reputation = FakeReputationRegistry()

    async def _scenario():
        async with AgentStorageSdk(
            settings=StorageSettings(),
            identity_registry=FakeIdentityRegistry(),
            reputation_registry=reputation,
            http=_http(),
            backends=StorageBackends(ipfs=ipfs, arweave=arweave),
        ) as sdk:
            return await sdk.give_feedback(agent_id="11155111:3", feedback=Feedback(score=77))

    result = asyncio.run(_scenario())

    assert len(arweave.uploads) == 1
    assert result.backend == "ipfs"
    assert reputation.submissions[0]["feedback_uri"] == result.feedback_uri


def test_give_feedback_without_reputation_registry_is_configuration_error() -> None:
    """Feedback needs a reputation registry."""

    async def _scenario():
        async with AgentStorageSdk(
            settings=StorageSettings(),
            identity_registry=FakeIdentityRegistry(),
            http=_http(),
            backends=StorageBackends(),
        ) as sdk:
            await sdk.give_feedback(agent_id="1:1", feedback=Feedback(score=1))

    with pytest.raises(ConfigurationError):
        asyncio.run(_scenario())


def test_build_storage_backends_honors_enabled_flags() -> None:
    """Only enabled backends are constructed; ordering puts Arweave first."""
    settings = StorageSettings.model_validate(
        {
            "signer_private_key": "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318",
            "ipfs": {"enabled": True, "provider": "node"},
            "arweave": {"enabled": True},
        }
    )

    async def _scenario() -> None:
        http = _http()
        try:
            backends = build_storage_backends(settings, http)
            assert [backend.name for backend in backends.by_priority()] == ["arweave", "ipfs"]
            assert build_storage_backends(StorageSettings(), http).by_priority() == ()
        finally:
            await http.aclose()

    asyncio.run(_scenario())


def test_enabled_pinata_without_jwt_fails_at_sdk_construction() -> None:
    """Credential problems should fail when the SDK is built, not on first use."""
    settings = StorageSettings.model_validate({"ipfs": {"enabled": True}})

    async def _scenario() -> None:
        http = _http()
        try:
            AgentStorageSdk(settings=settings, identity_registry=FakeIdentityRegistry(), http=http)
        finally:
            await http.aclose()

    with pytest.raises(ConfigurationError):
        asyncio.run(_scenario())
