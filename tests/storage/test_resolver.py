"""Unit tests for storage URI resolution."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from packages.agent0_shared.config import StorageSettings
from packages.agent0_shared.http import AsyncHttpClient
from packages.agent0_storage.builder import StorageBackends, build_uri_resolver
from packages.agent0_storage.domain import ChainContext, RegistrationFile
from packages.agent0_storage.errors import DocumentParseError, ResolutionError
from packages.agent0_storage.formatting import format_registration_document
from packages.agent0_storage.gateways import GatewaySet
from packages.agent0_storage.resolver import LoadStatus, UriResolver
from tests.storage.fakes import FakeBackend


def _unused_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    return httpx.MockTransport(handler)


def test_empty_uri_is_unconfigured_sentinel() -> None:
    """Blank URIs should load as UNCONFIGURED without raising or fetching."""

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=_unused_transport()) as http:
            resolver = UriResolver(http=http)
            for uri in ("", "   "):
                result = await resolver.load(uri)
                assert result.status is LoadStatus.UNCONFIGURED
                assert result.document is None
                assert result.loaded is False

    asyncio.run(_scenario())


def test_unknown_scheme_is_unsupported_sentinel() -> None:
    """Unrecognized schemes should be a distinguished outcome, not an error."""

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=_unused_transport()) as http:
            result = await UriResolver(http=http).load("ftp://example.com/doc.json")
            assert result.status is LoadStatus.UNSUPPORTED
            assert result.scheme == "ftp"

    asyncio.run(_scenario())


def test_uri_round_trip_through_configured_backend() -> None:
    """Uploading then loading the URI should return the formatted document."""
    record = RegistrationFile(name="X", description="Y", agent_id="11155111:3", active=True)
    context = ChainContext(chain_id=11155111, registry_address="0xabc")
    backend = FakeBackend(name="ipfs", scheme="ipfs")

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=_unused_transport()) as http:
            identifier = await backend.upload_registration_file(record, context)
            uri = backend.uri_for(identifier)
            result = await UriResolver(http=http, ipfs=backend).load(uri)

            assert uri.startswith("ipfs://")
            assert result.status is LoadStatus.LOADED
            assert result.document == format_registration_document(record, context)

    asyncio.run(_scenario())


def test_scheme_without_backend_races_fallback_gateways() -> None:
    """Without a configured client the fallback gateway set is raced in parallel."""
    hosts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "ar1.test":
            return httpx.Response(200, json={"name": "X"}, request=request)
        return httpx.Response(502, request=request)

    gateways = GatewaySet(protocol="ar", urls=("https://ar0.test", "https://ar1.test"))

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as http:
            resolver = UriResolver(http=http, arweave_gateways=gateways)
            result = await resolver.load("ar://tx123")
            assert result.document == {"name": "X"}

    asyncio.run(_scenario())
    assert sorted(hosts) == ["ar0.test", "ar1.test"]


def test_http_uri_is_fetched_directly() -> None:
    """http(s) URIs should be fetched with one direct GET."""
    requests: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        return httpx.Response(200, content=b'{"name": "hosted"}', request=request)

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as http:
            resolver = UriResolver(http=http)
            result = await resolver.load("https://agent.example.com/registration.json")
            assert result.document == {"name": "hosted"}
            assert await resolver.load_bytes("https://agent.example.com/registration.json") == b'{"name": "hosted"}'

    asyncio.run(_scenario())
    assert requests == ["https://agent.example.com/registration.json"] * 2


def test_http_failure_raises_resolution_error() -> None:
    """A failing direct fetch should raise ResolutionError naming the URI."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, request=request)

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as http:
            await UriResolver(http=http).load("https://agent.example.com/missing.json")

    with pytest.raises(ResolutionError) as exc_info:
        asyncio.run(_scenario())
    assert exc_info.value.identifier == "https://agent.example.com/missing.json"


def test_non_json_payload_raises_document_parse_error() -> None:
    """Retrieved payloads that are not JSON objects should raise parse errors."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>", request=request)

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as http:
            await UriResolver(http=http).load("http://agent.example.com/doc")

    with pytest.raises(DocumentParseError):
        asyncio.run(_scenario())


def test_load_bytes_rejects_sentinel_uris() -> None:
    """Raw loads have no payload for blank or unsupported URIs."""

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=_unused_transport()) as http:
            resolver = UriResolver(http=http)
            with pytest.raises(ValueError):
                await resolver.load_bytes("")
            with pytest.raises(ValueError):
                await resolver.load_bytes("ftp://x")

    asyncio.run(_scenario())


def test_fallback_readers_use_per_scheme_gateway_timeouts() -> None:
    """Each scheme's fallback race should honor its own configured gateway timeout."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.2)
        return httpx.Response(200, content=b'{"name": "slow"}', request=request)

    settings = StorageSettings.model_validate(
        {
            "ipfs": {"gateways": ["https://ipfs0.test/ipfs/"], "gateway_timeout_seconds": 5},
            "arweave": {"gateways": ["https://ar0.test"], "gateway_timeout_seconds": 0.05},
        }
    )

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as http:
            resolver = build_uri_resolver(settings, http, StorageBackends())

            loaded = await resolver.load("ipfs://bafy")
            assert loaded.document == {"name": "slow"}

            with pytest.raises(ResolutionError) as exc_info:
                await resolver.load("ar://tx123")
            assert exc_info.value.failures == ("https://ar0.test/tx123: timed out",)

    asyncio.run(_scenario())


def test_uppercase_scheme_is_stripped_before_gateway_fetch() -> None:
    """Scheme matching is case-insensitive for dispatch and for gateway paths."""
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, content=b'{"name": "X"}', request=request)

    gateways = GatewaySet(protocol="ipfs", urls=("https://g0.test/ipfs/",))

    async def _scenario() -> None:
        async with AsyncHttpClient(transport=httpx.MockTransport(handler)) as http:
            result = await UriResolver(http=http, ipfs_gateways=gateways).load("IPFS://bafy")
            assert result.document == {"name": "X"}

    asyncio.run(_scenario())
    assert urls == ["https://g0.test/ipfs/bafy"]
