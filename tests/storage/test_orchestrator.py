"""Unit tests for the write guard and feedback backend fallback."""

from __future__ import annotations

import asyncio
import json

import pytest
from eth_utils import keccak

from packages.agent0_storage.chain import ConfirmationStatus
from packages.agent0_storage.domain import Feedback
from packages.agent0_storage.errors import (
    ConcurrencyError,
    QuotaError,
    RecordValidationError,
    UploadError,
)
from packages.agent0_storage.orchestrator import ZERO_HASH, FeedbackWriter, WriteGuard
from tests.storage.fakes import REGISTRY_ADDRESS, FakeBackend, FakeReputationRegistry


def test_write_guard_rejects_reentry_and_resets_after_exception() -> None:
    """The guard should fail fast while held and always release on exit."""
    guard = WriteGuard(entity="agent 1:1")

    with pytest.raises(RuntimeError):
        with guard:
            assert guard.held is True
            with pytest.raises(ConcurrencyError) as exc_info:
                with guard:
                    pass
            assert exc_info.value.entity == "agent 1:1"
            raise RuntimeError("write failed")

    assert guard.held is False
    with guard:
        assert guard.held is True
    assert guard.held is False


def test_write_guards_are_independent_per_entity() -> None:
    """Holding one entity's guard should not block another entity."""
    first = WriteGuard(entity="agent 1:1")
    second = WriteGuard(entity="agent 1:2")

    with first:
        with second:
            assert first.held and second.held


def test_write_guard_reads_callable_entity_when_rejecting() -> None:
    """A callable label is evaluated at rejection time, not at construction."""
    label = {"value": "agent <unregistered>"}
    guard = WriteGuard(entity=lambda: label["value"])

    with guard:
        label["value"] = "agent 1:7"
        with pytest.raises(ConcurrencyError) as exc_info:
            with guard:
                pass

    assert exc_info.value.entity == "agent 1:7"
    assert "agent 1:7" in str(exc_info.value)


def _writer(*backends: FakeBackend) -> tuple[FeedbackWriter, FakeReputationRegistry]:
    registry = FakeReputationRegistry()
    writer = FeedbackWriter(
        reputation_registry=registry,
        backends=backends,
        identity_registry_address=REGISTRY_ADDRESS,
    )
    return writer, registry


def test_quota_failure_on_ledger_falls_back_to_pinning() -> None:
    """A QuotaError on the first backend should hand the write to the second."""
    arweave = FakeBackend(
        name="arweave",
        scheme="ar",
        error=QuotaError(message="no credits", backend="arweave", remediation="buy credits"),
    )
    ipfs = FakeBackend(name="ipfs", scheme="ipfs")
    writer, registry = _writer(arweave, ipfs)

    result = asyncio.run(
        writer.give_feedback(agent_id="11155111:7", feedback=Feedback(score=90, tag1="helpful"))
    )

    assert result.feedback_uri.startswith("ipfs://")
    assert result.backend == "ipfs"
    assert result.on_chain_only is False
    assert result.failures[0].startswith("arweave: QuotaError")
    assert len(arweave.uploads) == 1
    assert arweave.uploads[0][0] == ipfs.uploads[0][0]

    submission = registry.submissions[0]
    assert submission["token_id"] == 7
    assert submission["score"] == 90
    assert submission["tag1"] == "helpful"
    assert submission["feedback_uri"] == result.feedback_uri
    assert submission["feedback_hash"] == keccak(ipfs.uploads[0][0])
    assert result.confirmation.status is ConfirmationStatus.CONFIRMED


def test_all_backends_failing_records_feedback_on_chain_only() -> None:
    """When every backend fails the feedback is still submitted without a URI."""
    arweave = FakeBackend(name="arweave", scheme="ar", error=UploadError(message="down", backend="arweave"))
    ipfs = FakeBackend(name="ipfs", scheme="ipfs", error=UploadError(message="down", backend="ipfs"))
    writer, registry = _writer(arweave, ipfs)

    result = asyncio.run(writer.give_feedback(agent_id="11155111:7", feedback=Feedback(score=10)))

    assert result.on_chain_only is True
    assert result.feedback_uri == ""
    assert result.backend == ""
    assert result.feedback_hash == ZERO_HASH
    assert [failure.split(":")[0] for failure in result.failures] == ["arweave", "ipfs"]
    assert registry.submissions[0]["feedback_uri"] == ""


def test_feedback_document_and_annotations_are_built_once_for_all_attempts() -> None:
    """Every attempted backend should receive the same document and annotations."""
    arweave = FakeBackend(name="arweave", scheme="ar", error=UploadError(message="down"))
    ipfs = FakeBackend(name="ipfs", scheme="ipfs")
    writer, _ = _writer(arweave, ipfs)

    asyncio.run(writer.give_feedback(agent_id="11155111:7", feedback=Feedback(score=50, skill="coding")))

    payload, annotations = ipfs.uploads[0]
    document = json.loads(payload)
    assert arweave.uploads[0] == ipfs.uploads[0]
    assert document["agentId"] == 7
    assert document["agentRegistry"] == f"eip155:11155111:{REGISTRY_ADDRESS}"
    assert document["skill"] == "coding"
    assert dict((a.name, a.value) for a in annotations)["Data-Type"] == "agent-feedback"


def test_without_backends_feedback_goes_straight_on_chain() -> None:
    """No configured backend means on-chain-only without any failures."""
    writer, registry = _writer()

    result = asyncio.run(writer.give_feedback(agent_id="1:2", feedback=Feedback(score=1)))

    assert result.on_chain_only is True
    assert result.failures == ()
    assert registry.submissions[0]["token_id"] == 2


def test_feedback_without_score_is_rejected_before_io() -> None:
    """A missing score cannot be submitted on-chain and fails validation."""
    ipfs = FakeBackend(name="ipfs", scheme="ipfs")
    writer, registry = _writer(ipfs)

    with pytest.raises(RecordValidationError):
        asyncio.run(writer.give_feedback(agent_id="1:2", feedback=Feedback(text="no score")))

    assert ipfs.uploads == []
    assert registry.submissions == []
