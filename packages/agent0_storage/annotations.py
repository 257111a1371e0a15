"""Searchable upload annotations for registration and feedback documents.

Annotations are regenerated on every write. The timestamp is the only value
that depends on wall-clock time and is always the last entry.
"""

from __future__ import annotations

from datetime import datetime, timezone

from packages.agent0_storage.constants import (
    APP_NAME,
    CONTENT_TYPE_JSON,
    DATA_TYPE_FEEDBACK,
    DATA_TYPE_REGISTRATION,
    PROTOCOL,
    SCHEMA_VERSION,
)
from packages.agent0_storage.domain import Annotation, EndpointType, Feedback, RegistrationFile
from packages.agent0_storage.formatting import iso_timestamp


def generate_registration_annotations(
    record: RegistrationFile,
    chain_id: int,
    *,
    now: datetime | None = None,
) -> list[Annotation]:
    """Return registration annotations in their fixed order.

    ``Agent-Id`` is omitted for records that were never registered.
    """
    annotations = _essential_annotations(DATA_TYPE_REGISTRATION, chain_id)
    if record.agent_id:
        annotations.append(Annotation("Agent-Id", record.agent_id))

    annotations.extend(
        [
            Annotation("Has-MCP", _flag(record.has_endpoint_type(EndpointType.MCP.value))),
            Annotation("Has-A2A", _flag(record.has_endpoint_type(EndpointType.A2A.value))),
            Annotation("Has-Wallet", _flag(bool(record.wallet_address))),
            Annotation("Active", _flag(record.active)),
        ]
    )
    annotations.append(_timestamp(now))
    return annotations


def generate_feedback_annotations(
    feedback: Feedback,
    chain_id: int,
    *,
    agent_id: str | None = None,
    client_address: str | None = None,
    now: datetime | None = None,
) -> list[Annotation]:
    """Return feedback annotations; empty optional values are omitted."""
    annotations = _essential_annotations(DATA_TYPE_FEEDBACK, chain_id)
    optional = (
        ("Agent-Id", agent_id),
        ("Reviewer", client_address),
        ("Score", None if feedback.score is None else str(feedback.score)),
        ("Tag1", feedback.tag1),
        ("Tag2", feedback.tag2),
        ("Capability", feedback.capability),
        ("Skill", feedback.skill),
    )
    for name, value in optional:
        if value:
            annotations.append(Annotation(name, value))
    annotations.append(_timestamp(now))
    return annotations


def _essential_annotations(data_type: str, chain_id: int) -> list[Annotation]:
    return [
        Annotation("Content-Type", CONTENT_TYPE_JSON),
        Annotation("App-Name", APP_NAME),
        Annotation("Protocol", PROTOCOL),
        Annotation("Data-Type", data_type),
        Annotation("Chain-Id", str(chain_id)),
        Annotation("Schema-Version", SCHEMA_VERSION),
    ]


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _timestamp(now: datetime | None) -> Annotation:
    return Annotation("Timestamp", iso_timestamp(now or datetime.now(timezone.utc)))
