"""Canonical registration and feedback documents.

Every backend stores the exact bytes produced by ``serialize_document`` so one
shared parser can read documents regardless of where they were written.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from packages.agent0_storage.constants import (
    DEFAULT_WALLET_CHAIN_ID,
    REGISTRATION_TYPE,
    UNRESOLVED_REGISTRY,
    WALLET_ENDPOINT_NAME,
)
from packages.agent0_storage.domain import (
    ChainContext,
    Endpoint,
    Feedback,
    RegistrationFile,
    format_agent_id,
    parse_token_id,
)
from packages.agent0_storage.errors import DocumentParseError


def format_registration_document(
    record: RegistrationFile,
    chain_context: ChainContext | None = None,
) -> dict[str, Any]:
    """Map one registration record to its storage-agnostic document."""
    context = chain_context or ChainContext()

    endpoints: list[dict[str, Any]] = []
    for endpoint in record.endpoints:
        entry: dict[str, Any] = {"name": endpoint.type, "endpoint": endpoint.value}
        entry.update(endpoint.meta)
        endpoints.append(entry)

    if record.wallet_address:
        wallet_chain_id = record.wallet_chain_id or context.chain_id or DEFAULT_WALLET_CHAIN_ID
        endpoints.append(
            {
                "name": WALLET_ENDPOINT_NAME,
                "endpoint": f"eip155:{wallet_chain_id}:{record.wallet_address}",
            }
        )

    registrations: list[dict[str, Any]] = []
    if record.agent_id:
        registrations.append(
            {
                "agentId": parse_token_id(record.agent_id),
                "agentRegistry": registry_reference(context),
            }
        )

    document: dict[str, Any] = {
        "type": REGISTRATION_TYPE,
        "name": record.name,
        "description": record.description,
    }
    if record.image:
        document["image"] = record.image
    document["endpoints"] = endpoints
    if registrations:
        document["registrations"] = registrations
    if record.trust_models:
        document["supportedTrusts"] = list(record.trust_models)
    document["active"] = record.active
    document["x402support"] = record.x402support
    return document


def registry_reference(context: ChainContext) -> str:
    """Return ``eip155:<chain>:<registry>`` or the unresolved placeholder."""
    if context.chain_id and context.registry_address:
        return f"eip155:{context.chain_id}:{context.registry_address}"
    return UNRESOLVED_REGISTRY


def serialize_document(document: Mapping[str, Any]) -> bytes:
    """Serialize one document to canonical UTF-8 JSON with 2-space indent."""
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def build_feedback_document(
    feedback: Feedback,
    *,
    agent_id: str,
    client_address: str,
    chain_context: ChainContext | None = None,
    created_at: datetime | None = None,
) -> dict[str, Any]:
    """Assemble the feedback document stored next to an on-chain score.

    Absent optional values are omitted rather than written as ``null``.
    """
    context = chain_context or ChainContext()
    moment = created_at or datetime.now(timezone.utc)
    client_chain_id = context.chain_id or DEFAULT_WALLET_CHAIN_ID

    document: dict[str, Any] = {
        "agentRegistry": registry_reference(context),
        "agentId": parse_token_id(agent_id),
        "clientAddress": f"eip155:{client_chain_id}:{client_address}",
        "createdAt": iso_timestamp(moment),
    }
    optional = (
        ("score", feedback.score),
        ("tag1", feedback.tag1),
        ("tag2", feedback.tag2),
        ("text", feedback.text),
        ("capability", feedback.capability),
        ("skill", feedback.skill),
        ("context", feedback.context),
        ("proofOfPayment", feedback.proof_of_payment),
    )
    for key, value in optional:
        if value is None or value == "":
            continue
        document[key] = value
    return document


def parse_registration_document(
    document: Any,
    *,
    agent_uri: str | None = None,
    agent_id: str | None = None,
) -> RegistrationFile:
    """Rebuild a registration record from a stored document.

    ``agent_id`` wins over the id reconstructed from ``registrations`` so a
    caller that already knows the on-chain id keeps it.
    """
    identifier = agent_uri or ""
    if not isinstance(document, Mapping):
        raise DocumentParseError(
            message="registration document must be a JSON object",
            identifier=identifier,
        )

    name = document.get("name")
    description = document.get("description")
    if not isinstance(name, str) or not isinstance(description, str):
        raise DocumentParseError(
            message="registration document requires string name and description",
            identifier=identifier,
        )

    endpoints: list[Endpoint] = []
    wallet_address: str | None = None
    wallet_chain_id: int | None = None
    for raw in _list_field(document, "endpoints", identifier):
        if not isinstance(raw, Mapping) or "name" not in raw or "endpoint" not in raw:
            raise DocumentParseError(
                message="registration endpoint requires name and endpoint",
                identifier=identifier,
            )
        endpoint_type = str(raw["name"])
        value = str(raw["endpoint"])
        if endpoint_type == WALLET_ENDPOINT_NAME:
            wallet_chain_id, wallet_address = _parse_caip10(value, identifier)
            continue
        meta = {key: item for key, item in raw.items() if key not in ("name", "endpoint")}
        endpoints.append(Endpoint(type=endpoint_type, value=value, meta=meta))

    resolved_agent_id = agent_id
    registrations = _list_field(document, "registrations", identifier)
    if resolved_agent_id is None and registrations:
        resolved_agent_id = _agent_id_from_registration(registrations[0], identifier)

    image = document.get("image")
    try:
        return RegistrationFile(
            agent_id=resolved_agent_id,
            agent_uri=agent_uri,
            name=name,
            description=description,
            image=image if isinstance(image, str) and image else None,
            endpoints=endpoints,
            trust_models=[str(item) for item in _list_field(document, "supportedTrusts", identifier)],
            active=bool(document.get("active", False)),
            x402support=bool(document.get("x402support", False)),
            wallet_address=wallet_address,
            wallet_chain_id=wallet_chain_id,
        )
    except ValueError as exc:
        raise DocumentParseError(
            message=f"registration document is malformed: {exc}",
            identifier=identifier,
        ) from exc


def iso_timestamp(moment: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def _list_field(document: Mapping[str, Any], key: str, identifier: str) -> list[Any]:
    value = document.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DocumentParseError(
            message=f"registration document field {key!r} must be a list",
            identifier=identifier,
        )
    return value


def _parse_caip10(value: str, identifier: str) -> tuple[int | None, str]:
    """Split ``eip155:<chain>:<address>`` into chain id and address."""
    parts = value.split(":")
    if len(parts) == 3 and parts[0] == "eip155" and parts[1].isdigit():
        return int(parts[1]), parts[2]
    if len(parts) == 1 and value:
        return None, value
    raise DocumentParseError(
        message=f"wallet endpoint is not a CAIP-10 account: {value!r}",
        identifier=identifier,
    )


def _agent_id_from_registration(entry: Any, identifier: str) -> str | None:
    if not isinstance(entry, Mapping) or "agentId" not in entry:
        return None
    try:
        token_id = int(entry["agentId"])
    except (TypeError, ValueError) as exc:
        raise DocumentParseError(
            message="registration agentId must be numeric",
            identifier=identifier,
        ) from exc

    registry = str(entry.get("agentRegistry", ""))
    if registry == UNRESOLVED_REGISTRY:
        return str(token_id)
    parts = registry.split(":")
    if len(parts) == 3 and parts[1].isdigit():
        return format_agent_id(int(parts[1]), token_id)
    return str(token_id)


__all__ = [
    "build_feedback_document",
    "format_registration_document",
    "iso_timestamp",
    "parse_registration_document",
    "registry_reference",
    "serialize_document",
]
