"""Protocol constants for Agent0 registration storage."""

from __future__ import annotations

SDK_VERSION = "0.2.1"
APP_NAME = f"Agent0-v{SDK_VERSION}"
PROTOCOL = "ERC-8004"
SCHEMA_VERSION = "1.0"
CONTENT_TYPE_JSON = "application/json"

DATA_TYPE_REGISTRATION = "agent-registration"
DATA_TYPE_FEEDBACK = "agent-feedback"

REGISTRATION_TYPE = "https://eips.ethereum.org/EIPS/eip-8004#registration-v1"
WALLET_ENDPOINT_NAME = "agentWallet"
DEFAULT_WALLET_CHAIN_ID = 1
UNRESOLVED_REGISTRY = "eip155:1:{identityRegistry}"

SCHEME_IPFS = "ipfs"
SCHEME_ARWEAVE = "ar"
SCHEME_HTTP = "http"
SCHEME_HTTPS = "https"

# Pinata rejects pin metadata with more than this many keyvalues.
PINATA_MAX_KEYVALUES = 9

QUOTA_REMEDIATION_ARWEAVE = (
    "Insufficient Turbo credits. Files under 100KB are typically free. For larger "
    "files or if you have exceeded the free tier, purchase credits at https://turbo.ar.io."
)
QUOTA_REMEDIATION_IPFS = (
    "The pinning service rejected the upload for plan or balance reasons. Check the "
    "account's pinning quota or configure another storage backend."
)
QUOTA_MARKERS: tuple[str, ...] = ("credit", "balance", "insufficient")

# On-chain metadata keys tracked as dirty between writes.
METADATA_KEY_ENS = "agentName"
METADATA_KEY_WALLET = "agentWallet"
