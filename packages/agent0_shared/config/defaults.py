"""Built-in default configuration values for Agent0 storage.

These defaults are the final fallback in the configuration cascade:
init params > ENV vars > config file > built-in defaults.
"""

from __future__ import annotations

DEFAULT_IPFS_GATEWAYS: tuple[str, ...] = (
    "https://gateway.pinata.cloud/ipfs/",
    "https://ipfs.io/ipfs/",
    "https://dweb.link/ipfs/",
)

DEFAULT_ARWEAVE_GATEWAYS: tuple[str, ...] = (
    "https://arweave.net",
    "https://turbo-gateway.com",
    "https://ario-gateway.nethermind.dev",
    "https://ar-io-gateway.svc.blacksand.xyz",
)

DEFAULT_PINATA_API_URL = "https://api.pinata.cloud"
DEFAULT_TURBO_UPLOAD_URL = "https://upload.ardrive.io"
