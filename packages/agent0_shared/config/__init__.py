"""Public API for shared Agent0 configuration utilities."""

from .defaults import (
    DEFAULT_ARWEAVE_GATEWAYS,
    DEFAULT_IPFS_GATEWAYS,
    DEFAULT_PINATA_API_URL,
    DEFAULT_TURBO_UPLOAD_URL,
)
from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    Agent0Settings,
    ArweaveSettings,
    IpfsSettings,
    LoggingSettings,
    StorageSettings,
)

__all__ = [
    "DEFAULT_ARWEAVE_GATEWAYS",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_IPFS_GATEWAYS",
    "DEFAULT_PINATA_API_URL",
    "DEFAULT_TURBO_UPLOAD_URL",
    "Agent0Settings",
    "ArweaveSettings",
    "IpfsSettings",
    "LoggingSettings",
    "StorageSettings",
    "load_settings",
]
