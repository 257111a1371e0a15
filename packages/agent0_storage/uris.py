"""Storage URI helpers (``scheme://identifier``)."""

from __future__ import annotations

SCHEME_SEPARATOR = "://"


def build_uri(scheme: str, identifier: str) -> str:
    """Wrap one backend-native identifier into a storage URI."""
    if identifier.strip() == "":
        raise ValueError("cannot build a storage URI from an empty identifier")
    return f"{scheme}{SCHEME_SEPARATOR}{identifier}"


def split_uri(uri: str) -> tuple[str, str]:
    """Split ``scheme://rest`` into a lowercase scheme and the remainder.

    A value without a scheme yields an empty scheme.
    """
    scheme, separator, rest = uri.strip().partition(SCHEME_SEPARATOR)
    if separator == "":
        return "", uri.strip()
    return scheme.lower(), rest


def strip_scheme(identifier: str, scheme: str) -> str:
    """Remove a leading ``scheme://`` from one identifier when present."""
    prefix = f"{scheme}{SCHEME_SEPARATOR}".lower()
    value = identifier.strip()
    if value[: len(prefix)].lower() == prefix:
        return value[len(prefix) :]
    return value
