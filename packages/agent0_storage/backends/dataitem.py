"""ANS-104 data items signed with an Ethereum key.

Layout (all integers little-endian)::

    signature type   2 bytes   (3 = Ethereum)
    signature       65 bytes   (EIP-191 personal_sign over the deep hash)
    owner           65 bytes   (uncompressed secp256k1 public key)
    target           1 byte    presence flag (always 0 here)
    anchor           1 byte    presence flag (always 0 here)
    tag count        8 bytes
    tag bytes len    8 bytes
    tags             Avro-encoded array of {name, value} byte pairs
    data             remainder

The data item id is the base64url SHA-256 of the signature.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Sequence, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys

SIGNATURE_TYPE_ETHEREUM = 3
SIGNATURE_LENGTH = 65
OWNER_LENGTH = 65

_HEADER_LENGTH = 2 + SIGNATURE_LENGTH + OWNER_LENGTH + 1 + 1 + 8 + 8

DeepHashChunk = Union[bytes, Sequence["DeepHashChunk"]]


class EthereumSigner:
    """Sign data items with one secp256k1 private key."""

    def __init__(self, private_key: str) -> None:
        key_bytes = _parse_private_key(private_key)
        self._private_key = key_bytes
        self._public_key = b"\x04" + keys.PrivateKey(key_bytes).public_key.to_bytes()
        self._address = Account.from_key(key_bytes).address

    def __repr__(self) -> str:
        return f"EthereumSigner(address={self._address!r})"

    @property
    def address(self) -> str:
        """Return the checksummed signer address."""
        return self._address

    @property
    def public_key(self) -> bytes:
        """Return the 65-byte uncompressed public key used as data item owner."""
        return self._public_key

    def sign(self, message: bytes) -> bytes:
        """Return a 65-byte ``personal_sign`` signature over ``message``."""
        signed = Account.sign_message(encode_defunct(primitive=message), private_key=self._private_key)
        return bytes(signed.signature)


@dataclass(frozen=True)
class DataItem:
    """One signed ANS-104 data item."""

    raw: bytes
    signature: bytes
    owner: bytes
    tags: tuple[tuple[str, str], ...]
    data: bytes

    @property
    def id(self) -> str:
        """Return the base64url (unpadded) SHA-256 of the signature."""
        return _b64url(hashlib.sha256(self.signature).digest())

    def signing_message(self) -> bytes:
        """Return the deep hash the signature covers."""
        return _signature_data(self.owner, encode_tags(self.tags), self.data)

    def recover_signer(self) -> str:
        """Return the address that produced this item's signature."""
        return Account.recover_message(
            encode_defunct(primitive=self.signing_message()),
            signature=self.signature,
        )


def create_data_item(
    data: bytes,
    signer: EthereumSigner,
    tags: Sequence[tuple[str, str]] = (),
) -> DataItem:
    """Build and sign one data item carrying ``data`` and ``tags``."""
    normalized_tags = tuple((str(name), str(value)) for name, value in tags)
    tag_bytes = encode_tags(normalized_tags)
    owner = signer.public_key
    signature = signer.sign(_signature_data(owner, tag_bytes, data))
    if len(signature) != SIGNATURE_LENGTH:
        raise ValueError(f"unexpected signature length {len(signature)}")

    raw = b"".join(
        [
            SIGNATURE_TYPE_ETHEREUM.to_bytes(2, "little"),
            signature,
            owner,
            b"\x00",
            b"\x00",
            len(normalized_tags).to_bytes(8, "little"),
            len(tag_bytes).to_bytes(8, "little"),
            tag_bytes,
            data,
        ]
    )
    return DataItem(raw=raw, signature=signature, owner=owner, tags=normalized_tags, data=data)


def parse_data_item(raw: bytes) -> DataItem:
    """Parse one Ethereum-signed data item without targets or anchors."""
    if len(raw) < _HEADER_LENGTH:
        raise ValueError("data item is shorter than its fixed header")
    signature_type = int.from_bytes(raw[0:2], "little")
    if signature_type != SIGNATURE_TYPE_ETHEREUM:
        raise ValueError(f"unsupported signature type {signature_type}")

    offset = 2
    signature = raw[offset : offset + SIGNATURE_LENGTH]
    offset += SIGNATURE_LENGTH
    owner = raw[offset : offset + OWNER_LENGTH]
    offset += OWNER_LENGTH
    if raw[offset] != 0 or raw[offset + 1] != 0:
        raise ValueError("data items with target or anchor are not supported")
    offset += 2
    tag_count = int.from_bytes(raw[offset : offset + 8], "little")
    offset += 8
    tag_length = int.from_bytes(raw[offset : offset + 8], "little")
    offset += 8
    tags = decode_tags(raw[offset : offset + tag_length])
    if len(tags) != tag_count:
        raise ValueError(f"tag count mismatch: header {tag_count}, decoded {len(tags)}")
    offset += tag_length
    return DataItem(raw=raw, signature=signature, owner=owner, tags=tags, data=raw[offset:])


def deep_hash(chunk: DeepHashChunk) -> bytes:
    """Return the Arweave SHA-384 deep hash of a blob or nested list."""
    if isinstance(chunk, (bytes, bytearray)):
        tag = hashlib.sha384(b"blob" + str(len(chunk)).encode("ascii")).digest()
        return hashlib.sha384(tag + hashlib.sha384(bytes(chunk)).digest()).digest()

    accumulator = hashlib.sha384(b"list" + str(len(chunk)).encode("ascii")).digest()
    for item in chunk:
        accumulator = hashlib.sha384(accumulator + deep_hash(item)).digest()
    return accumulator


def encode_tags(tags: Sequence[tuple[str, str]]) -> bytes:
    """Avro-encode tags as one block of ``{name: bytes, value: bytes}`` records."""
    if len(tags) == 0:
        return b""
    parts = [_zigzag_varint(len(tags))]
    for name, value in tags:
        parts.append(_avro_bytes(name.encode("utf-8")))
        parts.append(_avro_bytes(value.encode("utf-8")))
    parts.append(_zigzag_varint(0))
    return b"".join(parts)


def decode_tags(payload: bytes) -> tuple[tuple[str, str], ...]:
    """Decode tags produced by ``encode_tags``."""
    if len(payload) == 0:
        return ()
    tags: list[tuple[str, str]] = []
    offset = 0
    while True:
        count, offset = _read_zigzag_varint(payload, offset)
        if count == 0:
            break
        if count < 0:
            # Negative block counts are followed by the block byte size.
            _, offset = _read_zigzag_varint(payload, offset)
            count = -count
        for _ in range(count):
            name, offset = _read_avro_bytes(payload, offset)
            value, offset = _read_avro_bytes(payload, offset)
            tags.append((name.decode("utf-8"), value.decode("utf-8")))
    return tuple(tags)


def _signature_data(owner: bytes, tag_bytes: bytes, data: bytes) -> bytes:
    return deep_hash(
        [
            b"dataitem",
            b"1",
            str(SIGNATURE_TYPE_ETHEREUM).encode("ascii"),
            owner,
            b"",
            b"",
            tag_bytes,
            data,
        ]
    )


def _parse_private_key(private_key: str) -> bytes:
    candidate = private_key.strip()
    if candidate.startswith(("0x", "0X")):
        candidate = candidate[2:]
    try:
        key_bytes = bytes.fromhex(candidate)
    except ValueError as exc:
        raise ValueError("private key must be hex encoded") from exc
    if len(key_bytes) != 32:
        raise ValueError("private key must be 32 bytes")
    return key_bytes


def _zigzag_varint(value: int) -> bytes:
    encoded = (value << 1) ^ (value >> 63)
    out = bytearray()
    while True:
        byte = encoded & 0x7F
        encoded >>= 7
        if encoded:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_zigzag_varint(payload: bytes, offset: int) -> tuple[int, int]:
    shift = 0
    encoded = 0
    while True:
        if offset >= len(payload):
            raise ValueError("truncated Avro varint")
        byte = payload[offset]
        offset += 1
        encoded |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            break
    return (encoded >> 1) ^ -(encoded & 1), offset


def _avro_bytes(value: bytes) -> bytes:
    return _zigzag_varint(len(value)) + value


def _read_avro_bytes(payload: bytes, offset: int) -> tuple[bytes, int]:
    length, offset = _read_zigzag_varint(payload, offset)
    end = offset + length
    if length < 0 or end > len(payload):
        raise ValueError("truncated Avro bytes field")
    return payload[offset:end], end


def _b64url(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).rstrip(b"=").decode("ascii")
