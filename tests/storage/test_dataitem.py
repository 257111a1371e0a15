"""Unit tests for Ethereum-signed ANS-104 data items."""

from __future__ import annotations

import base64
import hashlib

import pytest

from packages.agent0_storage.backends.dataitem import (
    EthereumSigner,
    create_data_item,
    decode_tags,
    deep_hash,
    encode_tags,
    parse_data_item,
)

PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TAGS = (("Content-Type", "application/json"), ("App-Name", "Agent0-v0.2.1"))


def test_encode_tags_uses_avro_block_encoding() -> None:
    """One tag should encode as count, two length-prefixed strings, terminator."""
    assert encode_tags([("a", "b")]) == b"\x02\x02a\x02b\x00"
    assert encode_tags([]) == b""
    assert decode_tags(encode_tags(TAGS)) == TAGS


def test_deep_hash_of_blob_and_list() -> None:
    """Deep hash should tag blobs and fold lists with SHA-384."""
    blob = hashlib.sha384(hashlib.sha384(b"blob3").digest() + hashlib.sha384(b"abc").digest()).digest()
    assert deep_hash(b"abc") == blob

    expected_list = hashlib.sha384(
        hashlib.sha384(b"list1").digest() + blob
    ).digest()
    assert deep_hash([b"abc"]) == expected_list


def test_data_item_layout_matches_ethereum_signature_type() -> None:
    """The header should carry type 3, 65-byte signature/owner and no target/anchor."""
    signer = EthereumSigner(PRIVATE_KEY)
    item = create_data_item(b'{"name": "x"}', signer, tags=TAGS)
    raw = item.raw
    tag_bytes = encode_tags(TAGS)

    assert raw[0:2] == b"\x03\x00"
    assert raw[2:67] == item.signature
    assert raw[67:132] == signer.public_key
    assert raw[67] == 0x04
    assert raw[132:134] == b"\x00\x00"
    assert int.from_bytes(raw[134:142], "little") == len(TAGS)
    assert int.from_bytes(raw[142:150], "little") == len(tag_bytes)
    assert raw[150 : 150 + len(tag_bytes)] == tag_bytes
    assert raw.endswith(b'{"name": "x"}')


def test_data_item_signature_recovers_signer_address() -> None:
    """The personal_sign signature should recover to the signing address."""
    signer = EthereumSigner(PRIVATE_KEY)
    item = create_data_item(b"payload", signer, tags=TAGS)

    parsed = parse_data_item(item.raw)

    assert parsed.tags == TAGS
    assert parsed.data == b"payload"
    assert parsed.recover_signer() == signer.address


def test_data_item_id_is_base64url_sha256_of_signature() -> None:
    """Ids should be unpadded base64url of the signature hash."""
    item = create_data_item(b"payload", EthereumSigner(PRIVATE_KEY))

    expected = base64.urlsafe_b64encode(hashlib.sha256(item.signature).digest()).rstrip(b"=").decode()

    assert item.id == expected
    assert len(item.id) == 43


def test_signer_rejects_malformed_keys() -> None:
    """Non-hex or wrong-length keys should raise ValueError."""
    with pytest.raises(ValueError):
        EthereumSigner("not-a-key")
    with pytest.raises(ValueError):
        EthereumSigner("0x1234")


def test_signer_repr_hides_private_key() -> None:
    """The signer repr should expose the address only."""
    signer = EthereumSigner(PRIVATE_KEY)

    assert PRIVATE_KEY[2:] not in repr(signer)
    assert signer.address in repr(signer)
