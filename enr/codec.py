#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""The canonical encoding of node records.

The canonical encoding of a node record is an RLP list of
[signature, seq, k, v, ...]. The maximum encoded size of a node record
is 300 bytes. Implementations should reject records larger than this
size.

The key/value pairs must be sorted by key and must be unique, i.e. any
key may be present only once. The keys can technically be any byte
sequence, but ASCII text is preferred. Values are kept as the RLP item
they were encoded to, so a value may itself be a list.

The textual form of a node record is the base64 encoding of its RLP
representation, prefixed by "enr:". Implementations should use the URL
safe base64 alphabet and omit padding characters.

See: https://github.com/ethereum/devp2p/blob/master/enr.md
"""

__author__ = "XiaoHuiHui"
__version__ = "1.0"

import base64
import logging
import re
from collections.abc import Mapping
from typing import Any, Optional

import rlp
from rlp.codec import length_prefix
from rlp.sedes import Binary, big_endian_int, binary

from enr import config
from enr.exceptions import (InvalidReservedKeyData, MalformedWireData,
                            UnsupportedIdentityScheme)

logger = logging.getLogger("enr.codec")

LIST_PREFIX_OFFSET = 0xc0
BASE64_URLSAFE = re.compile(r"[A-Za-z0-9_-]*")
RESERVED_KEYS = (
    config.ID_ENR_KEY,
    config.IP_ENR_KEY,
    config.IP6_ENR_KEY,
) + config.PORT_ENR_KEYS

ip4_sedes = Binary.fixed_length(4)
ip6_sedes = Binary.fixed_length(16)


def base64_padding(raw: str) -> str:
    """Add padding to the end of a non-standard base64 string to return
    it as a standardized base64 string.

    Since python's base64 parsing library only supports complete base64
    strings that comply with RFC4648. But the definition in the Ethereum
    specification is non-standard, it removes the padding at the end of
    the string. So this function is used to refill it.

    Also see: https://www.rfc-editor.org/rfc/rfc4648.txt

    :param str raw: Non-standard base64 string.
    :return str: Standard base64 string with paddings.
    """
    return raw + "=" * (-len(raw) % 4)


def deserialize_uint(item: Any, max_value: int) -> int:
    """Read a canonical big endian integer out of a decoded RLP item.

    Leading zero bytes are rejected, so every integer has exactly one
    accepted encoding.

    :param item: A decoded RLP item.
    :param int max_value: The largest accepted value.
    :return int: The integer.
    :raise rlp.DeserializationError: If the item is a list, is not
        minimal or is larger than max_value.
    """
    if isinstance(item, list):
        raise rlp.DeserializationError(
            "Expected an integer, got a list.", item
        )
    value = big_endian_int.deserialize(item)
    if value > max_value:
        raise rlp.DeserializationError(
            f"Integer {value} is larger than {max_value}.", item
        )
    return value


def check_value(key: bytes, value: bytes) -> None:
    """Check that a value is exactly one canonical RLP item.

    :raise MalformedWireData: If it isn't.
    """
    try:
        rlp.decode(value, strict=True)
    except rlp.DecodingError as exc:
        raise MalformedWireData(
            f"Value of key {key!r} is not a single RLP item: {exc}"
        ) from exc


def check_reserved_key(key: bytes, value: bytes) -> None:
    """Check the value of a key with a predefined meaning.

    ========  ==============================================
    key       value
    ========  ==============================================
    id        name of identity scheme, only "v4" is accepted
    ip        IPv4 address, 4 bytes
    ip6       IPv6 address, 16 bytes
    tcp(6)    TCP port, big endian integer
    udp(6)    UDP port, big endian integer
    quic(6)   QUIC port, big endian integer
    ========  ==============================================

    Other keys are not checked.

    :param bytes key: The key.
    :param bytes value: The RLP encoded value.
    :raise UnsupportedIdentityScheme: If the id is not "v4".
    :raise InvalidReservedKeyData: If the value has the wrong shape.
    """
    if key not in RESERVED_KEYS:
        return
    try:
        item = rlp.decode(value, strict=True)
        match key:
            case config.ID_ENR_KEY:
                if binary.deserialize(item) != config.ENR_VERSION:
                    raise UnsupportedIdentityScheme(
                        f"Unsupported identity scheme: {item!r}."
                    )
            case config.IP_ENR_KEY:
                ip4_sedes.deserialize(item)
            case config.IP6_ENR_KEY:
                ip6_sedes.deserialize(item)
            case _:
                deserialize_uint(item, config.MAX_PORT)
    except rlp.RLPException as exc:
        raise InvalidReservedKeyData(key, str(exc)) from exc


def encode_content(
    seq: int,
    content: Mapping[bytes, bytes],
    signature: Optional[bytes] = None
) -> bytes:
    """Encode ``[signature, seq, k, v, ...]``, or ``[seq, k, v, ...]``
    when no signature is given. The latter is the message that gets
    signed.

    Keys are emitted in ascending order and values are emitted as they
    are stored, already RLP encoded.
    """
    items: list[bytes] = []
    if signature is not None:
        items.append(rlp.encode(signature))
    items.append(rlp.encode(seq))
    for key in sorted(content):
        items.append(rlp.encode(key))
        items.append(content[key])
    payload = b"".join(items)
    return length_prefix(len(payload), LIST_PREFIX_OFFSET) + payload


def decode_record(data: bytes) -> tuple[bytes, int, dict[bytes, bytes]]:
    """Decode the canonical encoding of a node record.

    Only the structure is checked here. The public key and signature
    are left to the caller.

    :param bytes data: The RLP encoded record.
    :return tuple: The signature, sequence number and content.
    :raise MalformedWireData: If the bytes are not a canonical record.
    :raise InvalidReservedKeyData: If a reserved key has a bad value.
    :raise UnsupportedIdentityScheme: If the id is not "v4".
    """
    if len(data) > config.MAX_ENR_SIZE:
        logger.debug(f"Rejected a record of {len(data)} bytes.")
        raise MalformedWireData("enr exceeds max size")
    try:
        items = rlp.decode(bytes(data), strict=True)
    except rlp.DecodingError as exc:
        logger.debug(f"Rejected a record with invalid RLP: {exc}")
        raise MalformedWireData(f"Invalid RLP: {exc}") from exc
    if not isinstance(items, list):
        logger.debug("Failed to decode ENR. Not an RLP list.")
        raise MalformedWireData("Record is not an RLP list.")
    if len(items) == 0 or len(items) % 2 != 0:
        logger.debug("Failed to decode ENR. List size is not even.")
        raise MalformedWireData("List size is not a multiple of two.")
    signature = items[0]
    if isinstance(signature, list):
        raise MalformedWireData("Signature must be a byte string.")
    try:
        seq = deserialize_uint(items[1], config.MAX_SEQ)
    except rlp.DeserializationError as exc:
        raise MalformedWireData(f"Invalid sequence number: {exc}") from exc
    content: dict[bytes, bytes] = {}
    prev: Optional[bytes] = None
    for key, value in zip(items[2::2], items[3::2]):
        if isinstance(key, list):
            raise MalformedWireData("Keys must be byte strings.")
        if prev is not None and key <= prev:
            logger.debug(f"Failed to decode ENR. Unsorted key {key!r}.")
            raise MalformedWireData("Keys are unsorted or duplicated.")
        # Decoding is strict, so re-encoding gives the original bytes.
        raw = rlp.encode(value)
        check_reserved_key(key, raw)
        content[key] = raw
        prev = key
    return signature, seq, content


def to_text(data: bytes) -> str:
    raw = base64.urlsafe_b64encode(data).decode().rstrip("=")
    return f"{config.ENR_PREFIX}{raw}"


def from_text(text: str) -> bytes:
    """Decode the textual form of a record into its RLP bytes.

    The "enr:" prefix is optional. Padding, characters outside of the
    URL safe alphabet and non-zero trailing bits are rejected.

    :param str text: The textual form.
    :return bytes: The RLP encoded record.
    :raise MalformedWireData: If the text is not canonical base64.
    """
    if len(text) < 4:
        raise MalformedWireData("Invalid ENR string")
    body = text
    if text.startswith(config.ENR_PREFIX):
        body = text[len(config.ENR_PREFIX):]
    if "=" in body:
        raise MalformedWireData("Invalid base64 encoding: InvalidPadding")
    if BASE64_URLSAFE.fullmatch(body) is None:
        raise MalformedWireData("Invalid base64 encoding: InvalidByte")
    if len(body) % 4 == 1:
        raise MalformedWireData("Invalid base64 encoding: InvalidLength")
    data = base64.urlsafe_b64decode(base64_padding(body))
    if to_text(data) != config.ENR_PREFIX + body:
        raise MalformedWireData("Invalid base64 encoding: InvalidLastSymbol")
    return data
