#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""The realization of the data structure of the node record.
"""

__author__ = "XiaoHuiHui"

import ipaddress
import logging
from collections.abc import Iterable, Iterator
from ipaddress import IPv4Address, IPv6Address
from typing import Any, NamedTuple, Optional

import rlp

from enr import codec, config
from enr.exceptions import (InvalidReservedKeyData, InvalidSignature,
                            UnsupportedIdentityScheme)
from enr.keys import CombinedKey, EnrKey, EnrPublicKey
from enr.node_id import NodeId
from enr.update import Insert, Remove, Update, apply_updates

logger = logging.getLogger("enr.datatypes")

IPAddress = IPv4Address | IPv6Address


class Socket(NamedTuple):
    """A addr tuple of a peer in a p2p network."""
    address: IPAddress
    port: int

    def __str__(self) -> str:
        if self.address.version == 4:
            return f"{str(self.address)}:{self.port}"
        else:
            return f"[{str(self.address)}]:{self.port}"


def _encode_port(key: bytes, port: int) -> Insert:
    if not 0 <= port <= config.MAX_PORT:
        raise InvalidReservedKeyData(key, f"Invalid port: {port}.")
    return Insert.encode(key, port)


def _decode_port(raw: Optional[bytes]) -> Optional[int]:
    if raw is None:
        return None
    return codec.deserialize_uint(rlp.decode(raw), config.MAX_PORT)


class ENR:
    """A node record.

    A record always holds a valid signature, a supported public key, a
    sequence number and the node id derived from that key. Records are
    made by EnrBuilder or decoded by from_RLP and from_text, and changed
    only through the update methods, which re-sign them.

    Content is a mapping from key to the RLP encoding of the value.
    Iteration and encoding always go in ascending key order.
    """

    def __init__(
        self,
        seq: int,
        node_id: NodeId,
        content: dict[bytes, bytes],
        signature: bytes,
        key_type: type[EnrKey] = CombinedKey
    ) -> None:
        self._seq = seq
        self._node_id = node_id
        self._content = content
        self._signature = signature
        self.key_type = key_type

    @classmethod
    def _empty(cls, key_type: type[EnrKey] = CombinedKey) -> "ENR":
        """An unsigned record with no content, only used as the starting
        point of EnrBuilder.
        """
        return cls(0, NodeId(bytes(32)), {}, b"", key_type)

    # getters

    @property
    def seq(self) -> int:
        return self._seq

    @property
    def node_id(self) -> NodeId:
        return self._node_id

    @property
    def signature(self) -> bytes:
        return self._signature

    def get(self, key: bytes | str) -> Any:
        """Reads a key from the record if it exists, decoded from RLP.

        :param key: The key.
        :return: A byte string, or a nested list for list values. None
            if the key is missing.
        """
        raw = self.get_raw_rlp(key)
        if raw is None:
            return None
        return rlp.decode(raw)

    def get_decodable(self, key: bytes | str, sedes: Any) -> Any:
        """Reads a key from the record if it exists, deserialized by an
        RLP sedes object.

        :raise rlp.DeserializationError: If the value doesn't match.
        """
        raw = self.get_raw_rlp(key)
        if raw is None:
            return None
        return rlp.decode(raw, sedes=sedes)

    def get_raw_rlp(self, key: bytes | str) -> Optional[bytes]:
        if isinstance(key, str):
            key = key.encode()
        return self._content.get(key)

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        for key in sorted(self._content):
            yield key, self._content[key]

    def __iter__(self) -> Iterator[bytes]:
        return iter(sorted(self._content))

    def __len__(self) -> int:
        return len(self._content)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = key.encode()
        return key in self._content

    def id(self) -> Optional[str]:
        id_bytes = self.get(config.ID_ENR_KEY)
        if id_bytes is None:
            return None
        return id_bytes.decode(errors="replace")

    def ip4(self) -> Optional[IPv4Address]:
        ip_bytes = self.get(config.IP_ENR_KEY)
        if ip_bytes is None:
            return None
        return IPv4Address(ip_bytes)

    def ip6(self) -> Optional[IPv6Address]:
        ip_bytes = self.get(config.IP6_ENR_KEY)
        if ip_bytes is None:
            return None
        return IPv6Address(ip_bytes)

    def tcp4(self) -> Optional[int]:
        return _decode_port(self.get_raw_rlp(config.TCP_ENR_KEY))

    def tcp6(self) -> Optional[int]:
        return _decode_port(self.get_raw_rlp(config.TCP6_ENR_KEY))

    def udp4(self) -> Optional[int]:
        return _decode_port(self.get_raw_rlp(config.UDP_ENR_KEY))

    def udp6(self) -> Optional[int]:
        return _decode_port(self.get_raw_rlp(config.UDP6_ENR_KEY))

    def quic4(self) -> Optional[int]:
        return _decode_port(self.get_raw_rlp(config.QUIC_ENR_KEY))

    def quic6(self) -> Optional[int]:
        return _decode_port(self.get_raw_rlp(config.QUIC6_ENR_KEY))

    def eth2(self) -> Optional[bytes]:
        return self.get(config.ETH2_ENR_KEY)

    def attestation_bitfield(self) -> Optional[bytes]:
        return self.get(config.ATTESTATION_BITFIELD_ENR_KEY)

    def sync_committee_bitfield(self) -> Optional[bytes]:
        return self.get(config.SYNC_COMMITTEE_BITFIELD_ENR_KEY)

    def _socket(
        self,
        address: Optional[IPAddress],
        port: Optional[int]
    ) -> Optional[Socket]:
        if address is None or port is None:
            return None
        return Socket(address, port)

    def udp4_socket(self) -> Optional[Socket]:
        return self._socket(self.ip4(), self.udp4())

    def udp6_socket(self) -> Optional[Socket]:
        return self._socket(self.ip6(), self.udp6())

    def tcp4_socket(self) -> Optional[Socket]:
        return self._socket(self.ip4(), self.tcp4())

    def tcp6_socket(self) -> Optional[Socket]:
        return self._socket(self.ip6(), self.tcp6())

    def is_udp_reachable(self) -> bool:
        return self.udp4_socket() is not None \
            or self.udp6_socket() is not None

    def is_tcp_reachable(self) -> bool:
        return self.tcp4_socket() is not None \
            or self.tcp6_socket() is not None

    def public_key(self) -> EnrPublicKey:
        # Records can only be created with supported keys.
        return self.key_type.enr_to_public(self._content)

    def verify(self) -> bool:
        """Verify the signature of the record against the public key in
        its content.
        """
        if self.get(config.ID_ENR_KEY) != config.ENR_VERSION:
            return False
        try:
            public_key = self.public_key()
        except UnsupportedIdentityScheme:
            return False
        return public_key.verify_v4(self.content_rlp(), self._signature)

    def compare_content(self, other: "ENR") -> bool:
        return self.content_rlp() == other.content_rlp()

    def content_rlp(self) -> bytes:
        """The signed message, ``[seq, k, v, ...]``."""
        return codec.encode_content(self._seq, self._content)

    def compute_signature(self, signing_key: EnrKey) -> bytes:
        if self.get(config.ID_ENR_KEY) != config.ENR_VERSION:
            raise UnsupportedIdentityScheme(
                "Only the v4 identity scheme can be signed."
            )
        return signing_key.sign_v4(self.content_rlp())

    def size(self) -> int:
        return len(self.to_RLP())

    def to_RLP(self) -> bytes:
        return codec.encode_content(
            self._seq, self._content, self._signature
        )

    def to_text(self) -> str:
        return codec.to_text(self.to_RLP())

    def copy(self) -> "ENR":
        return ENR(
            self._seq,
            self._node_id,
            dict(self._content),
            self._signature,
            self.key_type
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ENR):
            return NotImplemented
        return (self._seq, self._node_id, self._signature) == \
            (other._seq, other._node_id, other._signature)

    def __hash__(self) -> int:
        return hash(self._signature) ^ hash(self._seq) ^ hash(self._node_id)

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        others = [
            f"{key.decode(errors='replace')}={value.hex()}"
            for key, value in self.items()
            if key not in codec.RESERVED_KEYS
        ]
        return (
            f"ENR(id={self.id()}, seq={self._seq}, "
            f"node_id={self._node_id.hex()}, "
            f"signature={self._signature.hex()}, "
            f"udp4={self.udp4_socket()}, udp6={self.udp6_socket()}, "
            f"tcp4={self.tcp4_socket()}, tcp6={self.tcp6_socket()}, "
            f"other=[{', '.join(others)}])"
        )

    # setters

    def update(
        self,
        updates: Iterable[Update],
        signing_key: EnrKey
    ) -> list[Update]:
        """Apply inserts and removes as a single update with a single
        increment of the sequence number.

        :param Iterable[Update] updates: The intents, in order.
        :param EnrKey signing_key: The key to re-sign the record with.
        :return list[Update]: The inverses of the applied intents. Fed
            back in reverse order, they restore the previous content.
        :raise EnrError: If the update fails, the record is unchanged.
        """
        return apply_updates(self, updates, signing_key)

    def set_seq(self, seq: int, signing_key: EnrKey) -> None:
        """Set the sequence number to an arbitrary value and re-sign.

        :raise ExceedsMaxSize: If the record would become too large.
            The previous sequence number and signature are kept.
        """
        apply_updates(self, [], signing_key, seq)

    def set_public_key(
        self,
        public_key: EnrPublicKey,
        signing_key: EnrKey
    ) -> None:
        """Sets the public key entry of the record and re-signs it.

        The entry always holds the public key of the signing key, so the
        two must match.

        :param EnrPublicKey public_key: The new public key.
        :param EnrKey signing_key: Its private key.
        :raise InvalidReservedKeyData: If the keys do not match.
        """
        if public_key != signing_key.public():
            raise InvalidReservedKeyData(
                public_key.enr_key(),
                "The public key does not match the signing key."
            )
        self.update([], signing_key)

    def insert(
        self,
        key: bytes | str,
        value: Any,
        signing_key: EnrKey
    ) -> Optional[bytes]:
        """Adds or modifies a key/value to the record. The value is
        encoded with RLP.

        :return: The previous value as RLP encoded bytes, if any.
        """
        (inverse,) = self.update([Insert.encode(key, value)], signing_key)
        return inverse.value if isinstance(inverse, Insert) else None

    def insert_raw_rlp(
        self,
        key: bytes | str,
        value: bytes,
        signing_key: EnrKey
    ) -> Optional[bytes]:
        """Like insert, but the value is already RLP encoded."""
        if isinstance(key, str):
            key = key.encode()
        (inverse,) = self.update([Insert(key, value)], signing_key)
        return inverse.value if isinstance(inverse, Insert) else None

    def remove_insert(
        self,
        remove_keys: Iterable[bytes | str],
        insert_items: Iterable[tuple[bytes | str, Any]],
        signing_key: EnrKey
    ) -> tuple[list[Optional[bytes]], list[Optional[bytes]]]:
        """Removes keys and adds or overwrites key/values as one sequence
        number update. Reverts the whole record on error.

        :return tuple: The previous RLP encoded values of the removed
            keys and of the inserted keys, None where there was none.
        """
        removes: list[Update] = [
            Remove(key.encode() if isinstance(key, str) else key)
            for key in remove_keys
        ]
        inserts: list[Update] = [
            Insert.encode(key, value) for key, value in insert_items
        ]
        inverses = self.update(removes + inserts, signing_key)
        prev = [
            inverse.value if isinstance(inverse, Insert) else None
            for inverse in inverses
        ]
        return prev[:len(removes)], prev[len(removes):]

    def set_ip(
        self,
        ip: IPAddress | str,
        signing_key: EnrKey
    ) -> Optional[IPAddress]:
        """Sets the "ip" or "ip6" field. Returns the previous address."""
        address = ipaddress.ip_address(ip)
        key = config.IP_ENR_KEY if address.version == 4 \
            else config.IP6_ENR_KEY
        prev = self.insert(key, address.packed, signing_key)
        if prev is None:
            return None
        return ipaddress.ip_address(rlp.decode(prev))

    def _set_port(
        self,
        key: bytes,
        port: int,
        signing_key: EnrKey
    ) -> Optional[int]:
        (inverse,) = self.update([_encode_port(key, port)], signing_key)
        if isinstance(inverse, Insert):
            return _decode_port(inverse.value)
        return None

    def set_tcp4(self, tcp: int, signing_key: EnrKey) -> Optional[int]:
        return self._set_port(config.TCP_ENR_KEY, tcp, signing_key)

    def set_tcp6(self, tcp: int, signing_key: EnrKey) -> Optional[int]:
        return self._set_port(config.TCP6_ENR_KEY, tcp, signing_key)

    def set_udp4(self, udp: int, signing_key: EnrKey) -> Optional[int]:
        return self._set_port(config.UDP_ENR_KEY, udp, signing_key)

    def set_udp6(self, udp: int, signing_key: EnrKey) -> Optional[int]:
        return self._set_port(config.UDP6_ENR_KEY, udp, signing_key)

    def set_quic4(self, quic: int, signing_key: EnrKey) -> Optional[int]:
        return self._set_port(config.QUIC_ENR_KEY, quic, signing_key)

    def set_quic6(self, quic: int, signing_key: EnrKey) -> Optional[int]:
        return self._set_port(config.QUIC6_ENR_KEY, quic, signing_key)

    def _set_bytes(
        self,
        key: bytes,
        value: bytes,
        signing_key: EnrKey
    ) -> Optional[bytes]:
        prev = self.insert(key, value, signing_key)
        if prev is None:
            return None
        return rlp.decode(prev)

    def set_eth2(self, eth2: bytes, signing_key: EnrKey) -> Optional[bytes]:
        return self._set_bytes(config.ETH2_ENR_KEY, eth2, signing_key)

    def set_attestation_bitfield(
        self,
        bitfield: bytes,
        signing_key: EnrKey
    ) -> Optional[bytes]:
        return self._set_bytes(
            config.ATTESTATION_BITFIELD_ENR_KEY, bitfield, signing_key
        )

    def set_sync_committee_bitfield(
        self,
        bitfield: bytes,
        signing_key: EnrKey
    ) -> Optional[bytes]:
        return self._set_bytes(
            config.SYNC_COMMITTEE_BITFIELD_ENR_KEY, bitfield, signing_key
        )

    def _set_socket(
        self,
        socket: Socket,
        signing_key: EnrKey,
        is_tcp: bool
    ) -> None:
        address = ipaddress.ip_address(socket.address)
        if address.version == 4:
            ip_key = config.IP_ENR_KEY
            port_key = config.TCP_ENR_KEY if is_tcp else config.UDP_ENR_KEY
        else:
            ip_key = config.IP6_ENR_KEY
            port_key = config.TCP6_ENR_KEY if is_tcp else config.UDP6_ENR_KEY
        self.update(
            [
                Insert.encode(ip_key, address.packed),
                _encode_port(port_key, socket.port)
            ],
            signing_key
        )

    def set_udp_socket(self, socket: Socket, signing_key: EnrKey) -> None:
        """Sets the IP and UDP port in a single update with a single
        increment in sequence number.
        """
        self._set_socket(socket, signing_key, False)

    def set_tcp_socket(self, socket: Socket, signing_key: EnrKey) -> None:
        """Sets the IP and TCP port in a single update with a single
        increment in sequence number.
        """
        self._set_socket(socket, signing_key, True)

    # decoding

    @classmethod
    def from_RLP(
        cls,
        data: bytes,
        key_type: type[EnrKey] = CombinedKey
    ) -> "ENR":
        """Decode and verify a record.

        :param bytes data: The canonical RLP encoding.
        :param type key_type: The signing scheme(s) to accept. The
            default accepts every supported scheme.
        :return ENR: The verified record.
        :raise EnrError: If the data is not a valid, verified record.
        """
        signature, seq, content = codec.decode_record(data)
        if config.ID_ENR_KEY not in content:
            raise UnsupportedIdentityScheme("Record has no identity scheme.")
        public_key = key_type.enr_to_public(content)
        enr = cls(
            seq,
            NodeId.from_public_key(public_key),
            content,
            signature,
            key_type
        )
        if not public_key.verify_v4(enr.content_rlp(), signature):
            logger.debug(f"Bad signature on record {enr.node_id}.")
            raise InvalidSignature(
                "Unable to verify ENR node record signature."
            )
        return enr

    @classmethod
    def from_text(
        cls,
        text: str,
        key_type: type[EnrKey] = CombinedKey
    ) -> "ENR":
        # ENRs are RLP encoded and written as base64 url-safe strings.
        return cls.from_RLP(codec.from_text(text), key_type)
