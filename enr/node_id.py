#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""The node id of the "v4" identity scheme.

The node id is the keccak256 hash of the uncompressed public key found
in the record. It doesn't depend on the network location of the node,
so changing ip or ports keeps the id stable.
"""

__author__ = "XiaoHuiHui"

import secrets
from typing import NamedTuple

from eth_hash.auto import keccak
from eth_utils import decode_hex, encode_hex

from enr.keys import EnrPublicKey

NODE_ID_LENGTH = 32


class NodeId(NamedTuple):
    """A 32-byte identifier of a node."""

    raw: bytes

    def __str__(self) -> str:
        h = self.raw.hex()
        return f"0x{h[:4]}..{h[-4:]}"

    def hex(self) -> str:
        return encode_hex(self.raw)

    def distance(self, other: "NodeId") -> int:
        """Calculate the bitwise XOR between two nodes to indicate the
        distance.

        :param NodeId other: Right operand.
        :return int: Distance.
        """
        left_int = int.from_bytes(self.raw, byteorder="big")
        right_int = int.from_bytes(other.raw, byteorder="big")
        return left_int ^ right_int

    def log2_distance(self, other: "NodeId") -> int:
        """Calculate the logarithmic distance, the number of bits of the
        XOR distance.

        :param NodeId other: Right operand.
        :return int: Distance.
        :raise ValueError: If both ids are equal.
        """
        if self.raw == other.raw:
            raise ValueError(
                "Cannot compute log distance between identical nodes."
            )
        return self.distance(other).bit_length()

    @classmethod
    def new(cls, raw: bytes) -> "NodeId":
        if len(raw) != NODE_ID_LENGTH:
            raise ValueError(
                f"Node id must be {NODE_ID_LENGTH} bytes, got {len(raw)}."
            )
        return cls(bytes(raw))

    @classmethod
    def parse(cls, text: str) -> "NodeId":
        """Parse a hex string, with or without the 0x prefix."""
        return cls.new(decode_hex(text))

    @classmethod
    def random(cls) -> "NodeId":
        return cls(secrets.token_bytes(NODE_ID_LENGTH))

    @classmethod
    def from_public_key(cls, public_key: EnrPublicKey) -> "NodeId":
        return cls(keccak(public_key.encode_uncompressed()))
