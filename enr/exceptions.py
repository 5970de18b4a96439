#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""Errors raised while decoding, verifying or updating a node record.

Every failed operation leaves either the previous valid record or no
record at all.
"""

__author__ = "XiaoHuiHui"


class EnrError(ValueError):
    """Base class of all node record errors."""
    pass


class ExceedsMaxSize(EnrError):
    """The encoded record would be larger than 300 bytes."""
    pass


class SequenceNumberTooHigh(EnrError):
    """The sequence number does not fit into 64 bits."""
    pass


class SigningError(EnrError):
    """The signing key failed to produce a signature."""
    pass


class UnsupportedIdentityScheme(EnrError):
    """The identity scheme is not "v4", or the record holds no public
    key this key type can parse.
    """
    pass


class InvalidReservedKeyData(EnrError):
    """
    A custom exception raised when the value of a reserved key such as
    "ip" or "tcp" does not have the required shape.
    """
    def __init__(self, key: bytes, reason: str) -> None:
        super().__init__(
            f"Invalid data for reserved key {key!r}: {reason}"
        )
        self.key = key


class InvalidSignature(EnrError):
    """The record is well formed but its signature does not verify."""
    pass


class MalformedWireData(EnrError):
    """The bytes or text are not a canonical node record encoding."""
    pass
