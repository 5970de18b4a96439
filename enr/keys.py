#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""Signing keys usable with the "v4" identity scheme.

A record is signed by exactly one key. The public half of the key is
stored in the record under a scheme specific key name ("secp256k1" or
"ed25519"), so a decoder has to find out which scheme produced a record
by looking at its content. CombinedKey does this by trying every known
scheme in turn.

See: https://github.com/ethereum/devp2p/blob/master/enr.md
"""

__author__ = "XiaoHuiHui"
__version__ = "1.0"

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional, cast

import rlp
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from eth_hash.auto import keccak
from eth_keys import KeyAPI
from eth_keys.constants import SECPK1_N
from eth_keys.datatypes import PrivateKey, PublicKey, Signature
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import int_to_big_endian
from rlp.sedes import binary

from enr.exceptions import UnsupportedIdentityScheme

CURVE = ec.SECP256K1()
Content = Mapping[bytes, bytes]


def pad32(value: bytes) -> bytes:
    return value.rjust(32, b"\x00")


def _read_key_entry(content: Content, name: bytes) -> Optional[bytes]:
    """Return the public key bytes stored under ``name``, or None if the
    record holds no such entry.

    :raise UnsupportedIdentityScheme: If the entry is not an RLP string.
    """
    raw = content.get(name)
    if raw is None:
        return None
    try:
        return rlp.decode(raw, sedes=binary)
    except rlp.RLPException as exc:
        raise UnsupportedIdentityScheme(
            f"Malformed {name.decode()} public key entry."
        ) from exc


class EnrPublicKey(ABC):
    """The public half of a record signing key."""

    ENR_KEY: bytes = b""

    @abstractmethod
    def encode(self) -> bytes:
        """The bytes stored in the record under ``enr_key()``."""

    @abstractmethod
    def encode_uncompressed(self) -> bytes:
        """The bytes hashed into the node id."""

    @abstractmethod
    def verify_v4(self, message: bytes, signature: bytes) -> bool:
        """Verify a "v4" signature over the raw record content."""

    def enr_key(self) -> bytes:
        return self.ENR_KEY

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, EnrPublicKey):
            return NotImplemented
        return (self.enr_key(), self.encode()) == \
            (other.enr_key(), other.encode())

    def __hash__(self) -> int:
        return hash((self.enr_key(), self.encode()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.encode().hex()})"


class EnrKey(ABC):
    """A private key able to sign records.

    Implementations also know how to find their own kind of public key
    in the content of a record, which is what decoding relies on.
    """

    @abstractmethod
    def public(self) -> EnrPublicKey:
        pass

    @abstractmethod
    def sign_v4(self, message: bytes) -> bytes:
        """Sign the raw record content ``[seq, k, v, ...]``.

        :param bytes message: The RLP encoded content.
        :return bytes: The signature as stored in the record.
        """

    @classmethod
    @abstractmethod
    def enr_to_public(cls, content: Content) -> EnrPublicKey:
        """Resolve the public key of this scheme from record content.

        :param Mapping content: Key to RLP encoded value mapping.
        :return EnrPublicKey: The public key found in the content.
        :raise UnsupportedIdentityScheme: If there is no entry for this
            scheme or its bytes are not a valid public key.
        """


class Secp256k1PublicKey(EnrPublicKey):
    """A secp256k1 public key, stored as a 33-byte compressed point."""

    ENR_KEY = b"secp256k1"

    def __init__(self, public_key: PublicKey) -> None:
        self.public_key = public_key

    def encode(self) -> bytes:
        return self.public_key.to_compressed_bytes()

    def encode_uncompressed(self) -> bytes:
        return self.public_key.to_bytes()

    def verify_v4(self, message: bytes, signature: bytes) -> bool:
        # Records carry the 64-byte signature without the recovery id.
        # Verification doesn't need it, just add one bit to it.
        if len(signature) != 64:
            return False
        # Only the low-s form is canonical.
        if int.from_bytes(signature[32:], "big") > SECPK1_N // 2:
            return False
        try:
            sig = Signature(signature + b"\x00")
            return KeyAPI().ecdsa_verify(
                keccak(message), sig, self.public_key
            )
        except (BadSignature, ValidationError, ValueError):
            return False

    @classmethod
    def decode(cls, data: bytes) -> "Secp256k1PublicKey":
        """Parse a compressed (33 bytes), raw (64 bytes) or uncompressed
        (65 bytes, 0x04 prefixed) public key.
        """
        try:
            match len(data):
                case 33:
                    return cls(PublicKey.from_compressed_bytes(data))
                case 64:
                    return cls(PublicKey(data))
                case 65 if data[0] == 0x04:
                    return cls(PublicKey(data[1:]))
        except (ValidationError, ValueError) as exc:
            raise ValueError(f"Invalid secp256k1 public key: {exc}") from exc
        raise ValueError(
            f"Invalid secp256k1 public key length: {len(data)}."
        )


class Ed25519PublicKey(EnrPublicKey):
    """An ed25519 public key, stored as its raw 32 bytes."""

    ENR_KEY = b"ed25519"

    def __init__(self, public_key: ed25519.Ed25519PublicKey) -> None:
        self.public_key = public_key

    def encode(self) -> bytes:
        return self.public_key.public_bytes(
            serialization.Encoding.Raw,
            serialization.PublicFormat.Raw
        )

    def encode_uncompressed(self) -> bytes:
        return self.encode()

    def verify_v4(self, message: bytes, signature: bytes) -> bool:
        try:
            self.public_key.verify(signature, message)
            return True
        except (InvalidSignature, ValueError):
            return False

    @classmethod
    def decode(cls, data: bytes) -> "Ed25519PublicKey":
        if len(data) != 32:
            raise ValueError(
                f"Invalid ed25519 public key length: {len(data)}."
            )
        return cls(ed25519.Ed25519PublicKey.from_public_bytes(data))


class Secp256k1Key(EnrKey):
    """A secp256k1 signing key backed by eth_keys."""

    def __init__(self, private_key: PrivateKey) -> None:
        self.private_key = private_key

    @classmethod
    def generate(cls) -> "Secp256k1Key":
        """Generate a new SECP256K1 private key and return it
        """
        privkey = cast(
            ec.EllipticCurvePrivateKey,
            ec.generate_private_key(CURVE))
        return cls(KeyAPI().PrivateKey(
            pad32(
                int_to_big_endian(
                    privkey.private_numbers().private_value
                )
            )
        ))

    @classmethod
    def from_bytes(cls, secret: bytes) -> "Secp256k1Key":
        try:
            return cls(PrivateKey(secret))
        except ValidationError as exc:
            raise ValueError(f"Invalid secp256k1 secret key: {exc}") from exc

    def to_bytes(self) -> bytes:
        return self.private_key.to_bytes()

    def public(self) -> Secp256k1PublicKey:
        return Secp256k1PublicKey(self.private_key.public_key)

    def sign_v4(self, message: bytes) -> bytes:
        sig = KeyAPI().ecdsa_sign(keccak(message), self.private_key)
        # Drop the recovery id, records only hold r || s with s <= N / 2.
        s = sig.s
        if s > SECPK1_N // 2:
            s = SECPK1_N - s
        return pad32(int_to_big_endian(sig.r)) + pad32(int_to_big_endian(s))

    @classmethod
    def enr_to_public(cls, content: Content) -> Secp256k1PublicKey:
        data = _read_key_entry(content, Secp256k1PublicKey.ENR_KEY)
        if data is None:
            raise UnsupportedIdentityScheme(
                "Record has no secp256k1 public key."
            )
        if len(data) != 33:
            raise UnsupportedIdentityScheme(
                "The secp256k1 public key must be a compressed point."
            )
        try:
            return Secp256k1PublicKey.decode(data)
        except ValueError as exc:
            raise UnsupportedIdentityScheme(str(exc)) from exc


class Ed25519Key(EnrKey):
    """An ed25519 signing key backed by cryptography."""

    def __init__(self, private_key: ed25519.Ed25519PrivateKey) -> None:
        self.private_key = private_key

    @classmethod
    def generate(cls) -> "Ed25519Key":
        return cls(ed25519.Ed25519PrivateKey.generate())

    @classmethod
    def from_bytes(cls, secret: bytes) -> "Ed25519Key":
        if len(secret) != 32:
            raise ValueError(
                f"Invalid ed25519 secret key length: {len(secret)}."
            )
        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(secret))

    def to_bytes(self) -> bytes:
        return self.private_key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption()
        )

    def public(self) -> Ed25519PublicKey:
        return Ed25519PublicKey(self.private_key.public_key())

    def sign_v4(self, message: bytes) -> bytes:
        return self.private_key.sign(message)

    @classmethod
    def enr_to_public(cls, content: Content) -> Ed25519PublicKey:
        data = _read_key_entry(content, Ed25519PublicKey.ENR_KEY)
        if data is None:
            raise UnsupportedIdentityScheme(
                "Record has no ed25519 public key."
            )
        try:
            return Ed25519PublicKey.decode(data)
        except ValueError as exc:
            raise UnsupportedIdentityScheme(str(exc)) from exc


SCHEMES: tuple[type[Secp256k1Key] | type[Ed25519Key], ...] = (
    Secp256k1Key,
    Ed25519Key
)
PUBLIC_KEY_ENR_KEYS = (Secp256k1PublicKey.ENR_KEY, Ed25519PublicKey.ENR_KEY)


class CombinedPublicKey(EnrPublicKey):
    """The public key of either supported scheme."""

    def __init__(self, inner: Secp256k1PublicKey | Ed25519PublicKey) -> None:
        self.inner = inner

    def encode(self) -> bytes:
        return self.inner.encode()

    def encode_uncompressed(self) -> bytes:
        return self.inner.encode_uncompressed()

    def verify_v4(self, message: bytes, signature: bytes) -> bool:
        return self.inner.verify_v4(message, signature)

    def enr_key(self) -> bytes:
        return self.inner.enr_key()


class CombinedKey(EnrKey):
    """A signing key of either supported scheme.

    Records decoded with this key type may have been signed by any of
    the known schemes.
    """

    def __init__(self, inner: Secp256k1Key | Ed25519Key) -> None:
        self.inner = inner

    @classmethod
    def generate_secp256k1(cls) -> "CombinedKey":
        return cls(Secp256k1Key.generate())

    @classmethod
    def generate_ed25519(cls) -> "CombinedKey":
        return cls(Ed25519Key.generate())

    @classmethod
    def secp256k1_from_bytes(cls, secret: bytes) -> "CombinedKey":
        return cls(Secp256k1Key.from_bytes(secret))

    @classmethod
    def ed25519_from_bytes(cls, secret: bytes) -> "CombinedKey":
        return cls(Ed25519Key.from_bytes(secret))

    def to_bytes(self) -> bytes:
        return self.inner.to_bytes()

    def public(self) -> CombinedPublicKey:
        return CombinedPublicKey(self.inner.public())

    def sign_v4(self, message: bytes) -> bytes:
        return self.inner.sign_v4(message)

    @classmethod
    def enr_to_public(cls, content: Content) -> CombinedPublicKey:
        errors: list[str] = []
        for scheme in SCHEMES:
            try:
                return CombinedPublicKey(scheme.enr_to_public(content))
            except UnsupportedIdentityScheme as exc:
                errors.append(str(exc))
        raise UnsupportedIdentityScheme(" ".join(errors))
