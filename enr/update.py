#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""Atomic updates of a node record.

An update is a batch of intents, each either inserting a value at a key
or removing a key. A batch is applied as one unit:

    1. Every intent is validated before the record is touched.
    2. The intents are applied to the content one at a time. Each one
       leaves behind its inverse, so the inverses in reverse order
       restore the original content.
    3. The public key of the signing key is written to the content, the
       sequence number is increased, the record is signed again and its
       encoded size is checked.
    4. The node id is derived from the new public key.

If any step fails, everything done so far is undone and the error is
raised. A record is never left half updated.

See: https://github.com/ethereum/devp2p/blob/master/enr.md
"""

__author__ = "XiaoHuiHui"

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Union

import rlp

from enr import config
from enr.codec import check_reserved_key, check_value
from enr.exceptions import (EnrError, ExceedsMaxSize, InvalidReservedKeyData,
                            SequenceNumberTooHigh, SigningError,
                            UnsupportedIdentityScheme)
from enr.keys import PUBLIC_KEY_ENR_KEYS, EnrKey
from enr.node_id import NodeId

if TYPE_CHECKING:
    from enr.datatypes import ENR

logger = logging.getLogger("enr.update")


def _key_bytes(key: bytes | str) -> bytes:
    if isinstance(key, str):
        return key.encode()
    return bytes(key)


class Insert(NamedTuple):
    """Insert or replace the value at a key. The value is RLP encoded."""

    key: bytes
    value: bytes

    @classmethod
    def encode(cls, key: bytes | str, value: Any) -> "Insert":
        """Build an insert from a python value, encoding it with RLP."""
        return cls(_key_bytes(key), rlp.encode(value))

    def to_valid_op(self) -> "Insert":
        op = Insert(_key_bytes(self.key), self.value)
        if op.key in PUBLIC_KEY_ENR_KEYS:
            raise InvalidReservedKeyData(
                op.key, "public keys are set by the signing key"
            )
        check_value(op.key, op.value)
        check_reserved_key(op.key, op.value)
        return op

    def apply_and_invert(self, content: dict[bytes, bytes]) -> "Update":
        prev = content.get(self.key)
        content[self.key] = self.value
        if prev is None:
            return Remove(self.key)
        return Insert(self.key, prev)


class Remove(NamedTuple):
    """Remove a key. Removing an absent key is a no-op."""

    key: bytes

    def to_valid_op(self) -> "Remove":
        op = Remove(_key_bytes(self.key))
        if op.key == config.ID_ENR_KEY:
            raise UnsupportedIdentityScheme(
                "The identity scheme can not be removed."
            )
        if op.key in PUBLIC_KEY_ENR_KEYS:
            raise InvalidReservedKeyData(
                op.key, "public keys are set by the signing key"
            )
        return op

    def apply_and_invert(self, content: dict[bytes, bytes]) -> "Update":
        prev = content.pop(self.key, None)
        if prev is None:
            return Remove(self.key)
        return Insert(self.key, prev)


Update = Union[Insert, Remove]


class RevertOps:
    """Everything needed to put a record back the way it was."""

    def __init__(self, content_inverses: list[Update]) -> None:
        self.content_inverses = content_inverses
        self.key_inverses: list[Update] = []
        self.seq: Optional[int] = None
        self.signature: Optional[bytes] = None

    def revert(self, enr: "ENR") -> None:
        for inverse in reversed(self.key_inverses):
            inverse.apply_and_invert(enr._content)
        for inverse in reversed(self.content_inverses):
            inverse.apply_and_invert(enr._content)
        if self.seq is not None:
            enr._seq = self.seq
        if self.signature is not None:
            enr._signature = self.signature


class Guard:
    """An update guard over a record.

    Creating the guard validates and applies the content updates. The
    record must then be finished with a signing key, which either
    commits the update or reverts it.
    """

    def __init__(self, enr: "ENR", updates: Iterable[Update]) -> None:
        # validate all operations before applying any
        valid = [update.to_valid_op() for update in updates]
        self.enr = enr
        self.inverses = [op.apply_and_invert(enr._content) for op in valid]

    def _abort(self, revert: RevertOps, error: EnrError) -> EnrError:
        revert.revert(self.enr)
        logger.debug(f"Reverted record update: {error}")
        return error

    def finish(
        self,
        signing_key: EnrKey,
        seq: Optional[int] = None
    ) -> list[Update]:
        """Applies the remaining operations in a valid record update:

        1. Add the public key matching the signing key to the contents.
        2. Update the sequence number, by one or to ``seq`` if given.
        3. Sign the record.
        4. Verify that the encoded record is within the size limit.
        5. Update the node id.

        :param EnrKey signing_key: The key signing the record.
        :param int seq: The new sequence number, only for privileged
            callers. The sequence number is increased by one if omitted.
        :return list[Update]: The inverses of the content updates, in
            the order they were applied.
        :raise EnrError: If any step fails. The record is unchanged.
        """
        enr = self.enr
        revert = RevertOps(self.inverses)

        # 1. set the public key, dropping keys of other schemes
        try:
            public_key = signing_key.public()
            enr_key = public_key.enr_key()
            encoded = public_key.encode()
            node_id = NodeId.from_public_key(public_key)
        except EnrError as exc:
            raise self._abort(revert, exc)
        except Exception as exc:
            raise self._abort(
                revert, SigningError(f"Unable to sign the record: {exc}")
            ) from exc
        for name in PUBLIC_KEY_ENR_KEYS:
            if name != enr_key:
                revert.key_inverses.append(
                    Remove(name).apply_and_invert(enr._content)
                )
        revert.key_inverses.append(
            Insert.encode(enr_key, encoded)
            .apply_and_invert(enr._content)
        )
        try:
            enr.key_type.enr_to_public(enr._content)
        except UnsupportedIdentityScheme as exc:
            raise self._abort(revert, exc)

        # 2. set the new sequence number
        new_seq = enr._seq + 1 if seq is None else seq
        if not 0 <= new_seq <= config.MAX_SEQ:
            raise self._abort(revert, SequenceNumberTooHigh(
                f"Sequence number {new_seq} does not fit into 64 bits."
            ))
        revert.seq = enr._seq
        enr._seq = new_seq

        # 3. sign the record
        try:
            signature = enr.compute_signature(signing_key)
        except UnsupportedIdentityScheme as exc:
            raise self._abort(revert, exc)
        except Exception as exc:
            raise self._abort(
                revert, SigningError(f"Unable to sign the record: {exc}")
            ) from exc
        revert.signature = enr._signature
        enr._signature = signature

        # 4. check the encoded size, the node id is not part of it
        size = enr.size()
        if size > config.MAX_ENR_SIZE:
            raise self._abort(revert, ExceedsMaxSize(
                f"The record would be {size} bytes, "
                f"more than {config.MAX_ENR_SIZE}."
            ))

        # 5. update the node id
        enr._node_id = node_id
        logger.debug(f"Updated record {enr.node_id} to seq {enr.seq}.")
        return self.inverses


def apply_updates(
    enr: "ENR",
    updates: Iterable[Update],
    signing_key: EnrKey,
    seq: Optional[int] = None
) -> list[Update]:
    """Apply a batch of updates to a record as one unit.

    :param ENR enr: The record.
    :param Iterable[Update] updates: Inserts and removes, in order.
    :param EnrKey signing_key: The key signing the record.
    :param int seq: Set the sequence number instead of increasing it.
    :return list[Update]: The inverses of the content updates.
    """
    return Guard(enr, updates).finish(signing_key, seq)
