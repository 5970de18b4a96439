#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""A simple implementation of Ethereum Improvement Proposals EIP-778.

The node record is defined by EIP-778.

The canonical encoding of a node record is an RLP list of
[signature, seq, k, v, ...]. The maximum encoded size of a node record
is 300 bytes. Implementations should reject records larger than this size.

Records are signed and encoded as follows:

content   = [seq, k, v, ...]
signature = sign(content)
record    = [signature, seq, k, v, ...]

A record is only changed through updates, which are applied as one unit,
increase the sequence number and sign the record again. A failed update
leaves the record as it was.

See: https://github.com/ethereum/EIPs/blob/master/EIPS/eip-778.md
"""

__author__ = "XiaoHuiHui"
__version__ = "1.0"

import logging
from logging import FileHandler, Formatter, StreamHandler

from enr import config
from enr.builder import EnrBuilder
from enr.datatypes import ENR, Socket
from enr.exceptions import (EnrError, ExceedsMaxSize, InvalidReservedKeyData,
                            InvalidSignature, MalformedWireData,
                            SequenceNumberTooHigh, SigningError,
                            UnsupportedIdentityScheme)
from enr.keys import (CombinedKey, CombinedPublicKey, Ed25519Key,
                      Ed25519PublicKey, EnrKey, EnrPublicKey, Secp256k1Key,
                      Secp256k1PublicKey)
from enr.node_id import NodeId
from enr.update import Insert, Remove

fmt = Formatter("%(asctime)s [%(name)s][%(levelname)s] %(message)s")
handlers: list[logging.Handler] = [StreamHandler()]
if config.LOG_FILE is not None:
    handlers.append(FileHandler(config.LOG_FILE, "w", encoding="utf-8"))
for handler in handlers:
    handler.setFormatter(fmt)
    handler.setLevel(logging.DEBUG if config.DEBUG else logging.INFO)

loggers = [
    logging.getLogger("enr.codec"),
    logging.getLogger("enr.datatypes"),
    logging.getLogger("enr.update")
]

for logger in loggers:
    logger.setLevel(logging.DEBUG if config.DEBUG else logging.INFO)
    for handler in handlers:
        logger.addHandler(handler)

__all__ = [
    "CombinedKey",
    "CombinedPublicKey",
    "ENR",
    "Ed25519Key",
    "Ed25519PublicKey",
    "EnrBuilder",
    "EnrError",
    "EnrKey",
    "EnrPublicKey",
    "ExceedsMaxSize",
    "Insert",
    "InvalidReservedKeyData",
    "InvalidSignature",
    "MalformedWireData",
    "NodeId",
    "Remove",
    "Secp256k1Key",
    "Secp256k1PublicKey",
    "SequenceNumberTooHigh",
    "SigningError",
    "Socket",
    "UnsupportedIdentityScheme"
]
