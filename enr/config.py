#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""Constants of the node record format.
"""

__author__ = "XiaoHuiHui"
__version__ = "1.0"

# Logging config
DEBUG = False
LOG_FILE = None
# EIP-778 config
# The maximum encoded size of a node record is 300 bytes.
MAX_ENR_SIZE = 300
MAX_SEQ = 2**64 - 1
MAX_PORT = 65535
ENR_PREFIX = "enr:"
# Only the "v4" identity scheme is supported.
ENR_VERSION = b"v4"
# Reserved keys
ID_ENR_KEY = b"id"
IP_ENR_KEY = b"ip"
IP6_ENR_KEY = b"ip6"
TCP_ENR_KEY = b"tcp"
TCP6_ENR_KEY = b"tcp6"
UDP_ENR_KEY = b"udp"
UDP6_ENR_KEY = b"udp6"
QUIC_ENR_KEY = b"quic"
QUIC6_ENR_KEY = b"quic6"
PORT_ENR_KEYS = (
    TCP_ENR_KEY,
    TCP6_ENR_KEY,
    UDP_ENR_KEY,
    UDP6_ENR_KEY,
    QUIC_ENR_KEY,
    QUIC6_ENR_KEY
)
# Consensus layer keys
ETH2_ENR_KEY = b"eth2"
ATTESTATION_BITFIELD_ENR_KEY = b"attnets"
SYNC_COMMITTEE_BITFIELD_ENR_KEY = b"syncnets"
