#!/usr/bin/env python
# -*- codeing:utf-8 -*-
"""A builder of new node records.
"""

__author__ = "XiaoHuiHui"

import ipaddress
from ipaddress import IPv4Address, IPv6Address
from typing import Any

from enr import config
from enr.datatypes import ENR
from enr.exceptions import InvalidReservedKeyData, UnsupportedIdentityScheme
from enr.keys import CombinedKey, EnrKey
from enr.update import Insert, Update, apply_updates


class EnrBuilder:
    """Collects the content of a record and signs it once.

    Every method but build returns the builder itself, so the calls can
    be chained::

        enr = EnrBuilder().ip4("127.0.0.1").udp4(30303).build(key)
    """

    def __init__(self, id: str = "v4") -> None:
        self._id = id.encode()
        self._seq = 1
        self._content: dict[bytes, bytes] = {}

    def seq(self, seq: int) -> "EnrBuilder":
        self._seq = seq
        return self

    def add_value(self, key: bytes | str, value: Any) -> "EnrBuilder":
        """Adds an arbitrary key-value to the record, encoded with RLP."""
        insert = Insert.encode(key, value)
        self._content[insert.key] = insert.value
        return self

    def add_value_rlp(self, key: bytes | str, raw: bytes) -> "EnrBuilder":
        """Adds a value that is already RLP encoded."""
        if isinstance(key, str):
            key = key.encode()
        self._content[key] = raw
        return self

    def _port(self, key: bytes, port: int) -> "EnrBuilder":
        if not 0 <= port <= config.MAX_PORT:
            raise InvalidReservedKeyData(key, f"Invalid port: {port}.")
        return self.add_value(key, port)

    def ip(self, ip: IPv4Address | IPv6Address | str) -> "EnrBuilder":
        address = ipaddress.ip_address(ip)
        if address.version == 4:
            return self.ip4(address)
        return self.ip6(address)

    def ip4(self, ip: IPv4Address | str) -> "EnrBuilder":
        return self.add_value(config.IP_ENR_KEY, IPv4Address(ip).packed)

    def ip6(self, ip: IPv6Address | str) -> "EnrBuilder":
        return self.add_value(config.IP6_ENR_KEY, IPv6Address(ip).packed)

    def tcp4(self, tcp: int) -> "EnrBuilder":
        return self._port(config.TCP_ENR_KEY, tcp)

    def tcp6(self, tcp: int) -> "EnrBuilder":
        return self._port(config.TCP6_ENR_KEY, tcp)

    def udp4(self, udp: int) -> "EnrBuilder":
        return self._port(config.UDP_ENR_KEY, udp)

    def udp6(self, udp: int) -> "EnrBuilder":
        return self._port(config.UDP6_ENR_KEY, udp)

    def quic4(self, quic: int) -> "EnrBuilder":
        return self._port(config.QUIC_ENR_KEY, quic)

    def quic6(self, quic: int) -> "EnrBuilder":
        return self._port(config.QUIC6_ENR_KEY, quic)

    def build(
        self,
        signing_key: EnrKey,
        key_type: type[EnrKey] = CombinedKey
    ) -> ENR:
        """Sign the collected content and return the new record.

        :param EnrKey signing_key: The key signing the record. Its public
            key is added to the content.
        :param type key_type: The key type of the new record.
        :return ENR: The signed record.
        :raise UnsupportedIdentityScheme: If the id is not "v4".
        :raise EnrError: If a value is invalid or the record is too large.
        """
        if self._id != config.ENR_VERSION:
            raise UnsupportedIdentityScheme(
                f"Unsupported identity scheme: {self._id!r}."
            )
        updates: list[Update] = [Insert.encode(config.ID_ENR_KEY, self._id)]
        updates.extend(
            Insert(key, value) for key, value in self._content.items()
        )
        enr = ENR._empty(key_type)
        apply_updates(enr, updates, signing_key, self._seq)
        return enr
