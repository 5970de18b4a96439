from ipaddress import IPv4Address, IPv6Address

import pytest
import rlp
from eth_keys.constants import SECPK1_N
from rlp.sedes import Binary

from enr import config
from enr.builder import EnrBuilder
from enr.datatypes import ENR, Socket
from enr.exceptions import (ExceedsMaxSize, InvalidSignature,
                            MalformedWireData, UnsupportedIdentityScheme)
from enr.keys import CombinedKey, Ed25519Key, Secp256k1Key
from enr.node_id import NodeId

RECORD = bytes.fromhex(
    "f884b8407098ad865b00a582051940cb9cf36836572411a47278783077011599"
    "ed5cd16b76f2635f4e234738f30813a89eb9137e3e3df5266e3a1f11df72ecf1"
    "145ccb9c01826964827634826970847f00000189736563703235366b31a103ca"
    "634cae0d49acb401d8a4c6b6fe8c55b70d115bf400769cc1400f3258cd313883"
    "75647082765f"
)
SIGNATURE = bytes.fromhex(
    "7098ad865b00a582051940cb9cf36836572411a47278783077011599ed5cd16b"
    "76f2635f4e234738f30813a89eb9137e3e3df5266e3a1f11df72ecf1145ccb9c"
)
PUBKEY = bytes.fromhex(
    "03ca634cae0d49acb401d8a4c6b6fe8c55b70d115bf400769cc1400f3258cd3138"
)
NODE_ID = bytes.fromhex(
    "a448f24c6d18e575453db13171562b71999873db5b286df957af199ec94617f7"
)
SECRET = bytes.fromhex(
    "b71c71a67e1177ad4e901695e1b4b9ee17ae16c6668d313eac2f96dbcda3f291"
)
TEXT = (
    "enr:-IS4QHCYrYZbAKWCBRlAy5zzaDZXJBGkcnh4MHcBFZntXNFrdvJjX04jRzjzCBOon"
    "rkTfj499SZuOh8R33Ls8RRcy5wBgmlkgnY0gmlwhH8AAAGJc2VjcDI1NmsxoQPKY0yu"
    "DUmstAHYpMa2_oxVtw0RW_QAdpzBQA8yWM0xOIN1ZHCCdl8"
)
NESTED_TEXT = (
    "enr:-Je4QH0uN2HkMRmscUp6yvyTOPGtOg9U6lCxBFvCGynyystnDNRJbfz5GhXXY2lcu"
    "9tsghMxRiYHoznBwG46GQ7dfm0og2V0aMfGhMvbiDiAgmlkgnY0gmlwhA6hJmuJc2Vj"
    "cDI1NmsxoQJBP4kg9GNBurV3uVXgR72u1n-XIABibUZLT1WvJLKwvIN0Y3CCdyeDdWRw"
    "gncn"
)
NO_PREFIX_TEXT = (
    "-Iu4QM-YJF2RRpMcZkFiWzMf2kRd1A5F1GIekPa4Sfi_v0DCLTDBfOMTMMWJhhawr1YL"
    "UPb5008CpnBKrgjY3sstjfgCgmlkgnY0gmlwhH8AAAGJc2VjcDI1NmsxoQP8u1uyQFyJ"
    "YuQUTyA1raXKhSw1HhhxNUQ2VE52LNHWMIN0Y3CCIyiDdWRwgiMo"
)
# 300 bytes, the largest record allowed
LARGE_TEXT = (
    "enr:-QEpuEDaLyrPP4gxBI9YL7QE9U1tZig_Nt8rue8bRIuYv_IMziFc8OEt3LQMwkwt6"
    "da-Z0Y8BaqkDalZbBq647UtV2eiAYJpZIJ2NIJpcIR_AAABiXNlY3AyNTZrMaEDymNM"
    "rg1JrLQB2KTGtv6MVbcNEVv0AHacwUAPMljNMTiDdWRwgnZferiieHh4"
    + "eHh4" * 24 * 2
    + "eHh4" * 5
)
# 301 bytes
TOO_LARGE_TEXT = (
    "enr:-QEquEBxABglcZbIGKJ8RHDCp2Ft59tdf61RhV3XXf2BKTlKE2XwzNfihH-46hKkA"
    "NsXaGRwH8Dp7a3lTrKiv2FMMaFYAYJpZIJ2NIJpcIR_AAABiXNlY3AyNTZrMaEDymNM"
    "rg1JrLQB2KTGtv6MVbcNEVv0AHacwUAPMljNMTiDdWRwgnZferijeHh4"
    + "eHh4" * 24 * 2
    + "eHh4" * 5
    + "eA"
)


@pytest.fixture
def record() -> ENR:
    return ENR.from_RLP(RECORD)


@pytest.fixture
def key() -> Secp256k1Key:
    return Secp256k1Key.from_bytes(SECRET)


def test_decode_reference_record(record):
    assert record.seq == 1
    assert record.signature == SIGNATURE
    assert record.id() == "v4"
    assert record.ip4() == IPv4Address("127.0.0.1")
    assert record.ip6() is None
    assert record.udp4() == 30303
    assert record.udp6() is None
    assert record.tcp4() is None
    assert record.tcp6() is None
    assert record.quic4() is None
    assert record.quic6() is None
    assert record.public_key().encode() == PUBKEY
    assert record.node_id.raw == NODE_ID
    assert record.verify()


def test_encoding(record):
    assert record.to_RLP() == RECORD
    assert record.size() == len(RECORD)
    assert record.to_text() == TEXT
    assert str(record) == TEXT
    assert ENR.from_text(TEXT) == record
    assert ENR.from_text(TEXT).to_RLP() == RECORD


def test_decode_with_scheme_key_type():
    record = ENR.from_RLP(RECORD, Secp256k1Key)
    assert record.key_type is Secp256k1Key
    assert record.verify()
    with pytest.raises(UnsupportedIdentityScheme):
        ENR.from_RLP(RECORD, Ed25519Key)


def test_nested_list_value():
    record = ENR.from_text(NESTED_TEXT)
    assert record.seq == 40
    assert record.ip4() == IPv4Address("14.161.38.107")
    assert record.udp4() == 30503
    assert record.tcp4() == 30503
    assert record.public_key().encode() == bytes.fromhex(
        "02413f8920f46341bab577b955e047bdaed67f972000626d464b4f55af24b2b0bc"
    )
    assert record.get("eth") == [[b"\xcb\xdb\x88\x38", b""]]
    assert record.verify()
    assert record.to_text() == NESTED_TEXT


def test_text_without_prefix():
    record = ENR.from_text(NO_PREFIX_TEXT)
    assert ENR.from_text("enr:" + NO_PREFIX_TEXT) == record
    assert record.to_text() == "enr:" + NO_PREFIX_TEXT


def test_max_size_record(key):
    record = ENR.from_text(LARGE_TEXT)
    assert record.size() == config.MAX_ENR_SIZE
    # an update keeping the size is accepted
    record.set_udp4(record.udp4(), key)
    assert record.seq == 2
    assert record.size() == config.MAX_ENR_SIZE
    assert record.verify()


def test_reject_too_large_text():
    with pytest.raises(MalformedWireData, match="enr exceeds max size"):
        ENR.from_text(TOO_LARGE_TEXT)


def test_reject_too_large_record(key):
    record = EnrBuilder().build(key)
    # only possible by going around the update methods
    record._content[b"large vec"] = rlp.encode(bytes(config.MAX_ENR_SIZE))
    record._signature = record.compute_signature(key)
    assert record.verify()
    assert record.size() > config.MAX_ENR_SIZE
    with pytest.raises(MalformedWireData, match="enr exceeds max size"):
        ENR.from_RLP(record.to_RLP())


def test_reject_bad_signature():
    data = bytearray(RECORD)
    data[10] ^= 0x01
    with pytest.raises(InvalidSignature):
        ENR.from_RLP(bytes(data))


def test_reject_changed_content():
    data = RECORD.replace(bytes([127, 0, 0, 1]), bytes([127, 0, 0, 2]))
    with pytest.raises(InvalidSignature):
        ENR.from_RLP(data)


def test_reject_high_s_signature():
    items = rlp.decode(RECORD)
    s = int.from_bytes(SIGNATURE[32:], "big")
    items[0] = SIGNATURE[:32] + (SECPK1_N - s).to_bytes(32, "big")
    with pytest.raises(InvalidSignature):
        ENR.from_RLP(rlp.encode(items))


def test_reject_missing_id(key):
    content = {b"secp256k1": rlp.encode(PUBKEY)}
    unsigned = ENR(1, NodeId(bytes(32)), content, b"")
    signature = key.sign_v4(unsigned.content_rlp())
    data = rlp.encode([signature, 1, b"secp256k1", PUBKEY])
    with pytest.raises(UnsupportedIdentityScheme):
        ENR.from_RLP(data)


def test_content_access(record):
    assert list(record) == [b"id", b"ip", b"secp256k1", b"udp"]
    assert len(record) == 4
    assert "udp" in record
    assert b"ip" in record
    assert "tcp" not in record
    assert record.get(b"id") == b"v4"
    assert record.get("missing") is None
    assert record.get_raw_rlp("udp") == rlp.encode(30303)
    assert record.get_decodable("ip", Binary.fixed_length(4)) == \
        bytes([127, 0, 0, 1])
    assert record.get_decodable("missing", Binary.fixed_length(4)) is None
    assert dict(record.items())[b"secp256k1"] == rlp.encode(PUBKEY)


def test_sockets(record):
    assert record.udp4_socket() == Socket(IPv4Address("127.0.0.1"), 30303)
    assert str(record.udp4_socket()) == "127.0.0.1:30303"
    assert record.udp6_socket() is None
    assert record.tcp4_socket() is None
    assert record.tcp6_socket() is None
    assert record.is_udp_reachable()
    assert not record.is_tcp_reachable()
    assert str(Socket(IPv6Address("::1"), 30303)) == "[::1]:30303"


def test_repr(record):
    text = repr(record)
    assert "id=v4" in text
    assert "seq=1" in text
    assert NODE_ID.hex() in text
    assert "udp4=127.0.0.1:30303" in text


def test_equality(record):
    same = ENR.from_RLP(RECORD)
    assert same == record
    assert hash(same) == hash(record)
    assert len({same, record}) == 1
    assert record != RECORD


def test_copy(record, key):
    copy = record.copy()
    assert copy == record
    copy.set_udp4(30304, key)
    assert copy.udp4() == 30304
    assert record.udp4() == 30303
    assert record.verify()


def test_compare_content(key):
    first = EnrBuilder().ip4("10.0.0.1").tcp4(30303).build(key)
    second = first.copy()
    second.set_seq(1, key)
    third = first.copy()
    third.set_seq(2, key)
    assert first.compare_content(second)
    assert not first.compare_content(third)
    assert first != third


def test_set_seq_rolls_back_on_size(key):
    record = ENR.from_text(LARGE_TEXT)
    backup = record.copy()
    with pytest.raises(ExceedsMaxSize):
        record.set_seq(config.MAX_SEQ, key)
    assert record == backup
    assert record.to_RLP() == backup.to_RLP()
    record.set_seq(30, key)
    assert record.seq == 30
    assert record.verify()


def test_verify_fails_after_tampering(key):
    record = EnrBuilder().udp4(30303).build(CombinedKey(key))
    record._seq += 1
    assert not record.verify()
