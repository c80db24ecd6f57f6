"""Tests for command packet and hello packet encoding and decoding."""

import datetime
import struct

import pytest

from broadlink_protocol.cipher import DEFAULT_CIPHER, AesCipher
from broadlink_protocol.checksum import checksum, packet_checksum_ok
from broadlink_protocol.packet import (
    BroadlinkPacket,
    build_command_packet,
    validate_response,
    extract_payload,
    build_hello_packet,
    parse_hello_reply,
)
from broadlink_protocol.exceptions import (
    BlankResponseError,
    ChecksumMismatchError,
    CounterMismatchError,
    IdentityMismatchError,
)

from conftest import DEVICE_MAC, make_hello_reply, make_response

PAYLOAD = b"\x03" + bytes(15)


def build(counter=0x1234, payload=PAYLOAD, device_id=0xa1b2c3d4, cipher=DEFAULT_CIPHER):
    return build_command_packet(0x6a, payload, counter, DEVICE_MAC, device_id, cipher)


def test_header_layout():
    packet = build()
    assert packet[0:8] == bytes([0x5a, 0xa5, 0xaa, 0x55, 0x5a, 0xa5, 0xaa, 0x55])
    assert packet[0x24:0x26] == b"\x2a\x27"
    assert packet[0x26] == 0x6a
    assert packet[0x28:0x2a] == b"\x34\x12"
    assert packet[0x2a:0x30] == bytes(reversed(DEVICE_MAC))
    assert packet[0x30:0x34] == b"\xd4\xc3\xb2\xa1"
    assert struct.unpack_from('<H', packet, 0x34)[0] == checksum(PAYLOAD)
    assert len(packet) == 0x38 + 16


def test_payload_is_encrypted():
    packet = build()
    assert packet[0x38:] == DEFAULT_CIPHER.encrypt(PAYLOAD)
    assert extract_payload(packet, DEFAULT_CIPHER) == PAYLOAD


def test_whole_packet_checksum():
    assert packet_checksum_ok(build())


def test_fields_read_back():
    packet = BroadlinkPacket(build(counter=0xbeef, device_id=7))
    assert packet.counter == 0xbeef
    assert packet.command == 0x6a
    assert packet.mac_addr == DEVICE_MAC
    assert packet.device_id == 7
    assert packet.payload_checksum == checksum(PAYLOAD)
    assert packet.is_checksum_ok


@pytest.mark.parametrize("offset", [0x00, 0x07, 0x24, 0x26, 0x28, 0x2a, 0x2f, 0x30, 0x34, 0x38])
def test_mutating_any_byte_breaks_checksum(offset):
    packet = bytearray(build())
    packet[offset] ^= 0x01
    assert not packet_checksum_ok(bytes(packet))


def test_counter_is_16_bits():
    assert BroadlinkPacket(build(counter=0x10001)).counter == 1


def test_validate_response_accepts_matching_reply():
    response = make_response(0x6a, bytes(16), 5, DEVICE_MAC, 0, DEFAULT_CIPHER)
    validate_response(response, 5, DEVICE_MAC)


def test_validate_response_checksum():
    response = bytearray(make_response(0x6a, bytes(16), 5, DEVICE_MAC, 0, DEFAULT_CIPHER))
    response[0x40] ^= 0x55
    with pytest.raises(ChecksumMismatchError):
        validate_response(bytes(response), 5, DEVICE_MAC)


def test_validate_response_counter():
    response = make_response(0x6a, bytes(16), 6, DEVICE_MAC, 0, DEFAULT_CIPHER)
    with pytest.raises(CounterMismatchError):
        validate_response(response, 5, DEVICE_MAC)


def test_validate_response_mac():
    other_mac = bytes([0x34, 0xea, 0x34, 0x99, 0x99, 0x99])
    response = make_response(0x6a, bytes(16), 5, other_mac, 0, DEFAULT_CIPHER)
    with pytest.raises(IdentityMismatchError):
        validate_response(response, 5, DEVICE_MAC)


def test_blank_response():
    with pytest.raises(BlankResponseError):
        extract_payload(bytes(0x38), DEFAULT_CIPHER)


def test_extract_payload_keeps_padding():
    cipher = AesCipher(bytes(range(16)))
    packet = build_command_packet(0x65, b"abc", 1, DEVICE_MAC, 0, cipher)
    assert extract_payload(packet, cipher) == b"abc" + bytes(13)


def test_hello_packet_layout():
    tz = datetime.timezone(datetime.timedelta(hours=9))
    now = datetime.datetime(2023, 7, 16, 13, 45, 30, tzinfo=tz)  # a Sunday
    packet = build_hello_packet(('192.168.1.23', 0x4567), now)
    assert len(packet) == 0x30
    assert struct.unpack_from('<i', packet, 0x08)[0] == 9
    assert struct.unpack_from('<H', packet, 0x0c)[0] == 2023
    assert packet[0x0e:0x14] == bytes([30, 45, 13, 0, 16, 7])
    assert packet[0x18:0x1c] == bytes([23, 1, 168, 192])
    assert packet[0x1c:0x1e] == b"\x67\x45"
    assert packet[0x26] == 0x06
    assert packet_checksum_ok(packet)


def test_hello_packet_negative_timezone():
    tz = datetime.timezone(datetime.timedelta(hours=-5))
    now = datetime.datetime(2023, 7, 17, 1, 2, 3, tzinfo=tz)  # a Monday
    packet = build_hello_packet(('10.0.0.1', 80), now)
    assert struct.unpack_from('<i', packet, 0x08)[0] == -5
    assert packet[0x08:0x0c] == b"\xfb\xff\xff\xff"
    assert packet[0x11] == 1


def test_parse_hello_reply():
    info = parse_hello_reply(make_hello_reply('192.168.1.50'), ('192.168.1.50', 80))
    assert info is not None
    assert info.mac_addr == DEVICE_MAC
    assert info.type_code == 0x2737
    assert info.src_addr == ('192.168.1.50', 80)


def test_parse_hello_reply_rejects_forged_address():
    assert parse_hello_reply(make_hello_reply('192.168.1.51'), ('192.168.1.50', 80)) is None


def test_parse_hello_reply_rejects_bad_checksum():
    reply = bytearray(make_hello_reply('192.168.1.50'))
    reply[0x3a] ^= 0xff
    assert parse_hello_reply(bytes(reply), ('192.168.1.50', 80)) is None


def test_parse_hello_reply_rejects_other_commands():
    hello = build_hello_packet(('192.168.1.50', 80))
    assert parse_hello_reply(hello + bytes(0x10), ('192.168.1.50', 80)) is None


def test_parse_hello_reply_rejects_short_datagram():
    assert parse_hello_reply(b"\x00" * 0x30, ('192.168.1.50', 80)) is None
