"""Tests for the BroadLink packet checksum."""

import struct

from broadlink_protocol.checksum import checksum, packet_checksum_ok


def test_checksum_empty():
    """Checksum of no data is the seed."""
    assert checksum(b"") == 0xbeaf


def test_checksum_adds_bytes():
    assert checksum(b"\x01\x02\x03") == 0xbeaf + 6


def test_checksum_wraps_at_16_bits():
    data = b"\xff" * 0x200
    assert checksum(data) == (0xbeaf + 0xff * 0x200) & 0xffff


def test_short_packet_fails_verification():
    assert not packet_checksum_ok(bytes(0x21))


def test_verify_accepts_stored_checksum():
    packet = bytearray(0x40)
    packet[0x05] = 0x11
    packet[0x3f] = 0xe0
    struct.pack_into('<H', packet, 0x20, checksum(packet))
    assert packet_checksum_ok(bytes(packet))


def test_verify_subtracts_checksum_field_bytes():
    """verify(p) holds iff the field equals compute(p) - p[0x20] - p[0x21]."""
    packet = bytearray(range(0x30))
    expected = (checksum(packet) - packet[0x20] - packet[0x21]) & 0xffff
    packet[0x20:0x22] = struct.pack('<H', expected)
    assert packet_checksum_ok(bytes(packet))
    packet[0x20:0x22] = struct.pack('<H', (expected + 1) & 0xffff)
    assert not packet_checksum_ok(bytes(packet))


def test_verify_rejects_modified_packet():
    packet = bytearray(0x40)
    struct.pack_into('<H', packet, 0x20, checksum(packet))
    packet[0x30] = 0x01
    assert not packet_checksum_ok(bytes(packet))
