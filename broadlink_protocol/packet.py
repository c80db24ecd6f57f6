#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Encoding and decoding of BroadLink UDP packets.

Command packets consist of a fixed 0x38-byte header followed by an AES-encrypted payload:

    0x00-0x07  magic preamble 5a a5 aa 55 5a a5 aa 55
    0x20-0x21  checksum of the whole packet (LE16), computed last
    0x22-0x23  result code (responses only, LE16)
    0x24-0x25  marker 2a 27
    0x26       command code
    0x28-0x29  request counter (LE16)
    0x2a-0x2f  device MAC address, reversed
    0x30-0x33  device ID assigned by authorization (LE32)
    0x34-0x35  checksum of the plaintext payload (LE16)
    0x38-      encrypted payload

Hello (discovery) packets are a fixed 0x30 bytes and are not encrypted.
"""

from __future__ import annotations

import datetime
import socket
import struct

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    PACKET_MAGIC,
    PACKET_MARKER,
    HEADER_SIZE,
    CHECKSUM_OFFSET,
    MARKER_OFFSET,
    COMMAND_OFFSET,
    COUNTER_OFFSET,
    MAC_OFFSET,
    DEVICE_ID_OFFSET,
    PAYLOAD_CHECKSUM_OFFSET,
    RESULT_CODE_OFFSET,
    HELLO_PACKET_SIZE,
    HELLO_TIMEZONE_OFFSET,
    HELLO_YEAR_OFFSET,
    HELLO_DATETIME_OFFSET,
    HELLO_ADDRESS_OFFSET,
    HELLO_PORT_OFFSET,
    HELLO_REPLY_TYPE_OFFSET,
    HELLO_REPLY_ADDRESS_OFFSET,
    HELLO_REPLY_MAC_OFFSET,
    HELLO_REPLY_MIN_SIZE,
    CMD_HELLO,
    CMD_HELLO_REPLY,
  )
from .checksum import checksum, packet_checksum_ok
from .cipher import AesCipher
from .exceptions import (
    ChecksumMismatchError,
    CounterMismatchError,
    IdentityMismatchError,
    BlankResponseError,
  )
from .util import reversed_bytes

class BroadlinkPacket:
    """A read-only view of the header fields of a raw BroadLink packet.

    No validation is performed on construction; fields that lie beyond the end of
    a short packet raise struct.error or IndexError when accessed.
    """

    raw_data: bytes
    """The raw UDP datagram contents"""

    def __init__(self, raw_data: bytes):
        self.raw_data = bytes(raw_data)

    def __len__(self) -> int:
        return len(self.raw_data)

    def __str__(self) -> str:
        return f"BroadlinkPacket({self.raw_data.hex(' ')})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def checksum(self) -> int:
        """The whole-packet checksum stored in the header"""
        return struct.unpack_from('<H', self.raw_data, CHECKSUM_OFFSET)[0]

    @property
    def is_checksum_ok(self) -> bool:
        return packet_checksum_ok(self.raw_data)

    @property
    def result_code(self) -> int:
        """The 16-bit result code of a response packet. Zero means success."""
        return struct.unpack_from('<H', self.raw_data, RESULT_CODE_OFFSET)[0]

    @property
    def command(self) -> int:
        return self.raw_data[COMMAND_OFFSET]

    @property
    def counter(self) -> int:
        return struct.unpack_from('<H', self.raw_data, COUNTER_OFFSET)[0]

    @property
    def mac_addr(self) -> bytes:
        """The device MAC address, in normal (not reversed) byte order"""
        return reversed_bytes(self.raw_data[MAC_OFFSET:MAC_OFFSET + 6])

    @property
    def device_id(self) -> int:
        return struct.unpack_from('<I', self.raw_data, DEVICE_ID_OFFSET)[0]

    @property
    def payload_checksum(self) -> int:
        """The checksum of the plaintext payload stored in a command header"""
        return struct.unpack_from('<H', self.raw_data, PAYLOAD_CHECKSUM_OFFSET)[0]

    @property
    def encrypted_payload(self) -> bytes:
        return self.raw_data[HEADER_SIZE:]

def build_command_packet(
        command: int,
        payload: bytes,
        counter: int,
        mac_addr: bytes,
        device_id: int,
        cipher: AesCipher
      ) -> bytes:
    """Builds a command packet: a 0x38-byte header followed by the encrypted payload.

    The whole-packet checksum is computed over the header and the ciphertext, after
    everything else has been written.
    """
    header = bytearray(HEADER_SIZE)
    header[0:len(PACKET_MAGIC)] = PACKET_MAGIC
    header[MARKER_OFFSET:MARKER_OFFSET + 2] = PACKET_MARKER
    header[COMMAND_OFFSET] = command
    struct.pack_into('<H', header, COUNTER_OFFSET, counter & 0xffff)
    header[MAC_OFFSET:MAC_OFFSET + 6] = reversed_bytes(mac_addr)
    struct.pack_into('<I', header, DEVICE_ID_OFFSET, device_id & 0xffffffff)
    struct.pack_into('<H', header, PAYLOAD_CHECKSUM_OFFSET, checksum(payload))

    packet = header + cipher.encrypt(payload)
    struct.pack_into('<H', packet, CHECKSUM_OFFSET, checksum(packet))
    return bytes(packet)

def validate_response(raw_data: bytes, counter: int, mac_addr: bytes) -> None:
    """Verifies that raw_data is an intact response to the request with the given counter
       from the device with the given MAC address.

    Raises ChecksumMismatchError, CounterMismatchError or IdentityMismatchError.
    """
    if not packet_checksum_ok(raw_data):
        raise ChecksumMismatchError(f"Invalid checksum in response of {len(raw_data)} bytes")
    packet = BroadlinkPacket(raw_data)
    if packet.counter != counter:
        raise CounterMismatchError(f"Invalid packet counter in response: expected {counter:#06x}, got {packet.counter:#06x}")
    if packet.mac_addr != mac_addr:
        raise IdentityMismatchError(f"Response came from MAC {packet.mac_addr.hex(':')}, expected {mac_addr.hex(':')}")

def extract_payload(raw_data: bytes, cipher: AesCipher) -> bytes:
    """Decrypts the payload of a response packet. Zero padding is not removed.

    Raises BlankResponseError if the packet has nothing beyond its header.
    """
    if len(raw_data) <= HEADER_SIZE:
        raise BlankResponseError(f"Blank response: {len(raw_data)} bytes is not longer than the header")
    return cipher.decrypt(raw_data[HEADER_SIZE:])

def build_hello_packet(bound_addr: HostAndPort, now: Optional[datetime.datetime]=None) -> bytes:
    """Builds the 0x30-byte discovery broadcast packet.

    bound_addr is the (ip, port) the probing socket is bound to; devices send their
    replies there. now defaults to the current local time and is encoded along with the
    local UTC offset in whole hours.
    """
    if now is None:
        now = datetime.datetime.now().astimezone()
    elif now.tzinfo is None:
        now = now.astimezone()
    utc_offset = now.utcoffset()
    tz_seconds = 0 if utc_offset is None else int(utc_offset.total_seconds())
    tz_hours = int(tz_seconds / 3600)

    packet = bytearray(HELLO_PACKET_SIZE)
    struct.pack_into('<i', packet, HELLO_TIMEZONE_OFFSET, tz_hours)
    struct.pack_into('<H', packet, HELLO_YEAR_OFFSET, now.year)
    # Weekday is counted from Sunday = 0
    packet[HELLO_DATETIME_OFFSET:HELLO_DATETIME_OFFSET + 6] = bytes([
        now.second, now.minute, now.hour, now.isoweekday() % 7, now.day, now.month
      ])

    ip, port = bound_addr
    packet[HELLO_ADDRESS_OFFSET:HELLO_ADDRESS_OFFSET + 4] = reversed_bytes(socket.inet_aton(ip))
    struct.pack_into('<H', packet, HELLO_PORT_OFFSET, port)
    packet[COMMAND_OFFSET] = CMD_HELLO

    struct.pack_into('<H', packet, CHECKSUM_OFFSET, checksum(packet))
    return bytes(packet)

class HelloReplyInfo:
    """The device identity carried by a validated hello reply."""

    type_code: int
    """The 16-bit device type code"""

    mac_addr: bytes
    """The device MAC address, in normal byte order"""

    src_addr: HostAndPort
    """The UDP source address the reply came from"""

    def __init__(self, type_code: int, mac_addr: bytes, src_addr: HostAndPort):
        self.type_code = type_code
        self.mac_addr = mac_addr
        self.src_addr = src_addr

    def __str__(self) -> str:
        return f"HelloReplyInfo(type={self.type_code:#06x}, mac={self.mac_addr.hex(':')}, src={self.src_addr})"

    def __repr__(self) -> str:
        return str(self)

def parse_hello_reply(raw_data: bytes, src_addr: HostAndPort) -> Optional[HelloReplyInfo]:
    """Decodes a discovery reply received from src_addr.

    Returns None, without raising, if the datagram is not an intact hello reply, or if the
    IP address embedded in it differs from the address it was actually received from
    (a forged or relayed reply).
    """
    if len(raw_data) < HELLO_REPLY_MIN_SIZE:
        logger.debug(f"Discarding short datagram of {len(raw_data)} bytes from {src_addr}")
        return None
    if not packet_checksum_ok(raw_data):
        logger.debug(f"Discarding datagram with bad checksum from {src_addr}")
        return None
    if raw_data[COMMAND_OFFSET] != CMD_HELLO_REPLY:
        logger.debug(f"Discarding non-hello-reply command {raw_data[COMMAND_OFFSET]:#04x} from {src_addr}")
        return None
    embedded_ip = socket.inet_ntoa(reversed_bytes(raw_data[HELLO_REPLY_ADDRESS_OFFSET:HELLO_REPLY_ADDRESS_OFFSET + 4]))
    if embedded_ip != src_addr[0]:
        logger.debug(f"Discarding hello reply claiming to be from {embedded_ip} but received from {src_addr}")
        return None
    type_code = struct.unpack_from('<H', raw_data, HELLO_REPLY_TYPE_OFFSET)[0]
    mac_addr = reversed_bytes(raw_data[HELLO_REPLY_MAC_OFFSET:HELLO_REPLY_MAC_OFFSET + 6])
    return HelloReplyInfo(type_code, mac_addr, src_addr)
