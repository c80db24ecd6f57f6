"""Shared fixtures: an in-process fake BroadLink device listening on the loopback interface."""

from __future__ import annotations

import asyncio
import socket
import struct
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from broadlink_protocol.checksum import checksum
from broadlink_protocol.cipher import AesCipher, DEFAULT_CIPHER
from broadlink_protocol.packet import BroadlinkPacket, build_command_packet
from broadlink_protocol.constants import (
    CHECKSUM_OFFSET,
    COMMAND_OFFSET,
    CMD_AUTH,
    CMD_HELLO,
    CMD_HELLO_REPLY,
    CMD_REMOTE_CONTROL,
    HELLO_REPLY_ADDRESS_OFFSET,
    HELLO_REPLY_MAC_OFFSET,
    HELLO_REPLY_TYPE_OFFSET,
    RESULT_CODE_OFFSET,
    SUBCMD_READ_CAPTURED,
  )

DEVICE_MAC = bytes([0x34, 0xea, 0x34, 0x01, 0x02, 0x03])
DEVICE_KEY = bytes(range(0x10, 0x20))
DEVICE_ID = 0x12345678
DEVICE_TYPE = 0x2737

def with_checksum(packet: bytearray) -> bytes:
    struct.pack_into('<H', packet, CHECKSUM_OFFSET, 0)
    struct.pack_into('<H', packet, CHECKSUM_OFFSET, checksum(packet))
    return bytes(packet)

def make_response(
        command: int,
        payload: bytes,
        counter: int,
        mac_addr: bytes,
        device_id: int,
        cipher: AesCipher,
        result_code: int=0,
      ) -> bytes:
    """Builds a response packet the way a device does: a command header plus a result code."""
    packet = bytearray(build_command_packet(command, payload, counter, mac_addr, device_id, cipher))
    struct.pack_into('<H', packet, RESULT_CODE_OFFSET, result_code)
    return with_checksum(packet)

def make_hello_reply(ip: str, mac_addr: bytes=DEVICE_MAC, type_code: int=DEVICE_TYPE) -> bytes:
    packet = bytearray(0x80)
    packet[COMMAND_OFFSET] = CMD_HELLO_REPLY
    struct.pack_into('<H', packet, HELLO_REPLY_TYPE_OFFSET, type_code)
    packet[HELLO_REPLY_ADDRESS_OFFSET:HELLO_REPLY_ADDRESS_OFFSET + 4] = bytes(reversed(socket.inet_aton(ip)))
    packet[HELLO_REPLY_MAC_OFFSET:HELLO_REPLY_MAC_OFFSET + 6] = bytes(reversed(mac_addr))
    return with_checksum(packet)

class FakeDevice(asyncio.DatagramProtocol):
    """Answers auth, remote control and hello packets like an RM mini 3."""

    transport: Optional[asyncio.DatagramTransport] = None
    cipher: AesCipher
    received: List[bytes]
    silent: bool = False
    corrupt_checksum: bool = False
    counter_delta: int = 0
    reply_mac: bytes = DEVICE_MAC
    result_codes: Dict[int, int]
    captured: Optional[Tuple[int, bytes]] = None
    hello_replies: List[bytes]

    def __init__(self) -> None:
        self.cipher = DEFAULT_CIPHER
        self.received = []
        self.result_codes = {}
        self.hello_replies = []

    @property
    def port(self) -> int:
        assert self.transport is not None
        return self.transport.get_extra_info('sockname')[1]

    def connection_made(self, transport) -> None:
        self.transport = transport

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.received.append(data)
        if self.silent:
            return
        assert self.transport is not None
        command = data[COMMAND_OFFSET]
        if command == CMD_HELLO:
            for reply in self.hello_replies:
                self.transport.sendto(reply, addr)
            return
        request = BroadlinkPacket(data)
        payload = self.cipher.decrypt(request.encrypted_payload)
        counter = (request.counter + self.counter_delta) & 0xffff
        next_cipher = self.cipher
        result_code = 0
        if command == CMD_AUTH:
            response_payload = struct.pack('<I', DEVICE_ID) + DEVICE_KEY + bytes(12)
            next_cipher = AesCipher(DEVICE_KEY)
        elif command == CMD_REMOTE_CONTROL:
            sub_command = payload[0]
            result_code = self.result_codes.get(sub_command, 0)
            response_payload = bytes(16)
            if sub_command == SUBCMD_READ_CAPTURED and result_code == 0 and self.captured is not None:
                rtype, code = self.captured
                response_payload = struct.pack('<HHBBH', SUBCMD_READ_CAPTURED, 0, rtype, 0, len(code)) + code
        else:
            response_payload = bytes(16)
        response = bytearray(make_response(
            command, response_payload, counter, self.reply_mac, request.device_id, self.cipher, result_code))
        if self.corrupt_checksum:
            response[-1] ^= 0xff
        self.transport.sendto(bytes(response), addr)
        self.cipher = next_cipher

@pytest_asyncio.fixture
async def fake_device():
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(FakeDevice, local_addr=('127.0.0.1', 0))
    try:
        yield protocol
    finally:
        transport.close()

@pytest.fixture
def device_factory():
    from broadlink_protocol import BroadlinkRemoteControl

    def factory(fake: FakeDevice, **kwargs) -> BroadlinkRemoteControl:
        kwargs.setdefault('timeout', 1.0)
        return BroadlinkRemoteControl(
            host='127.0.0.1',
            port=fake.port,
            mac_addr=DEVICE_MAC,
            type_code=DEVICE_TYPE,
            local_addr=('127.0.0.1', 0),
            **kwargs
          )
    return factory
