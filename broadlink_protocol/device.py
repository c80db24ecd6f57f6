#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
BroadlinkDevice -- the client-side session state of one BroadLink device, and the
command/response exchange built on it.

A device is created by discovery, or directly by a caller that already knows its
address and MAC address. Authorization assigns it an ID and a per-device AES key; every
command increments its request counter. After a successful auth() it is safe to persist
the device with to_jsonable() and reuse it later without authorizing again.

A BroadlinkDevice is not safe for concurrent use: calls on one device must be awaited
one at a time.
"""

from __future__ import annotations

import asyncio
import struct
import time

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    BROADLINK_DEVICE_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_AES_KEY,
    DEFAULT_AES_IV,
    AES_BLOCK_SIZE,
    CMD_AUTH,
    AUTH_LOCAL_ID_SIZE,
    AUTH_LOCAL_ID_OFFSET,
    AUTH_DELIMITER_OFFSET,
    AUTH_NAME_OFFSET,
    AUTH_MIN_PAYLOAD_SIZE,
    AUTH_MAX_PAYLOAD_SIZE,
    AUTH_KEY_OFFSET,
  )
from .cipher import AesCipher, DEFAULT_CIPHER
from .packet import build_command_packet, validate_response, extract_payload
from .exceptions import InvalidAddressError, InvalidInputError, IncompleteDataError
from .udp_socket import BroadlinkUdpSocket
from .device_names import get_device_name
from .util import parse_mac_addr, format_mac_addr

def build_auth_payload(local_id: bytes, local_name: str) -> bytes:
    """Builds the payload of an authorization request.

    The payload is between 0x50 and 0x80 bytes long, growing in 16-byte steps with the
    length of local_name. Names too long for the payload are truncated.
    """
    if len(local_id) != AUTH_LOCAL_ID_SIZE:
        raise InvalidInputError(f"Local ID must be {AUTH_LOCAL_ID_SIZE} bytes long, got {len(local_id)}")
    name_bytes = local_name.encode('utf-8')
    name_len = len(name_bytes)
    if name_len > 0:
        name_len -= 1
    name_len = (name_len // 16) * 16
    size = min(max(AUTH_NAME_OFFSET + name_len, AUTH_MIN_PAYLOAD_SIZE), AUTH_MAX_PAYLOAD_SIZE)

    payload = bytearray(size)
    payload[AUTH_LOCAL_ID_OFFSET:AUTH_LOCAL_ID_OFFSET + AUTH_LOCAL_ID_SIZE] = local_id
    payload[AUTH_DELIMITER_OFFSET] = 0x01
    name_bytes = name_bytes[:size - AUTH_NAME_OFFSET]
    payload[AUTH_NAME_OFFSET:AUTH_NAME_OFFSET + len(name_bytes)] = name_bytes
    return bytes(payload)

class BroadlinkDevice:
    """A BroadLink device and the credentials negotiated with it."""

    type_code: int
    """The 16-bit device type code reported by discovery"""

    mac_addr: Optional[bytes]
    """The 6-byte MAC address of the device. Commands cannot be sent until it is set."""

    udp_addr: HostAndPort
    """The (ip, port) of the device"""

    local_addr: HostAndPort
    """The local (ip, port) to bind to when talking to the device. Port 0 picks an ephemeral port."""

    timeout: Optional[float]
    """Seconds to wait for a response to a command. None or non-positive selects DEFAULT_TIMEOUT."""

    device_id: int
    """The 32-bit ID assigned to this client by auth()"""

    counter: int
    """The 16-bit request counter. Incremented before each command is sent."""

    _aes_key: Optional[bytes] = None
    _aes_iv: Optional[bytes] = None
    _cipher: AesCipher = DEFAULT_CIPHER

    def __init__(
            self,
            host: Optional[str]=None,
            mac_addr: Optional[Union[str, bytes]]=None,
            type_code: int=0,
            port: int=BROADLINK_DEVICE_PORT,
            local_addr: Optional[HostAndPort]=None,
            timeout: Optional[float]=None,
            device_id: int=0,
            aes_key: Optional[bytes]=None,
            aes_iv: Optional[bytes]=None,
          ) -> None:
        self.type_code = type_code
        self.mac_addr = None if mac_addr is None else parse_mac_addr(mac_addr)
        self.udp_addr = ('' if host is None else host, port)
        self.local_addr = ('0.0.0.0', 0) if local_addr is None else local_addr
        self.timeout = timeout
        self.device_id = device_id
        self.counter = 0
        self._aes_iv = None if aes_iv is None else bytes(aes_iv)
        self.set_aes_key(aes_key)

    @property
    def host(self) -> str:
        return self.udp_addr[0]

    @property
    def effective_timeout(self) -> float:
        if self.timeout is None or self.timeout <= 0:
            return DEFAULT_TIMEOUT
        return self.timeout

    @property
    def is_authorized(self) -> bool:
        """True once a per-device AES key has been set, normally by auth()."""
        return not self._aes_key is None

    @property
    def cipher(self) -> AesCipher:
        """The AES key/IV currently used for this device."""
        return self._cipher

    def _update_cipher(self) -> None:
        key = DEFAULT_AES_KEY if self._aes_key is None else self._aes_key
        iv = DEFAULT_AES_IV if self._aes_iv is None else self._aes_iv
        self._cipher = AesCipher(key, iv)

    def get_aes_key(self) -> bytes:
        """Returns the AES key currently used for the device; the default key if none has been set."""
        return bytes(self._cipher.key)

    def set_aes_key(self, key: Optional[bytes]) -> None:
        """Sets a per-device AES key.

        A key that is None, not 16 bytes long, or equal to the default key reverts the
        device to the default key.
        """
        if key is None or len(key) != AES_BLOCK_SIZE or bytes(key) == DEFAULT_AES_KEY:
            self._aes_key = None
        else:
            self._aes_key = bytes(key)
        self._update_cipher()

    def get_aes_iv(self) -> bytes:
        return bytes(self._cipher.iv)

    def set_aes_iv(self, iv: Optional[bytes]) -> None:
        """Overrides the AES IV. None reverts to the default IV."""
        if not iv is None and len(iv) != AES_BLOCK_SIZE:
            raise InvalidInputError(f"AES IV must be {AES_BLOCK_SIZE} bytes long, got {len(iv)}")
        self._aes_iv = None if iv is None else bytes(iv)
        self._update_cipher()

    def encrypt(self, data: bytes) -> bytes:
        return self._cipher.encrypt(data)

    def decrypt(self, data: bytes) -> bytes:
        return self._cipher.decrypt(data)

    def _check_mac_addr(self) -> bytes:
        if self.mac_addr is None or len(self.mac_addr) != 6:
            raise InvalidAddressError(f"Invalid MAC address: {self.mac_addr!r}")
        return self.mac_addr

    def build_cmd_packet(self, command: int, payload: bytes) -> bytes:
        """Builds a command packet stamped with the current counter, ID and key."""
        mac_addr = self._check_mac_addr()
        return build_command_packet(command, payload, self.counter, mac_addr, self.device_id, self._cipher)

    def get_payload(self, packet: bytes) -> bytes:
        """Decrypts the payload of a response packet from this device."""
        return extract_payload(packet, self._cipher)

    def _next_packet(self, command: int, payload: bytes) -> bytes:
        self._check_mac_addr()
        self.counter = (self.counter + 1) & 0xffff
        return self.build_cmd_packet(command, payload)

    async def call(self, command: int, payload: bytes) -> bytes:
        """Sends a command to the device and returns its raw response packet.

        A new UDP socket bound to local_addr is used for the exchange. Raises
        InvalidAddressError, BroadlinkTimeoutError, ChecksumMismatchError,
        CounterMismatchError or IdentityMismatchError, or the OSError raised by the socket.
        """
        deadline = time.monotonic() + self.effective_timeout
        packet = self._next_packet(command, payload)
        logger.debug(f"Calling command {command:#04x} on {self}, counter={self.counter:#06x}, payload={len(payload)} bytes")
        async with BroadlinkUdpSocket(self.local_addr) as udp_socket:
            udp_socket.sendto(packet, self.udp_addr)
            result, addr = await udp_socket.receive(deadline)
        logger.debug(f"Received response of {len(result)} bytes from {addr} for command {command:#04x}")
        validate_response(result, self.counter, self._check_mac_addr())
        return result

    async def cmd(self, command: int, payload: bytes) -> None:
        """Sends a command to the device without waiting for a response."""
        packet = self._next_packet(command, payload)
        logger.debug(f"Sending command {command:#04x} to {self}, counter={self.counter:#06x}, payload={len(payload)} bytes")
        async with BroadlinkUdpSocket(self.local_addr) as udp_socket:
            udp_socket.sendto(packet, self.udp_addr)
            # Let the transport report an immediate send failure before closing
            await asyncio.sleep(0)
            udp_socket.check_error()

    async def auth(self, local_id: bytes, local_name: str) -> None:
        """Authorizes this client to the device.

        local_id is 15 bytes that uniquely identify the client; the device may remember it
        and hand back the same ID and key next time. local_name is a human-readable name.
        On success, device_id and the AES key are updated.
        """
        payload = build_auth_payload(local_id, local_name)
        result = await self.call(CMD_AUTH, payload)
        data = self.get_payload(result)
        if len(data) < AUTH_KEY_OFFSET + AES_BLOCK_SIZE:
            raise IncompleteDataError(f"Auth response payload too short: {len(data)} bytes")
        self.set_aes_key(data[AUTH_KEY_OFFSET:AUTH_KEY_OFFSET + AES_BLOCK_SIZE])
        self.device_id = struct.unpack_from('<I', data, 0)[0]
        logger.debug(f"Authorized {self}: device_id={self.device_id:#010x}")

    def device_name(self) -> Tuple[str, str]:
        """Returns the (model name, model class) for the device's type code."""
        return get_device_name(self.type_code)

    def to_jsonable(self) -> JsonableDict:
        """Returns everything needed to reconnect to the device without authorizing again."""
        result: JsonableDict = {
            "type_code": self.type_code,
            "mac_addr": format_mac_addr(self.mac_addr),
            "host": self.udp_addr[0],
            "port": self.udp_addr[1],
            "local_host": self.local_addr[0],
            "local_port": self.local_addr[1],
            "device_id": self.device_id,
          }
        if not self.timeout is None:
            result["timeout"] = self.timeout
        if not self._aes_key is None:
            result["aes_key"] = self._aes_key.hex()
        if not self._aes_iv is None:
            result["aes_iv"] = self._aes_iv.hex()
        return result

    @classmethod
    def from_jsonable(cls, data: Mapping[str, Any]) -> Self:
        """Recreates a device saved with to_jsonable()."""
        mac_addr = data.get("mac_addr") or None
        aes_key = data.get("aes_key")
        aes_iv = data.get("aes_iv")
        timeout = data.get("timeout")
        return cls(
            host=str(data["host"]),
            mac_addr=mac_addr,
            type_code=int(data.get("type_code", 0)),
            port=int(data.get("port", BROADLINK_DEVICE_PORT)),
            local_addr=(str(data.get("local_host", '0.0.0.0')), int(data.get("local_port", 0))),
            timeout=None if timeout is None else float(timeout),
            device_id=int(data.get("device_id", 0)),
            aes_key=None if aes_key is None else bytes.fromhex(aes_key),
            aes_iv=None if aes_iv is None else bytes.fromhex(aes_iv),
          )

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.udp_addr[0]}:{self.udp_addr[1]}, mac={format_mac_addr(self.mac_addr)}, type={self.type_code:#06x})"

    def __repr__(self) -> str:
        return str(self)
