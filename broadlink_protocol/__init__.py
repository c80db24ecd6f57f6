# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package broadlink_protocol implements the local UDP control protocol of BroadLink IR/RF
bridge appliances (RM mini 3 and relatives).

The protocol is proprietary and undocumented. Every command packet carries a fixed
0x38-byte header, a 16-bit additive checksum, and an AES-128-CBC encrypted payload.
Devices accept a well-known default AES key until a client authorizes itself, at which
point the device hands back a per-device key and a client ID.

Devices are found by broadcasting a "hello" packet to UDP port 80 from every local IPv4
address and collecting the replies.

Usage:
    devices = await broadlink_protocol.discover_devices()
    device = devices[0]
    await device.auth(local_id, "my host")
    await device.start_capture_remote_control_code()
    rtype, code = await device.read_captured_remote_control_code()
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import (
    BroadlinkError,
    InvalidAddressError,
    InvalidInputError,
    BroadlinkTimeoutError,
    ChecksumMismatchError,
    CounterMismatchError,
    IdentityMismatchError,
    BlankResponseError,
    BroadlinkProtocolError,
    NotCapturedError,
    IncompleteDataError,
    DiscoveryError,
  )

from .checksum import checksum, packet_checksum_ok
from .cipher import AesCipher, DEFAULT_CIPHER, encrypt, decrypt
from .packet import (
    BroadlinkPacket,
    HelloReplyInfo,
    build_command_packet,
    validate_response,
    extract_payload,
    build_hello_packet,
    parse_hello_reply,
  )
from .udp_socket import BroadlinkUdpSocket
from .device import BroadlinkDevice, build_auth_payload
from .remote_control import BroadlinkRemoteControl, RemoteType
from .discovery import discover_devices, discover_devices_from_addr
from .wifi import WifiSecurity, setup_device_wifi, build_wifi_setup_packet
from .device_names import get_device_name
from .device_store import DeviceStore
from .constants import (
    BROADLINK_DEVICE_PORT,
    DEFAULT_TIMEOUT,
    DEFAULT_LISTEN_TIME,
    DEFAULT_AES_KEY,
    DEFAULT_AES_IV,
  )

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'BroadlinkError', 'InvalidAddressError', 'InvalidInputError', 'BroadlinkTimeoutError',
    'ChecksumMismatchError', 'CounterMismatchError', 'IdentityMismatchError', 'BlankResponseError',
    'BroadlinkProtocolError', 'NotCapturedError', 'IncompleteDataError', 'DiscoveryError',
    'checksum', 'packet_checksum_ok',
    'AesCipher', 'DEFAULT_CIPHER', 'encrypt', 'decrypt',
    'BroadlinkPacket', 'HelloReplyInfo', 'build_command_packet', 'validate_response', 'extract_payload',
    'build_hello_packet', 'parse_hello_reply',
    'BroadlinkUdpSocket',
    'BroadlinkDevice', 'build_auth_payload',
    'BroadlinkRemoteControl', 'RemoteType',
    'discover_devices', 'discover_devices_from_addr',
    'WifiSecurity', 'setup_device_wifi', 'build_wifi_setup_packet',
    'get_device_name',
    'DeviceStore',
    'BROADLINK_DEVICE_PORT', 'DEFAULT_TIMEOUT', 'DEFAULT_LISTEN_TIME', 'DEFAULT_AES_KEY', 'DEFAULT_AES_IV',
]
