#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Wi-Fi provisioning of BroadLink devices in AP (setup) mode.

The SSID and password are broadcast once, unencrypted; the device gives no reply.
"""

from __future__ import annotations

import asyncio
from enum import IntEnum

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    BROADLINK_DEVICE_PORT,
    BROADCAST_ADDRESS,
    COMMAND_OFFSET,
    CMD_WIFI_SETUP,
    WIFI_SETUP_PACKET_SIZE,
    WIFI_SSID_OFFSET,
    WIFI_PASSWORD_OFFSET,
    WIFI_SSID_LENGTH_OFFSET,
    WIFI_PASSWORD_LENGTH_OFFSET,
    WIFI_SECURITY_OFFSET,
    WIFI_MAX_FIELD_LENGTH,
  )
from .udp_socket import BroadlinkUdpSocket

class WifiSecurity(IntEnum):
    """Wi-Fi security mode for setup_device_wifi()"""
    NONE = 0
    WEP = 1
    WPA1 = 2
    WPA2 = 3
    WPA_CCMP = 4
    """WPA1/2 CCMP"""
    UNKNOWN_5 = 5
    WPA_TKIP = 6
    """WPA1/2 TKIP"""

def build_wifi_setup_packet(ssid: str, password: str, security: Union[WifiSecurity, int]) -> bytes:
    """Builds the 0x88-byte provisioning packet. SSID and password are truncated to 31 bytes."""
    ssid_bytes = ssid.encode('utf-8')[:WIFI_MAX_FIELD_LENGTH]
    password_bytes = password.encode('utf-8')[:WIFI_MAX_FIELD_LENGTH]

    packet = bytearray(WIFI_SETUP_PACKET_SIZE)
    packet[COMMAND_OFFSET] = CMD_WIFI_SETUP
    packet[WIFI_SSID_OFFSET:WIFI_SSID_OFFSET + len(ssid_bytes)] = ssid_bytes
    packet[WIFI_SSID_LENGTH_OFFSET] = len(ssid_bytes)
    packet[WIFI_PASSWORD_OFFSET:WIFI_PASSWORD_OFFSET + len(password_bytes)] = password_bytes
    packet[WIFI_PASSWORD_LENGTH_OFFSET] = len(password_bytes)
    packet[WIFI_SECURITY_OFFSET] = int(security)
    return bytes(packet)

async def setup_device_wifi(
        ssid: str,
        password: str,
        security: Union[WifiSecurity, int],
        local_addr: Optional[HostAndPort]=None,
        port: int=BROADLINK_DEVICE_PORT,
        broadcast_address: str=BROADCAST_ADDRESS,
      ) -> None:
    """Tells a device in setup mode which Wi-Fi network to join.

    The host running this must be connected to the device's own access point. local_addr
    defaults to all local addresses with an ephemeral port.
    """
    packet = build_wifi_setup_packet(ssid, password, security)
    async with BroadlinkUdpSocket(local_addr, allow_broadcast=True) as udp_socket:
        logger.debug(f"Broadcasting Wi-Fi setup for SSID {ssid!r} from {udp_socket.bound_addr}")
        udp_socket.sendto(packet, (broadcast_address, port))
        # Let the transport report an immediate send failure before closing
        await asyncio.sleep(0)
        udp_socket.check_error()
