#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Discovery of BroadLink devices on the local IPv4 networks. Discovery can:

  1. Broadcast a hello packet from a socket bound to each local IPv4 address (typically
     one per interface), to 255.255.255.255:80
  2. Collect hello replies until a deadline, discarding any that are corrupt or whose
     embedded IP address does not match the address they were received from
  3. Return one device per accepted reply, ready for auth()
"""

from __future__ import annotations

import asyncio
import time

from .internal_types import *
from .pkg_logging import logger
from .constants import BROADLINK_DEVICE_PORT, BROADCAST_ADDRESS, DEFAULT_LISTEN_TIME
from .packet import build_hello_packet, parse_hello_reply
from .udp_socket import BroadlinkUdpSocket
from .device import BroadlinkDevice
from .remote_control import BroadlinkRemoteControl
from .exceptions import BroadlinkTimeoutError, DiscoveryError, InvalidInputError
from .util import get_local_ip_addresses

_DeviceT = TypeVar('_DeviceT', bound=BroadlinkDevice)

async def discover_devices_from_addr(
        listen_time: float,
        local_addr: HostAndPort,
        port: int=BROADLINK_DEVICE_PORT,
        broadcast_address: str=BROADCAST_ADDRESS,
        device_class: Type[_DeviceT]=BroadlinkRemoteControl, # type: ignore[assignment]
      ) -> List[_DeviceT]:
    """Searches for devices reachable from local_addr.

    Always waits listen_time seconds unless an error occurs. If the port of local_addr is 0,
    an ephemeral port is used.

    Parameters:
        listen_time:        The amount of time (in seconds) to collect responses.
        local_addr:         The local (ip, port) to bind to.
        port:               The device port to send the hello packet to. Defaults to 80.
        broadcast_address:  The address to send the hello packet to. Defaults to 255.255.255.255.
        device_class:       The BroadlinkDevice subclass to create for each device found.
    """
    deadline = time.monotonic() + listen_time
    devices: List[_DeviceT] = []
    async with BroadlinkUdpSocket(local_addr, allow_broadcast=True) as udp_socket:
        packet = build_hello_packet(udp_socket.bound_addr)
        udp_socket.sendto(packet, (broadcast_address, port))
        while True:
            try:
                data, addr = await udp_socket.receive(deadline)
            except BroadlinkTimeoutError:
                break
            if len(data) == 0:
                continue
            info = parse_hello_reply(data, addr)
            if info is None:
                continue
            device = device_class(
                host=addr[0],
                port=addr[1],
                mac_addr=info.mac_addr,
                type_code=info.type_code,
                local_addr=local_addr,
              )
            logger.debug(f"Discovered {device} via {local_addr}")
            devices.append(device)
    return devices

async def discover_devices(
        listen_time: float=DEFAULT_LISTEN_TIME,
        listen_port: int=0,
        bind_addresses: Optional[Iterable[str]]=None,
        include_loopback: bool=True,
        port: int=BROADLINK_DEVICE_PORT,
        broadcast_address: str=BROADCAST_ADDRESS,
        device_class: Type[_DeviceT]=BroadlinkRemoteControl, # type: ignore[assignment]
      ) -> List[_DeviceT]:
    """Searches for all reachable devices, probing from every local IPv4 address concurrently.

    Parameters:
        listen_time:        The amount of time (in seconds) to wait for replies. Must be positive.
        listen_port:        The local UDP port to listen on. If 0 (the default) an ephemeral port is
                              chosen for each address. Be sure the port is not blocked by a firewall.
        bind_addresses:     The local IP addresses to probe from. If None, all local IPv4 addresses
                              are used.
        include_loopback:   If False, loopback addresses are skipped when bind_addresses is None.
        port:               The device port to send hello packets to. Defaults to 80.
        broadcast_address:  The address to send hello packets to. Defaults to 255.255.255.255.
        device_class:       The BroadlinkDevice subclass to create for each device found.

    The order of the returned devices is unspecified. If any probe fails, DiscoveryError is
    raised after all probes have finished; it carries every failure and the devices found by
    the probes that succeeded.
    """
    if listen_time <= 0:
        raise InvalidInputError(f"A positive listen time must be given, got {listen_time}")
    if bind_addresses is None:
        bind_addresses = get_local_ip_addresses(include_loopback=include_loopback)
    bind_addresses = list(bind_addresses)
    logger.debug(f"Discovering devices from {bind_addresses}")

    results = await asyncio.gather(
        *(discover_devices_from_addr(
            listen_time,
            (bind_address, listen_port),
            port=port,
            broadcast_address=broadcast_address,
            device_class=device_class,
          ) for bind_address in bind_addresses),
        return_exceptions=True
      )

    devices: List[_DeviceT] = []
    errors: List[BaseException] = []
    for bind_address, result in zip(bind_addresses, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning(f"Discovery from {bind_address} failed: {result}")
            errors.append(result)
        else:
            devices.extend(result)
    if len(errors) > 0:
        raise DiscoveryError(errors, devices)
    return devices
