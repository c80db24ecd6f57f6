#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

import netifaces
import socket
from ipaddress import IPv4Address

from .internal_types import *
from .exceptions import InvalidAddressError

def reversed_bytes(data: bytes) -> bytes:
    """Returns data with its byte order reversed. BroadLink packets carry IPv4 and MAC
       addresses least-significant byte first."""
    return bytes(reversed(data))

def parse_mac_addr(mac: Union[str, bytes]) -> bytes:
    """Parses a MAC address given as 6 raw bytes, or as 12 hex digits optionally separated
       by ':' or '-'. Raises InvalidAddressError if the result is not exactly 6 bytes."""
    if isinstance(mac, str):
        try:
            result = bytes.fromhex(mac.replace(':', '').replace('-', ''))
        except ValueError:
            raise InvalidAddressError(f"Invalid MAC address: {mac!r}") from None
    else:
        result = bytes(mac)
    if len(result) != 6:
        raise InvalidAddressError(f"MAC address must be 6 bytes long: {mac!r}")
    return result

def format_mac_addr(mac: Optional[bytes]) -> str:
    """Formats a MAC address as colon-separated lower-case hex, or '' if it is None."""
    if mac is None:
        return ''
    return mac.hex(':')

def hexdump(data: bytes) -> str:
    """Formats data as a hex dump with 16 bytes per row, suitable for debug logging.

    Rows are prefixed with the offset of their first byte, and a comma separates the two
    halves of each row."""
    lines = [ ">     00 01 02 03 04 05 06 07 08 09 0a 0b 0c 0d 0e 0f" ]
    for offset in range(0, len(data), 16):
        row = data[offset:offset + 16]
        left = row[:8].hex(' ')
        right = row[8:].hex(' ')
        line = f"{offset:04x}  {left}"
        if len(right) > 0:
            line += f",{right}"
        lines.append(line)
    return '\n'.join(lines)

def get_local_ip_addresses_and_interfaces(
        address_family: Union[socket.AddressFamily, int]=socket.AF_INET,
        include_loopback: bool=True
    ) -> List[Tuple[str, str]]:
    """Returns a list of Tuple[ip_address: str, interface_name: str] for the IP addresses of the local host
       in a requested address family. The result is sorted in a way that attempts to place the "preferred"
       canonical IP address first in the list, according to the following scheme:
           1. Addresses on the default gateway interface precede all other addresses.
           2. Non-loopback addresses precede loopback addresses.
           3. IPV4 addresses that begin with 172. follow other IPV4 addresses. This is a hack to
              deprioritize local docker network addresses.
       Only AF_INET is supported; BroadLink devices do not speak IPv6.
    """
    result_with_priority: List[Tuple[int, str, str]] = []
    assert int(address_family) == int(socket.AF_INET)
    _, default_gateway_ifname = get_default_ip_gateway(address_family)
    for ifname in netifaces.interfaces():
        ifinfo = netifaces.ifaddresses(ifname)
        if netifaces.AF_INET in ifinfo:
            for addrinfo in ifinfo[netifaces.AF_INET]:
                ip_str = addrinfo['addr']
                assert isinstance(ip_str, str)
                if ifname == default_gateway_ifname:
                    priority = 0
                elif IPv4Address(ip_str).is_loopback:
                    if not include_loopback:
                        continue
                    priority = 3
                elif ip_str.startswith('172.'):
                    priority = 2
                else:
                    priority = 1

                result_with_priority.append((priority, ip_str, ifname))
    return [ (ip, ifname) for _, ip, ifname in sorted(result_with_priority)]

def get_local_ip_addresses(address_family: Union[socket.AddressFamily, int]=socket.AF_INET, include_loopback: bool=True) -> List[str]:
    """Returns a List[ip_address: str] for the IPv4 addresses of the local host, sorted
       as described in get_local_ip_addresses_and_interfaces()."""
    return [ ip for ip, _ in get_local_ip_addresses_and_interfaces(address_family, include_loopback=include_loopback)]

def get_default_ip_gateway(address_family: Union[socket.AddressFamily, int]=socket.AF_INET) -> Tuple[Optional[str], Optional[str]]:
    """Returns the (gateway_ip_address: str, gateway_interface_name: str) for the default IP gateway in the
       requested family, if any.
       returns (None, None) if there is no default gateway in the requested family."""
    assert int(address_family) == int(socket.AF_INET)
    gws = netifaces.gateways()
    if "default" in gws:
        default_gateway_infos = gws["default"]
        if netifaces.AF_INET in default_gateway_infos:
            gw_ip, gw_interface_name = default_gateway_infos[netifaces.AF_INET][:2]
            return (gw_ip, gw_interface_name)
    return (None, None)
