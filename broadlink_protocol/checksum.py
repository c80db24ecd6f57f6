#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
The 16-bit additive checksum used by BroadLink packets.
"""

from __future__ import annotations

import struct

from .constants import CHECKSUM_SEED, CHECKSUM_OFFSET, MIN_CHECKSUMMED_PACKET_SIZE

def checksum(data: bytes) -> int:
    """Returns the BroadLink checksum of data: 0xbeaf plus the sum of all bytes, modulo 65536."""
    return (CHECKSUM_SEED + sum(data)) & 0xffff

def packet_checksum_ok(packet: bytes) -> bool:
    """Returns True iff the whole-packet checksum stored at offset 0x20 matches the packet contents.

    The stored checksum bytes were themselves included when summing the packet, so their
    contribution is subtracted before comparing.
    """
    if len(packet) < MIN_CHECKSUMMED_PACKET_SIZE:
        return False
    stored = struct.unpack_from('<H', packet, CHECKSUM_OFFSET)[0]
    calculated = (checksum(packet) - packet[CHECKSUM_OFFSET] - packet[CHECKSUM_OFFSET + 1]) & 0xffff
    return calculated == stored
