#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .device import BroadlinkDevice

class BroadlinkError(Exception):
    """Base class for all error exceptions defined by this package."""
    pass

class InvalidAddressError(BroadlinkError, ValueError):
    """The device MAC address is missing or is not exactly 6 bytes."""
    pass

class InvalidInputError(BroadlinkError, ValueError):
    """A caller-supplied argument is out of range (wrong-length local ID, non-positive repeat count, etc.)."""
    pass

class BroadlinkTimeoutError(BroadlinkError, TimeoutError):
    """The deadline for a UDP exchange passed before a response arrived.

    Derives from TimeoutError, and therefore from OSError, so callers that treat all
    socket failures alike can keep catching OSError."""
    pass

class ChecksumMismatchError(BroadlinkError):
    """A received packet failed checksum verification."""
    pass

class CounterMismatchError(BroadlinkError):
    """A response did not echo the request counter of the packet that was sent."""
    pass

class IdentityMismatchError(BroadlinkError):
    """A response carried a MAC address other than the device's. Possibly a spoofed or foreign reply."""
    pass

class BlankResponseError(BroadlinkError):
    """A response had no payload beyond the packet header."""
    pass

class BroadlinkProtocolError(BroadlinkError):
    """A device operation completed the exchange but reported a failure."""

    result_code: Optional[int]
    """The 16-bit result code returned by the device, if any."""

    def __init__(self, msg: str, result_code: Optional[int]=None):
        super().__init__(msg)
        self.result_code = result_code

class NotCapturedError(BroadlinkProtocolError):
    """No remote control signal has been captured (yet). This is an expected outcome while polling."""

    def __init__(self, msg: str="signal not captured", result_code: Optional[int]=0xfff6):
        super().__init__(msg, result_code)

class IncompleteDataError(BroadlinkProtocolError):
    """A decrypted response payload is shorter than its own length fields claim."""
    pass

class DiscoveryError(BroadlinkError):
    """One or more per-interface discovery probes failed.

    All failures are reported, along with the devices that the successful probes found."""

    errors: List[BaseException]
    devices: List[BroadlinkDevice]

    def __init__(self, errors: List[BaseException], devices: Optional[List[BroadlinkDevice]]=None):
        msg = f"{len(errors)} discovery probe(s) failed: " + "; ".join(str(e) for e in errors)
        super().__init__(msg)
        self.errors = list(errors)
        self.devices = [] if devices is None else list(devices)
