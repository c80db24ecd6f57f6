#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Learning and sending IR/RF remote control codes with BroadLink RM devices.

All operations use command 0x6a with a sub-command in the first payload byte, and
check the 16-bit result code at offset 0x22 of the response.
"""

from __future__ import annotations

import struct
from enum import IntEnum

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    CMD_REMOTE_CONTROL,
    SUBCMD_SEND_CODE,
    SUBCMD_START_CAPTURE,
    SUBCMD_READ_CAPTURED,
    RESULT_CODE_OFFSET,
    RESULT_NOT_CAPTURED,
  )
from .device import BroadlinkDevice
from .packet import BroadlinkPacket
from .exceptions import (
    BlankResponseError,
    BroadlinkProtocolError,
    IncompleteDataError,
    InvalidInputError,
    NotCapturedError,
  )

class RemoteType(IntEnum):
    """Kind of remote control signal"""
    IR = 0x26
    """Infra-red remote"""
    RF_433MHZ = 0xb2
    """RF remote in the 433 MHz band"""
    RF_315MHZ = 0xd7
    """RF remote in the 315 MHz band"""

def _remote_type(value: int) -> Union[RemoteType, int]:
    try:
        return RemoteType(value)
    except ValueError:
        return value

class BroadlinkRemoteControl(BroadlinkDevice):
    """A BroadLink RM device that can capture and replay remote control signals."""

    async def _call_remote_control(self, payload: bytes) -> Tuple[bytes, int]:
        result = await self.call(CMD_REMOTE_CONTROL, payload)
        if len(result) < RESULT_CODE_OFFSET + 2:
            raise BlankResponseError(f"Response of {len(result)} bytes has no result code")
        return result, BroadlinkPacket(result).result_code

    async def start_capture_remote_control_code(self) -> None:
        """Puts the device into capture mode, in which it records the next IR/RF signal it receives."""
        payload = bytearray(0x10)
        payload[0] = SUBCMD_START_CAPTURE
        _, result_code = await self._call_remote_control(bytes(payload))
        if result_code != 0:
            raise BroadlinkProtocolError(f"Failed to start capturing remote control code ({result_code:04x})", result_code)

    async def read_captured_remote_control_code(self) -> Tuple[Union[RemoteType, int], bytes]:
        """Reads the signal recorded in capture mode.

        Returns (remote type, code bytes). Raises NotCapturedError if nothing has been
        captured yet; callers polling for a signal should treat that as "try again".
        """
        payload = bytearray(0x10)
        payload[0] = SUBCMD_READ_CAPTURED
        result, result_code = await self._call_remote_control(bytes(payload))
        if result_code != 0:
            if result_code == RESULT_NOT_CAPTURED:
                raise NotCapturedError()
            raise BroadlinkProtocolError(f"Failed reading remote control code ({result_code:04x})", result_code)

        data = self.get_payload(result)
        if len(data) < 8:
            raise IncompleteDataError(f"Incomplete captured code data: {len(data)} bytes")
        sub_command = struct.unpack_from('<H', data, 0)[0]
        if sub_command != SUBCMD_READ_CAPTURED:
            raise BroadlinkProtocolError(f"Invalid command code {sub_command:#06x} in captured code data")
        rtype = _remote_type(data[4])
        size = struct.unpack_from('<H', data, 6)[0]
        if len(data) < 8 + size:
            raise IncompleteDataError(f"Incomplete captured code data: {len(data) - 8} of {size} code bytes")
        code = data[8:8 + size]
        logger.debug(f"Read captured code from {self}: type={rtype!r}, {size} bytes")
        return rtype, code

    async def send_remote_control_code(self, rtype: Union[RemoteType, int], code: bytes, count: int=1) -> None:
        """Transmits a remote control code.

        rtype is the kind of signal, code is a byte string as returned by
        read_captured_remote_control_code(), and count is the number of times to send it
        (1 for once, 2 for twice, ...).
        """
        if count < 1:
            raise InvalidInputError(f"Repeat count must be a positive integer, got {count}")
        if count > 0x100:
            raise InvalidInputError(f"Repeat count must be at most 256, got {count}")
        if len(code) > 0xffff:
            raise InvalidInputError(f"Remote control code too long: {len(code)} bytes")
        payload = bytearray(8 + len(code))
        payload[0] = SUBCMD_SEND_CODE
        payload[4] = int(rtype)
        # The device counts repeats from zero
        payload[5] = count - 1
        struct.pack_into('<H', payload, 6, len(code))
        payload[8:] = code
        _, result_code = await self._call_remote_control(bytes(payload))
        if result_code != 0:
            raise BroadlinkProtocolError(f"Failed sending remote control code ({result_code:04x})", result_code)

    async def send_ir_remote_code(self, code: bytes, count: int=1) -> None:
        """Transmits an infra-red code. Same as send_remote_control_code(RemoteType.IR, code, count)."""
        await self.send_remote_control_code(RemoteType.IR, code, count)
