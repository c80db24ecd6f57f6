#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
BroadlinkUdpSocket -- An ephemeral async UDP socket used for a single exchange with
BroadLink devices. It can:

  1. Bind to a local unicast address (port 0 for an ephemeral port), optionally with
     broadcast enabled
  2. Send raw datagrams to a device or to the broadcast address
  3. Receive raw datagrams one at a time, each read bounded by an absolute deadline

  A new socket is created for every command call or discovery probe and closed when
  the exchange is done; sockets are never pooled or reused.
"""

from __future__ import annotations

import asyncio
import socket
import time

from .internal_types import *
from .pkg_logging import logger
from .exceptions import BroadlinkError, BroadlinkTimeoutError
from .util import hexdump

MAX_QUEUE_SIZE = 1000

ReceivedDatagram = Tuple[bytes, HostAndPort]

class _BroadlinkDatagramProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and BroadlinkUdpSocket."""
    udp_socket: BroadlinkUdpSocket

    def __init__(self, udp_socket: BroadlinkUdpSocket):
        self.udp_socket = udp_socket

    def connection_made(self, transport: asyncio.BaseTransport):
        """Called when a connection is made."""
        # asyncio datagram transports do not actually inherit from asyncio.DatagramTransport
        self.udp_socket.connection_made(transport) # type: ignore[arg-type]

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        self.udp_socket.datagram_received(data, addr)

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        self.udp_socket.error_received(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        self.udp_socket.connection_lost(exc)

class BroadlinkUdpSocket(AsyncContextManager['BroadlinkUdpSocket']):
    """
    An async UDP socket bound to a single local address.

    Usage:
        async with BroadlinkUdpSocket(('192.168.1.5', 0)) as udp_socket:
            udp_socket.sendto(packet, ('192.168.1.20', 80))
            data, addr = await udp_socket.receive(deadline)
    """

    local_addr: HostAndPort
    """The local (ip, port) requested for binding. Port 0 selects an ephemeral port."""

    allow_broadcast: bool
    """If True, SO_BROADCAST is enabled on the socket."""

    sock: Optional[socket.socket] = None
    """The low-level socket, once started."""

    transport: Optional[asyncio.DatagramTransport] = None
    """The asyncio transport bound to the socket, once started."""

    queue: asyncio.Queue[Union[ReceivedDatagram, BaseException, None]]
    """Received datagrams, pending transport errors, and a None end-of-stream marker."""

    closed: bool = False

    def __init__(self, local_addr: Optional[HostAndPort]=None, allow_broadcast: bool=False, max_queue_size: int=MAX_QUEUE_SIZE):
        self.local_addr = ('0.0.0.0', 0) if local_addr is None else local_addr
        self.allow_broadcast = allow_broadcast
        self.queue = asyncio.Queue(max_queue_size)

    @property
    def bound_addr(self) -> HostAndPort:
        """The (ip, port) the socket is actually bound to."""
        assert not self.sock is None
        result = self.sock.getsockname()
        return (result[0], result[1])

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            if self.allow_broadcast:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind(self.local_addr)
            sock.setblocking(False)
            self.sock = sock
            untyped_transport, protocol = await loop.create_datagram_endpoint(
                lambda: _BroadlinkDatagramProtocol(self),
                sock=sock
              )
        except BaseException:
            self.sock = None
            sock.close()
            raise
        # asyncio datagram transports do not actually inherit from asyncio.DatagramTransport
        transport: asyncio.DatagramTransport = untyped_transport # type: ignore[assignment]
        self.transport = transport
        logger.debug(f"Created UDP endpoint bound to {self.bound_addr}")

    def connection_made(self, transport: asyncio.DatagramTransport) -> None:
        logger.debug(f"Connection made: {self}")
        self.transport = transport

    def datagram_received(self, data: bytes, addr: HostAndPort) -> None:
        logger.debug(f"Received {len(data)} bytes on {self} from {addr}:\n{hexdump(data)}")
        self._enqueue((data, (addr[0], addr[1])))

    def error_received(self, exc: Exception) -> None:
        logger.info(f"Error received from transport {self}: {exc}")
        self._enqueue(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        logger.debug(f"Connection to transport lost on {self}, exc={exc}")
        self.transport = None
        self._enqueue(exc)

    def _enqueue(self, item: Union[ReceivedDatagram, BaseException, None]) -> None:
        try:
            self.queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning(f"Queue full on {self}, dropping {item!r}")

    def sendto(self, data: bytes, addr: HostAndPort) -> None:
        """Sends a datagram. Send failures are reported by the next receive() or check_error()."""
        if self.transport is None:
            raise BroadlinkError(f"Attempt to send on a socket that is not open: {self}")
        logger.debug(f"Sending {len(data)} bytes via {self} to {addr}:\n{hexdump(data)}")
        self.transport.sendto(data, addr)

    def check_error(self) -> None:
        """Raises any transport error that has been queued but not yet received."""
        pending: List[Union[ReceivedDatagram, BaseException, None]] = []
        error: Optional[BaseException] = None
        while not self.queue.empty():
            item = self.queue.get_nowait()
            if isinstance(item, BaseException) and error is None:
                error = item
            else:
                pending.append(item)
        for item in pending:
            self.queue.put_nowait(item)
        if not error is None:
            raise error

    async def receive(self, deadline: float) -> ReceivedDatagram:
        """Waits for the next datagram until deadline, a time.monotonic() value.

        Raises BroadlinkTimeoutError when the deadline passes, or the OSError reported by
        the transport if a send or receive failed.
        """
        remaining_time = deadline - time.monotonic()
        if remaining_time <= 0.0 and self.queue.empty():
            raise BroadlinkTimeoutError(f"Timed out waiting for a datagram on {self}")
        try:
            item = await asyncio.wait_for(self.queue.get(), max(remaining_time, 0.0))
        except asyncio.TimeoutError:
            raise BroadlinkTimeoutError(f"Timed out waiting for a datagram on {self}") from None
        if item is None:
            self._enqueue(None)
            raise BroadlinkError(f"Socket closed while waiting for a datagram: {self}")
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            if not self.transport is None:
                try:
                    self.transport.close()
                except Exception as e:
                    logger.error(f"Error closing transport on {self}: {e}")
                self.transport = None
            if not self.sock is None:
                self.sock.close()
                self.sock = None

    async def __aenter__(self) -> BroadlinkUdpSocket:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.close()
        return False

    def __str__(self) -> str:
        if self.sock is None:
            return f"BroadlinkUdpSocket({self.local_addr})"
        return f"BroadlinkUdpSocket({self.bound_addr})"

    def __repr__(self) -> str:
        return str(self)
