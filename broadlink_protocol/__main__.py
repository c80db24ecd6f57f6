#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import hashlib
import logging
import socket
import time

from broadlink_protocol.internal_types import *

from broadlink_protocol import (
    __version__ as pkg_version,
    BroadlinkRemoteControl,
    DeviceStore,
    NotCapturedError,
    RemoteType,
    WifiSecurity,
    discover_devices,
    setup_device_wifi,
    DEFAULT_LISTEN_TIME,
    BROADLINK_DEVICE_PORT,
  )
from broadlink_protocol.device_store import DEFAULT_STORE_FILE

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

remote_type_names: Dict[str, RemoteType] = {
    "ir": RemoteType.IR,
    "rf433": RemoteType.RF_433MHZ,
    "rf315": RemoteType.RF_315MHZ,
  }

remote_type_keys: Dict[RemoteType, str] = { v: k for k, v in remote_type_names.items() }

def default_local_id() -> bytes:
    """A stable 15-byte client ID derived from the host name."""
    return hashlib.sha1(socket.gethostname().encode('utf-8')).digest()[:15]

def device_summary(name: Optional[str], device: BroadlinkRemoteControl) -> JsonableDict:
    model_name, model_class = device.device_name()
    summary: JsonableDict = device.to_jsonable()
    summary.pop("aes_key", None)
    summary["model_name"] = model_name
    summary["model_class"] = model_class
    summary["authorized"] = device.is_authorized
    if not name is None:
        summary["name"] = name
    return summary

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    def _get_store(self) -> DeviceStore:
        store = DeviceStore(self._args.store_file, use_keyring=not self._args.no_keyring)
        store.load()
        return store

    def _get_device(self) -> BroadlinkRemoteControl:
        device_name: Optional[str] = self._args.device
        device: BroadlinkRemoteControl
        if not device_name is None:
            device = self._get_store().get_device(device_name)
        else:
            host: Optional[str] = self._args.host
            mac: Optional[str] = self._args.mac
            if host is None or mac is None:
                raise CmdExitError(1, "Either --device or both --host and --mac are required")
            aes_key: Optional[str] = self._args.aes_key
            device = BroadlinkRemoteControl(
                host=host,
                mac_addr=mac,
                type_code=self._args.type_code,
                port=self._args.port,
                device_id=self._args.device_id,
                aes_key=None if aes_key is None else bytes.fromhex(aes_key),
              )
        if not self._args.timeout is None:
            device.timeout = self._args.timeout
        return device

    async def _get_authorized_device(self) -> BroadlinkRemoteControl:
        device = self._get_device()
        if not device.is_authorized:
            logging.debug(f"Authorizing {device} before use")
            await device.auth(default_local_id(), socket.gethostname())
            device_name: Optional[str] = self._args.device
            if not device_name is None:
                store = self._get_store()
                store.put_device(device_name, device)
                store.save()
        return device

    async def cmd_discover(self) -> int:
        bind_addresses: Optional[List[str]] = self._args.bind_addresses
        if not bind_addresses is None and len(bind_addresses) == 0:
            bind_addresses = None
        devices = await discover_devices(
            listen_time=self._args.wait_time,
            listen_port=self._args.listen_port,
            bind_addresses=bind_addresses,
            include_loopback=self._args.include_loopback,
          )
        store: Optional[DeviceStore] = None
        if self._args.save:
            store = self._get_store()
        for device in devices:
            name: Optional[str] = None
            if not store is None:
                assert not device.mac_addr is None
                name = device.mac_addr.hex()
                store.put_device(name, device)
            print(json.dumps(device_summary(name, device), indent=2, sort_keys=True))
            sys.stdout.flush()
        if not store is None:
            store.save()
        return 0

    async def cmd_auth(self) -> int:
        device = self._get_device()
        local_id_hex: Optional[str] = self._args.local_id
        local_id = default_local_id() if local_id_hex is None else bytes.fromhex(local_id_hex)
        local_name: str = socket.gethostname() if self._args.local_name is None else self._args.local_name
        await device.auth(local_id, local_name)
        save_as: Optional[str] = self._args.save_as
        if save_as is None:
            save_as = self._args.device
        if not save_as is None:
            store = self._get_store()
            store.put_device(save_as, device)
            store.save()
        print(json.dumps(device_summary(save_as, device), indent=2, sort_keys=True))
        return 0

    async def cmd_learn(self) -> int:
        device = await self._get_authorized_device()
        await device.start_capture_remote_control_code()
        print("Waiting for a remote control signal...", file=sys.stderr)
        end_time = time.monotonic() + self._args.wait_time
        while True:
            try:
                rtype, code = await device.read_captured_remote_control_code()
                break
            except NotCapturedError:
                if time.monotonic() >= end_time:
                    raise CmdExitError(1, "No remote control signal was captured")
                await asyncio.sleep(self._args.poll_interval)
        type_name = remote_type_keys[rtype] if isinstance(rtype, RemoteType) else f"{rtype:#04x}"
        print(json.dumps({ "type": type_name, "code": code.hex() }, indent=2, sort_keys=True))
        return 0

    async def cmd_send(self) -> int:
        device = await self._get_authorized_device()
        rtype = remote_type_names[self._args.remote_type]
        code = bytes.fromhex(self._args.code)
        await device.send_remote_control_code(rtype, code, self._args.count)
        return 0

    async def cmd_setup_wifi(self) -> int:
        security = WifiSecurity[self._args.security.upper()]
        await setup_device_wifi(self._args.ssid, self._args.password, security)
        return 0

    async def cmd_list(self) -> int:
        store = self._get_store()
        for name in store.names():
            print(json.dumps(device_summary(name, store.get_device(name)), indent=2, sort_keys=True))
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    def _add_device_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument('-d', '--device', default=None,
                            help='''The name of a device in the device store.''')
        parser.add_argument('--host', default=None,
                            help='''The IP address of the device, if --device is not given.''')
        parser.add_argument('--mac', default=None,
                            help='''The MAC address of the device, if --device is not given.''')
        parser.add_argument('--port', type=int, default=BROADLINK_DEVICE_PORT,
                            help=f'''The UDP port of the device, if --device is not given. Default: {BROADLINK_DEVICE_PORT}''')
        parser.add_argument('--type-code', dest='type_code', type=lambda x: int(x, 0), default=0,
                            help='''The device type code, if --device is not given. Default: 0''')
        parser.add_argument('--device-id', dest='device_id', type=lambda x: int(x, 0), default=0,
                            help='''The device ID from a previous authorization, if --device is not given.''')
        parser.add_argument('--aes-key', dest='aes_key', default=None,
                            help='''The hex AES key from a previous authorization, if --device is not given.''')
        parser.add_argument('--timeout', type=float, default=None,
                            help='''Seconds to wait for each device response. Default: 0.5''')

    async def arun(self) -> int:
        """Run the broadlink command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Discover and control BroadLink IR/RF devices.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('--store', dest='store_file', default=DEFAULT_STORE_FILE,
                            help=f'''The device store file. Default: {DEFAULT_STORE_FILE}''')
        parser.add_argument('--no-keyring', dest='no_keyring', action='store_true', default=False,
                            help='''Keep AES keys in the device store file instead of the system keyring.''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')


        # ======================= discover

        parser_discover = subparsers.add_parser('discover', description="Search for BroadLink devices")
        parser_discover.add_argument('--wait-time', type=float, default=DEFAULT_LISTEN_TIME,
                            help=f'''The amount of time to wait for responses, in seconds. Default: {DEFAULT_LISTEN_TIME}''')
        parser_discover.add_argument('-p', '--listen-port', dest='listen_port', type=int, default=0,
                            help='''The local UDP port to listen on. Default: 0 (ephemeral)''')
        parser_discover.add_argument('-b', '--bind', dest="bind_addresses", action='append', default=[],
                            help='''The local unicast IP address to bind to. May be repeated. Default: all local IPv4 addresses.''')
        parser_discover.add_argument('--no-loopback', dest='include_loopback', action='store_false', default=True,
                            help='''Do not probe from loopback addresses.''')
        parser_discover.add_argument('--save', action='store_true', default=False,
                            help='''Save discovered devices in the device store, named by MAC address.''')
        parser_discover.set_defaults(func=self.cmd_discover)

        # ======================= auth

        parser_auth = subparsers.add_parser('auth', description="Authorize with a device and obtain its AES key")
        self._add_device_arguments(parser_auth)
        parser_auth.add_argument('--local-id', dest='local_id', default=None,
                            help='''The 15-byte client ID, in hex. Default: derived from the host name''')
        parser_auth.add_argument('--local-name', dest='local_name', default=None,
                            help='''The client name to register with the device. Default: the host name''')
        parser_auth.add_argument('--save-as', dest='save_as', default=None,
                            help='''Save the authorized device in the device store under this name. Default: the --device name''')
        parser_auth.set_defaults(func=self.cmd_auth)

        # ======================= learn

        parser_learn = subparsers.add_parser('learn', description="Capture a remote control code")
        self._add_device_arguments(parser_learn)
        parser_learn.add_argument('--wait-time', type=float, default=30.0,
                            help='''The amount of time to wait for a signal, in seconds. Default: 30''')
        parser_learn.add_argument('--poll-interval', dest='poll_interval', type=float, default=1.0,
                            help='''Seconds between checks for a captured signal. Default: 1''')
        parser_learn.set_defaults(func=self.cmd_learn)

        # ======================= send

        parser_send = subparsers.add_parser('send', description="Send a remote control code")
        self._add_device_arguments(parser_send)
        parser_send.add_argument('--code', required=True,
                            help='''The code to send, in hex, as printed by "learn"''')
        parser_send.add_argument('--type', dest='remote_type', default='ir', choices=list(remote_type_names.keys()),
                            help='''The kind of signal. Default: ir''')
        parser_send.add_argument('--count', type=int, default=1,
                            help='''The number of times to send the code. Default: 1''')
        parser_send.set_defaults(func=self.cmd_send)

        # ======================= setup-wifi

        parser_setup_wifi = subparsers.add_parser('setup-wifi', description="Provision a device in AP mode with Wi-Fi credentials")
        parser_setup_wifi.add_argument('--ssid', required=True,
                            help='''The Wi-Fi network name''')
        parser_setup_wifi.add_argument('--password', default='',
                            help='''The Wi-Fi password''')
        parser_setup_wifi.add_argument('--security', default='wpa2', choices=[x.name.lower() for x in WifiSecurity],
                            help='''The Wi-Fi security mode. Default: wpa2''')
        parser_setup_wifi.set_defaults(func=self.cmd_setup_wifi)

        # ======================= list

        parser_list = subparsers.add_parser('list', description="List devices in the device store")
        parser_list.set_defaults(func=self.cmd_list)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"broadlink: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"broadlink: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
