# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

BROADLINK_DEVICE_PORT = 80
"""The UDP port number BroadLink devices listen on, for both discovery and commands."""

BROADCAST_ADDRESS = "255.255.255.255"
"""The IPv4 limited broadcast address that discovery and Wi-Fi setup packets are sent to."""

DEFAULT_TIMEOUT = 0.5
"""The default amount of time (in seconds) to wait for a device to respond to a command."""

DEFAULT_LISTEN_TIME = 2.0
"""The default amount of time (in seconds) to collect discovery responses."""

MAX_DATAGRAM_SIZE = 2048
"""Largest datagram the device is expected to send."""

AES_BLOCK_SIZE = 16

DEFAULT_AES_KEY = bytes([0x09, 0x76, 0x28, 0x34, 0x3f, 0xe9, 0x9e, 0x23, 0x76, 0x5c, 0x15, 0x13, 0xac, 0xcf, 0x8b, 0x02])
"""The well-known AES key used by every device until authorization supplies its own."""

DEFAULT_AES_IV = bytes([0x56, 0x2e, 0x17, 0x99, 0x6d, 0x09, 0x3d, 0x28, 0xdd, 0xb3, 0xba, 0x69, 0x5a, 0x2e, 0x6f, 0x58])
"""The well-known AES IV used by every device."""

CHECKSUM_SEED = 0xbeaf

PACKET_MAGIC = bytes([0x5a, 0xa5, 0xaa, 0x55, 0x5a, 0xa5, 0xaa, 0x55])
"""The 8-byte preamble of every command packet."""

PACKET_MARKER = bytes([0x2a, 0x27])
"""Fixed marker bytes at offset 0x24 of every command packet."""

# Command packet header layout
HEADER_SIZE = 0x38
CHECKSUM_OFFSET = 0x20
MARKER_OFFSET = 0x24
COMMAND_OFFSET = 0x26
COUNTER_OFFSET = 0x28
MAC_OFFSET = 0x2a
DEVICE_ID_OFFSET = 0x30
PAYLOAD_CHECKSUM_OFFSET = 0x34
RESULT_CODE_OFFSET = 0x22

MIN_CHECKSUMMED_PACKET_SIZE = CHECKSUM_OFFSET + 2
"""Packets shorter than this cannot hold a checksum field."""

# Hello (discovery) packet layout
HELLO_PACKET_SIZE = 0x30
HELLO_TIMEZONE_OFFSET = 0x08
HELLO_YEAR_OFFSET = 0x0c
HELLO_DATETIME_OFFSET = 0x0e
HELLO_ADDRESS_OFFSET = 0x18
HELLO_PORT_OFFSET = 0x1c
HELLO_REPLY_TYPE_OFFSET = 0x34
HELLO_REPLY_ADDRESS_OFFSET = 0x36
HELLO_REPLY_MAC_OFFSET = 0x3a
HELLO_REPLY_MIN_SIZE = HELLO_REPLY_MAC_OFFSET + 6

# Wi-Fi setup packet layout
WIFI_SETUP_PACKET_SIZE = 0x88
WIFI_SSID_OFFSET = 0x44
WIFI_PASSWORD_OFFSET = 0x64
WIFI_SSID_LENGTH_OFFSET = 0x84
WIFI_PASSWORD_LENGTH_OFFSET = 0x85
WIFI_SECURITY_OFFSET = 0x86
WIFI_MAX_FIELD_LENGTH = 0x1f

# Command codes
CMD_HELLO = 0x06
CMD_HELLO_REPLY = 0x07
CMD_WIFI_SETUP = 0x14
CMD_AUTH = 0x65
CMD_REMOTE_CONTROL = 0x6a

# Remote control sub-commands (first byte of the 0x6a payload)
SUBCMD_SEND_CODE = 0x02
SUBCMD_START_CAPTURE = 0x03
SUBCMD_READ_CAPTURED = 0x04

RESULT_NOT_CAPTURED = 0xfff6
"""Result code returned when reading a captured code before a signal has been captured."""

# Auth payload layout
AUTH_LOCAL_ID_SIZE = 15
AUTH_LOCAL_ID_OFFSET = 0x04
AUTH_DELIMITER_OFFSET = 0x2d
AUTH_NAME_OFFSET = 0x30
AUTH_MIN_PAYLOAD_SIZE = 0x50
AUTH_MAX_PAYLOAD_SIZE = 0x80
AUTH_KEY_OFFSET = 0x04
