"""Tests for Wi-Fi provisioning packets."""

import asyncio

import pytest

from broadlink_protocol import WifiSecurity, build_wifi_setup_packet, setup_device_wifi


def test_wifi_setup_packet_layout():
    packet = build_wifi_setup_packet("HomeNet", "secret123", WifiSecurity.WPA2)
    assert len(packet) == 0x88
    assert packet[0x26] == 0x14
    assert packet[0x44:0x44 + 7] == b"HomeNet"
    assert packet[0x64:0x64 + 9] == b"secret123"
    assert packet[0x84] == 7
    assert packet[0x85] == 9
    assert packet[0x86] == 3


def test_wifi_setup_truncates_long_fields():
    packet = build_wifi_setup_packet("s" * 40, "p" * 40, WifiSecurity.NONE)
    assert packet[0x84] == 31
    assert packet[0x85] == 31
    assert packet[0x44:0x63] == b"s" * 31
    assert packet[0x63] == 0
    assert packet[0x64:0x83] == b"p" * 31


@pytest.mark.asyncio
async def test_setup_device_wifi_sends_packet(fake_device):
    fake_device.silent = True
    await setup_device_wifi(
        "HomeNet", "secret123", WifiSecurity.WPA_TKIP,
        local_addr=('127.0.0.1', 0), port=fake_device.port, broadcast_address='127.0.0.1')
    for _ in range(50):
        if fake_device.received:
            break
        await asyncio.sleep(0.01)
    assert fake_device.received == [build_wifi_setup_packet("HomeNet", "secret123", WifiSecurity.WPA_TKIP)]
