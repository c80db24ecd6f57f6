"""Tests for the broadlink command-line tool."""

import json

import pytest

from broadlink_protocol import __version__, BroadlinkRemoteControl, DeviceStore, RemoteType
from broadlink_protocol.__main__ import arun

from conftest import DEVICE_ID, DEVICE_KEY, DEVICE_MAC


@pytest.mark.asyncio
async def test_version(capsys):
    assert await arun(['version']) == 0
    assert capsys.readouterr().out.strip() == __version__


@pytest.mark.asyncio
async def test_no_command(capsys):
    assert await arun([]) == 1


@pytest.mark.asyncio
async def test_missing_device_arguments(capsys):
    assert await arun(['send', '--code', '00']) == 1
    assert "--host" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_auth_and_save(fake_device, tmp_path, capsys):
    store_file = str(tmp_path / "devices.json")
    rc = await arun([
        '--store', store_file, '--no-keyring',
        'auth', '--host', '127.0.0.1', '--port', str(fake_device.port), '--mac', DEVICE_MAC.hex(':'),
        '--local-name', 'pytest', '--save-as', 'rm',
    ])
    assert rc == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["name"] == "rm"
    assert summary["authorized"] is True
    assert summary["device_id"] == DEVICE_ID
    with open(store_file) as f:
        data = json.load(f)
    assert data["devices"]["rm"]["aes_key"] == DEVICE_KEY.hex()


def save_unauthorized_device(store_file, fake_device):
    store = DeviceStore(store_file, use_keyring=False)
    store.put_device("rm", BroadlinkRemoteControl(
        host='127.0.0.1', port=fake_device.port, mac_addr=DEVICE_MAC, local_addr=('127.0.0.1', 0)))
    store.save()


@pytest.mark.asyncio
async def test_learn_output_can_be_sent_back(fake_device, tmp_path, capsys):
    store_file = str(tmp_path / "devices.json")
    save_unauthorized_device(store_file, fake_device)
    fake_device.captured = (RemoteType.RF_433MHZ, bytes.fromhex("b20c1a00"))

    rc = await arun([
        '--store', store_file, '--no-keyring',
        'learn', '--device', 'rm', '--wait-time', '2', '--poll-interval', '0.05',
    ])
    assert rc == 0
    learned = json.loads(capsys.readouterr().out)
    assert learned == {"type": "rf433", "code": "b20c1a00"}

    rc = await arun([
        '--store', store_file, '--no-keyring',
        'send', '--device', 'rm', '--type', learned["type"], '--code', learned["code"],
    ])
    assert rc == 0


@pytest.mark.asyncio
async def test_auto_authorization_is_saved(fake_device, tmp_path, capsys):
    store_file = str(tmp_path / "devices.json")
    save_unauthorized_device(store_file, fake_device)

    rc = await arun([
        '--store', store_file, '--no-keyring',
        'send', '--device', 'rm', '--code', '2600',
    ])
    assert rc == 0
    store = DeviceStore(store_file, use_keyring=False)
    store.load()
    device = store.get_device("rm")
    assert device.is_authorized
    assert device.get_aes_key() == DEVICE_KEY
    assert device.device_id == DEVICE_ID
