"""Tests for persisting authorized devices."""

import json

import pytest

import broadlink_protocol.device_store as device_store
from broadlink_protocol import BroadlinkRemoteControl, DeviceStore
from broadlink_protocol.device_store import StoreContext

from conftest import DEVICE_ID, DEVICE_KEY, DEVICE_MAC


class FakeKeyring:
    def __init__(self):
        self.passwords = {}

    def get_password(self, service, key):
        return self.passwords.get((service, key))

    def set_password(self, service, key, value):
        self.passwords[(service, key)] = value

    def delete_password(self, service, key):
        if (service, key) not in self.passwords:
            raise device_store.PasswordDeleteError(key)
        del self.passwords[(service, key)]


@pytest.fixture
def fake_keyring(monkeypatch):
    fake = FakeKeyring()
    monkeypatch.setattr(device_store, 'keyring', fake)
    return fake


def make_device():
    return BroadlinkRemoteControl(
        host='192.168.1.20', mac_addr=DEVICE_MAC, type_code=0x2737, device_id=DEVICE_ID, aes_key=DEVICE_KEY)


def test_missing_file_is_empty(tmp_path):
    store = DeviceStore(str(tmp_path / "devices.json"), use_keyring=False)
    store.load()
    assert store.names() == []


def test_round_trip_without_keyring(tmp_path):
    file_name = str(tmp_path / "sub" / "devices.json")
    store = DeviceStore(file_name, use_keyring=False)
    store.put_device("living-room", make_device())
    store.save()

    with open(file_name) as f:
        data = json.load(f)
    assert data["devices"]["living-room"]["aes_key"] == DEVICE_KEY.hex()

    store2 = DeviceStore(file_name, use_keyring=False)
    store2.load()
    device = store2.get_device("living-room")
    assert device.get_aes_key() == DEVICE_KEY
    assert device.device_id == DEVICE_ID
    assert device.mac_addr == DEVICE_MAC
    assert device.udp_addr == ('192.168.1.20', 80)


def test_key_is_kept_in_keyring(tmp_path, fake_keyring):
    file_name = str(tmp_path / "devices.json")
    store = DeviceStore(file_name)
    store.put_device("living-room", make_device())
    store.save()

    with open(file_name) as f:
        data = json.load(f)
    assert "aes_key" not in data["devices"]["living-room"]
    assert fake_keyring.passwords == {("broadlink_protocol", "living-room:aes_key"): DEVICE_KEY.hex()}

    store2 = DeviceStore(file_name)
    store2.load()
    assert store2.get_device("living-room").get_aes_key() == DEVICE_KEY


def test_remove_device(tmp_path, fake_keyring):
    store = DeviceStore(str(tmp_path / "devices.json"))
    store.put_device("living-room", make_device())
    store.remove_device("living-room")
    assert "living-room" not in store
    assert fake_keyring.passwords == {}
    with pytest.raises(KeyError):
        store.remove_device("living-room")


def test_unauthorized_device_has_no_keyring_entry(tmp_path, fake_keyring):
    store = DeviceStore(str(tmp_path / "devices.json"))
    store.put_device("new", BroadlinkRemoteControl(host='192.168.1.21', mac_addr=DEVICE_MAC))
    assert fake_keyring.passwords == {}
    assert not store.get_device("new").is_authorized


def test_env_templates(tmp_path):
    file_name = tmp_path / "devices.json"
    file_name.write_text(json.dumps({
        "version": "0.1.0",
        "devices": {
            "office": {"host": "${env:RM_HOST}", "mac_addr": "34:ea:34:01:02:03", "port": 80},
        },
    }))
    context = StoreContext(os_environ={"RM_HOST": "10.1.1.9"})
    store = DeviceStore(str(file_name), use_keyring=False, context=context)
    store.load()
    assert store.get_device("office").udp_addr == ('10.1.1.9', 80)


def test_newer_store_version_is_rejected(tmp_path):
    file_name = tmp_path / "devices.json"
    file_name.write_text(json.dumps({"version": "99.0.0", "devices": {}}))
    store = DeviceStore(str(file_name), use_keyring=False)
    with pytest.raises(RuntimeError):
        store.load()


def test_unknown_device(tmp_path):
    store = DeviceStore(str(tmp_path / "devices.json"), use_keyring=False)
    with pytest.raises(KeyError):
        store.get_device("nope")
