# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Persistent storage of authorized device credentials.

Devices are kept in a JSON file keyed by a user-chosen name. String values in the file
may reference environment variables as ${env:NAME}. Per-device AES keys are kept out of
the file, in the system keyring, unless keyring storage is disabled.
"""

from typing import Optional, Dict, Any, List
from .internal_types import Jsonable, JsonableDict

import os
import json
import re
from collections import UserDict
from copy import deepcopy
from string import Template

import keyring
from keyring.errors import PasswordDeleteError

from .pkg_logging import logger
from .version import __version__
from .remote_control import BroadlinkRemoteControl

DEFAULT_KEYRING_SERVICE = "broadlink_protocol"

DEFAULT_STORE_FILE = "~/.config/broadlink_protocol/devices.json"

class _EnvTemplate(Template):
  idpattern = r'(?a:[_a-z][_a-z0-9]*(?::[_a-z0-9]+)?)'

class StoreContext(UserDict):
  """Template variables available to a device store file: "env:<name>" for each environment variable."""

  def __init__(self, globals: Optional[Dict[str, Any]]=None, os_environ: Optional[Dict[str, str]]=None):
    super().__init__()
    if not globals is None:
      self.update(deepcopy(globals))
    if os_environ is None:
      os_environ = dict(os.environ)
    for k, v in os_environ.items():
      self[f"env:{k}"] = v

  def render_template_str(self, template_str: str) -> str:
    t = _EnvTemplate(template_str)
    result: str = t.substitute(self)
    return result

  def render_template_json_data(self, template_json_data: Jsonable) -> Jsonable:
    if isinstance(template_json_data, str):
      return self.render_template_str(template_json_data)
    if isinstance(template_json_data, dict):
      return { k: self.render_template_json_data(v) for k, v in template_json_data.items() }
    if isinstance(template_json_data, list):
      return [ self.render_template_json_data(v) for v in template_json_data ]
    return template_json_data

class DeviceStore:
  _file_name: str
  _keyring_service: str
  _use_keyring: bool
  _context: StoreContext
  _devices: Dict[str, JsonableDict]

  def __init__(
        self,
        file_name: str=DEFAULT_STORE_FILE,
        keyring_service: str=DEFAULT_KEYRING_SERVICE,
        use_keyring: bool=True,
        context: Optional[StoreContext]=None
      ):
    self._file_name = os.path.abspath(os.path.expanduser(file_name))
    self._keyring_service = keyring_service
    self._use_keyring = use_keyring
    self._context = StoreContext() if context is None else context
    self._devices = {}

  @property
  def file_name(self) -> str:
    return self._file_name

  def _keyring_key(self, name: str) -> str:
    return f"{name}:aes_key"

  def load(self) -> None:
    """Loads the store file. A missing file is treated as an empty store."""
    if not os.path.exists(self._file_name):
      logger.debug(f"DeviceStore: {self._file_name} does not exist; starting empty")
      self._devices = {}
      return
    with open(self._file_name) as f:
      data = json.load(f)
    if not isinstance(data, dict):
      raise ValueError(f"DeviceStore: expected json dict in {self._file_name}, got {type(data).__name__}")
    if 'version' in data:
      version_s = data['version']
      if not isinstance(version_s, str):
        raise ValueError(f"DeviceStore: expected str version, got {type(version_s).__name__}")
      version = tuple(int(x) for x in version_s.split('.'))
      my_version = tuple(int(x) for x in __version__.split('.'))
      if version > my_version:
        raise RuntimeError(f"DeviceStore: store version {version_s} is newer than package version {__version__}")
    devices = data.get('devices', {})
    if not isinstance(devices, dict):
      raise ValueError(f"DeviceStore: expected dict of devices, got {type(devices).__name__}")
    self._devices = {}
    for name, device_data in devices.items():
      rendered = self._context.render_template_json_data(device_data)
      if not isinstance(rendered, dict):
        raise ValueError(f"DeviceStore: expected dict for device '{name}', got {type(rendered).__name__}")
      self._devices[name] = rendered

  def save(self) -> None:
    """Writes the store file, creating its directory if necessary."""
    dir_name = os.path.dirname(self._file_name)
    if dir_name != '':
      os.makedirs(dir_name, exist_ok=True)
    data: JsonableDict = { 'version': __version__, 'devices': deepcopy(self._devices) }
    tmp_file_name = self._file_name + '.tmp'
    with open(tmp_file_name, 'w') as f:
      json.dump(data, f, indent=2, sort_keys=True)
      f.write('\n')
    os.replace(tmp_file_name, self._file_name)

  def names(self) -> List[str]:
    return sorted(self._devices.keys())

  def __contains__(self, name: str) -> bool:
    return name in self._devices

  def get_device(self, name: str) -> BroadlinkRemoteControl:
    """Returns a new device object for a stored device, with its AES key restored from the keyring."""
    if not name in self._devices:
      raise KeyError(f"DeviceStore: device '{name}' does not exist")
    device_data = dict(self._devices[name])
    if self._use_keyring and not 'aes_key' in device_data:
      aes_key = keyring.get_password(self._keyring_service, self._keyring_key(name))
      if not aes_key is None:
        device_data['aes_key'] = aes_key
    return BroadlinkRemoteControl.from_jsonable(device_data)

  def put_device(self, name: str, device: BroadlinkRemoteControl) -> None:
    """Adds or replaces a stored device. Call save() to write the file."""
    device_data = device.to_jsonable()
    aes_key = device_data.pop('aes_key', None)
    if self._use_keyring:
      if aes_key is None:
        self._delete_keyring_entry(name)
      else:
        assert isinstance(aes_key, str)
        keyring.set_password(self._keyring_service, self._keyring_key(name), aes_key)
    elif not aes_key is None:
      device_data['aes_key'] = aes_key
    self._devices[name] = device_data

  def remove_device(self, name: str) -> None:
    if not name in self._devices:
      raise KeyError(f"DeviceStore: device '{name}' does not exist")
    del self._devices[name]
    if self._use_keyring:
      self._delete_keyring_entry(name)

  def _delete_keyring_entry(self, name: str) -> None:
    try:
      keyring.delete_password(self._keyring_service, self._keyring_key(name))
    except PasswordDeleteError:
      pass
