#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
AES-128-CBC encryption of BroadLink packet payloads.

Payloads are not padded in any standard way. Data whose length is not a multiple of
the AES block size is zero-filled up to the next block boundary before encryption.
Decryption never removes that padding; the decrypted structures carry their own
length fields, and legitimate payloads may end in zero bytes.
"""

from __future__ import annotations

from cryptography.hazmat.primitives.ciphers import Cipher, CipherContext, algorithms, modes
from cryptography.hazmat.backends import default_backend

from .internal_types import *
from .constants import AES_BLOCK_SIZE, DEFAULT_AES_KEY, DEFAULT_AES_IV
from .exceptions import InvalidInputError

def _block_cipher(ctx: CipherContext, data: bytes) -> bytes:
    """Runs a CBC cipher context over data, zero-padding any partial final block."""
    size = len(data)
    if size == 0:
        return b''
    split = (size // AES_BLOCK_SIZE) * AES_BLOCK_SIZE
    result = ctx.update(data[:split])
    if split < size:
        tail = data[split:] + bytes(AES_BLOCK_SIZE - (size - split))
        result += ctx.update(tail)
    result += ctx.finalize()
    return result

def encrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    """Encrypts data with AES-CBC. The result length is len(data) rounded up to a multiple of 16."""
    cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
    return _block_cipher(cipher.encryptor(), data)

def decrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    """Decrypts AES-CBC data. Any zero padding added by encrypt() is left in place."""
    cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
    return _block_cipher(cipher.decryptor(), data)

class AesCipher:
    """An immutable AES key/IV pair.

    One instance, DEFAULT_CIPHER, holds the well-known key material that every device
    accepts before authorization. Each BroadlinkDevice resolves its own AesCipher from
    its per-device key and IV, falling back to the defaults.
    """

    _key: bytes
    _iv: bytes

    def __init__(self, key: bytes=DEFAULT_AES_KEY, iv: bytes=DEFAULT_AES_IV):
        if len(key) != AES_BLOCK_SIZE:
            raise InvalidInputError(f"AES key must be {AES_BLOCK_SIZE} bytes long, got {len(key)}")
        if len(iv) != AES_BLOCK_SIZE:
            raise InvalidInputError(f"AES IV must be {AES_BLOCK_SIZE} bytes long, got {len(iv)}")
        self._key = bytes(key)
        self._iv = bytes(iv)

    @property
    def key(self) -> bytes:
        return self._key

    @property
    def iv(self) -> bytes:
        return self._iv

    @property
    def is_default(self) -> bool:
        return self._key == DEFAULT_AES_KEY and self._iv == DEFAULT_AES_IV

    def encrypt(self, data: bytes) -> bytes:
        return encrypt(self._key, self._iv, data)

    def decrypt(self, data: bytes) -> bytes:
        return decrypt(self._key, self._iv, data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AesCipher):
            return NotImplemented
        return self._key == other._key and self._iv == other._iv

    def __hash__(self) -> int:
        return hash((self._key, self._iv))

    def __str__(self) -> str:
        return "AesCipher(default)" if self.is_default else f"AesCipher(key={self._key.hex()})"

    def __repr__(self) -> str:
        return str(self)

DEFAULT_CIPHER = AesCipher()
"""The cipher used for all communication with a device before it has been authorized."""
