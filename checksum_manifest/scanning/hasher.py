import hashlib
import logging
from pathlib import Path
from dataclasses import dataclass

from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from .. import config
from ..exceptions import FileHashError
from ..models import Algorithm, ALGORITHM_TABLE


@dataclass
class Fingerprint:
    hash: str
    size: int
    mtime: float


class TripleDesMac:
    """
    CBC-MAC over Triple-DES with a zero IV and zero padding, as used by the
    legacy 'MACTripleDES' manifests. Mirrors the hashlib update/hexdigest
    interface so FileHasher can treat it like any other digest.
    """
    block_size = 8

    def __init__(self, key: bytes):
        self._encryptor = Cipher(TripleDES(key), modes.CBC(b"\x00" * self.block_size)).encryptor()
        self._length = 0
        self._last_block = b""

    def update(self, data: bytes) -> None:
        self._length += len(data)
        self._keep_tail(self._encryptor.update(data))

    def hexdigest(self) -> str:
        # Zero-pad to a whole block; empty input still MACs one block
        remainder = self._length % self.block_size
        if self._length == 0 or remainder:
            pad = self.block_size - remainder if remainder else self.block_size
            self._keep_tail(self._encryptor.update(b"\x00" * pad))
        self._keep_tail(self._encryptor.finalize())
        return self._last_block.hex()

    def _keep_tail(self, ciphertext: bytes) -> None:
        if ciphertext:
            self._last_block = (self._last_block + ciphertext)[-self.block_size:]


class FileHasher:
    def fingerprint(self, path: Path, algorithm: Algorithm) -> Fingerprint:
        """Size and mtime as seen right before hashing, plus the digest."""
        try:
            st = path.stat()
        except OSError as e:
            raise FileHashError(path, e.strerror or str(e)) from e
        return Fingerprint(self.digest(path, algorithm), st.st_size, st.st_mtime)

    def digest(self, path: Path, algorithm: Algorithm) -> str:
        """
        Streams the whole file through the algorithm and returns a lowercase
        hex digest. Any read failure is fatal for the caller: it is raised as
        FileHashError and never retried or skipped.
        """
        h = self._new_hasher(algorithm)
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(config.HASH_CHUNK_SIZE):
                    h.update(chunk)
        except OSError as e:
            raise FileHashError(path, e.strerror or str(e)) from e
        return h.hexdigest().lower()

    def digest_bytes(self, data: bytes, algorithm: Algorithm) -> str:
        h = self._new_hasher(algorithm)
        h.update(data)
        return h.hexdigest().lower()

    def _new_hasher(self, algorithm: Algorithm):
        spec = ALGORITHM_TABLE[algorithm]
        if spec.is_keyed_mac:
            return TripleDesMac(config.mac_tripledes_key())
        try:
            return hashlib.new(spec.hashlib_name)
        except ValueError:
            # RIPEMD-160 depends on the OpenSSL build behind hashlib
            logging.error(f"{algorithm.value} is not available in this Python build")
            raise
