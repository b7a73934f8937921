"""
Configuration constants for checksum-manifest.
"""
import os

# --- Algorithms ---
DEFAULT_ALGORITHM = "SHA256"

# Order in which `<root-name>.<ext>` candidates are tried when no manifest
# path is given to `verify`. The first existing file wins.
LOCATOR_PRIORITY = [
    "SHA1",
    "SHA256",
    "SHA384",
    "SHA512",
    "MACTripleDES",
    "MD5",
    "RIPEMD160",
]

# Legacy MACTripleDES needs a key. Manifests do not record it, so a fixed
# 24-byte key is used unless overridden (48 hex chars).
MAC_KEY_ENV_VAR = "CHECKSUM_MANIFEST_MAC_KEY"
DEFAULT_MAC_TRIPLEDES_KEY = bytes.fromhex(
    "0123456789abcdeffedcba987654321089abcdef01234567"
)


def mac_tripledes_key() -> bytes:
    override = os.environ.get(MAC_KEY_ENV_VAR)
    if override:
        return bytes.fromhex(override)
    return DEFAULT_MAC_TRIPLEDES_KEY


# --- Hashing & Performance ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading

# --- Manifest Output ---
FALLBACK_MANIFEST_STEM = "manifest"
PRETTY_JSON_INDENT = 4

SIMPLE_HEADER_LINES = [
    "# Checksum manifest (simple format).",
    "# Each line lists: ALGORITHM  hash  relative/path",
    "# To check a file, compute its hash with the named algorithm and",
    "# compare it with the hash on the file's line. Paths are relative to",
    "# the directory this manifest was generated for.",
    "# This format carries no metadata and cannot be used with 'verify'.",
]

# --- Exit Codes ---
EXIT_SUCCESS = 0
EXIT_VERIFY_FAILED = 1
EXIT_NOT_FOUND = 2
EXIT_RUNTIME_ERROR = 3
EXIT_INTERRUPTED = 130
