"""
Custom exception hierarchy for checksum-manifest.

Fatal conditions are raised as exceptions and short-circuit the running
build or verification. Hash mismatches and missing files are ordinary
verification outcomes and are never raised.
"""


class ChecksumManifestError(Exception):
    """Base exception for all checksum-manifest errors."""
    pass


class PathError(ChecksumManifestError):
    """Raised when a root directory or manifest path cannot be resolved."""
    pass


class ManifestNotFoundError(PathError):
    """Raised when no manifest file could be located for verification."""
    pass


class FileHashError(ChecksumManifestError, OSError):
    """Raised when a file cannot be opened or read while hashing."""

    def __init__(self, path, reason):
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class FormatError(ChecksumManifestError):
    """Raised when a manifest cannot be parsed."""
    pass


class SchemaWarning(UserWarning):
    """Non-fatal problem found while parsing a manifest."""
    pass
