from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from .exceptions import SchemaWarning


class Algorithm(Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA384 = "SHA384"
    SHA512 = "SHA512"
    MACTripleDES = "MACTripleDES"
    MD5 = "MD5"
    RIPEMD160 = "RIPEMD160"

    @classmethod
    def parse(cls, text: str) -> "Algorithm":
        """
        Accepts the manifest name in any case, with or without separators
        ('sha-256', 'Sha256' and 'SHA256' are the same algorithm).
        """
        key = str(text).replace("-", "").replace("_", "").strip().upper()
        for member in cls:
            if member.value.upper() == key:
                return member
        raise ValueError(f"Unknown hash algorithm: {text!r}")

    @property
    def extension(self) -> str:
        return self.value.lower()

    @property
    def hex_length(self) -> int:
        return ALGORITHM_TABLE[self].hex_length

    @property
    def is_legacy(self) -> bool:
        return ALGORITHM_TABLE[self].is_keyed_mac


@dataclass(frozen=True)
class AlgorithmSpec:
    hashlib_name: Optional[str]  # None for the keyed MAC
    hex_length: int
    is_keyed_mac: bool = False


ALGORITHM_TABLE: Dict[Algorithm, AlgorithmSpec] = {
    Algorithm.SHA1: AlgorithmSpec("sha1", 40),
    Algorithm.SHA256: AlgorithmSpec("sha256", 64),
    Algorithm.SHA384: AlgorithmSpec("sha384", 96),
    Algorithm.SHA512: AlgorithmSpec("sha512", 128),
    Algorithm.MACTripleDES: AlgorithmSpec(None, 16, is_keyed_mac=True),
    Algorithm.MD5: AlgorithmSpec("md5", 32),
    Algorithm.RIPEMD160: AlgorithmSpec("ripemd160", 40),
}


@dataclass(frozen=True)
class FileRecord:
    """
    One file as captured in a manifest.
    """
    path: str                   # root-relative, '/' separators
    hash: str                   # lowercase hex
    date: Optional[datetime]    # modification time at capture
    size: Optional[int]


@dataclass
class Manifest:
    algorithm: Algorithm
    capture_date: Optional[datetime]
    original_location: Optional[str]
    hidden_files: bool
    files: List[FileRecord] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.files)


@dataclass
class ParseResult:
    """A best-effort manifest plus every non-fatal problem met on the way."""
    manifest: Manifest
    warnings: List[SchemaWarning] = field(default_factory=list)


class EntryStatus(Enum):
    FOUND = "Found"
    MISSING = "Missing"
    UNTRACKED = "Untracked"


@dataclass
class ReconciliationEntry:
    path: str
    status: EntryStatus
    # Recorded values (None for untracked files)
    hash: Optional[str] = None
    date: Optional[datetime] = None
    size: Optional[int] = None
    # Observed during this verification run
    verified: bool = False
    verify_hash: Optional[str] = None
    verify_date: Optional[datetime] = None
    verify_size: Optional[int] = None

    @classmethod
    def from_record(cls, record: FileRecord, status: EntryStatus) -> "ReconciliationEntry":
        return cls(
            path=record.path,
            status=status,
            hash=record.hash,
            date=record.date,
            size=record.size,
        )

    @property
    def is_valid(self) -> bool:
        return self.status is EntryStatus.FOUND and self.verified

    @property
    def is_invalid(self) -> bool:
        return self.status is EntryStatus.FOUND and not self.verified


@dataclass
class ReportSummary:
    """
    Classification results of one verification run.

    `entries` maps relative path -> entry for constant-time lookup, while
    `order` keeps manifest order (then discovery order for untracked files)
    for rendering.
    """
    algorithm: Algorithm
    manifest_path: Optional[str] = None
    untracked_reported: bool = False
    entries: Dict[str, ReconciliationEntry] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    warnings: List[SchemaWarning] = field(default_factory=list)

    def add(self, entry: ReconciliationEntry) -> None:
        if entry.path not in self.entries:
            self.order.append(entry.path)
        self.entries[entry.path] = entry

    def get(self, path: str) -> Optional[ReconciliationEntry]:
        return self.entries.get(path)

    def ordered(self) -> List[ReconciliationEntry]:
        return [self.entries[p] for p in self.order]

    def with_status(self, status: EntryStatus) -> List[ReconciliationEntry]:
        return [e for e in self.ordered() if e.status is status]

    @property
    def verified(self) -> int:
        return sum(1 for e in self.entries.values() if e.is_valid)

    @property
    def invalid(self) -> int:
        return sum(1 for e in self.entries.values() if e.is_invalid)

    @property
    def missing(self) -> int:
        return sum(1 for e in self.entries.values() if e.status is EntryStatus.MISSING)

    @property
    def untracked(self) -> int:
        return sum(1 for e in self.entries.values() if e.status is EntryStatus.UNTRACKED)

    def passed(self, ignore_missing: bool = False) -> bool:
        # Untracked files never affect the outcome
        if self.invalid:
            return False
        return ignore_missing or self.missing == 0
