"""
Reading and writing manifest files.

Two output formats exist. The structured (JSON) one round-trips and is the
only one `verify` understands. The simple one is meant for people and other
tools: a short header and one `ALGORITHM  hash  path` line per file.

Parsing is lenient. Missing metadata becomes a warning on the ParseResult and
a best-effort default; only content that cannot be read as a manifest at all
raises FormatError. Callers wanting all-or-nothing pass strict=True.
"""
import json
import logging
from datetime import datetime
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any, Dict, List, Optional

from .. import config
from ..exceptions import FormatError, PathError, SchemaWarning
from ..models import Algorithm, FileRecord, Manifest, ParseResult


def format_date(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_structured(manifest: Manifest, pretty: bool = False) -> str:
    payload = {
        "Algorithm": manifest.algorithm.value,
        "Date": format_date(manifest.capture_date),
        "Files": [
            {
                "Path": rec.path,
                "Hash": rec.hash,
                "Date": format_date(rec.date),
                "Size": rec.size,
            }
            for rec in manifest.files
        ],
        "TotalFiles": manifest.total_files,
        "OriginalLocation": manifest.original_location,
        "HiddenFiles": manifest.hidden_files,
    }
    if pretty:
        return json.dumps(payload, indent=config.PRETTY_JSON_INDENT, ensure_ascii=False)
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def to_simple(manifest: Manifest) -> str:
    lines = list(config.SIMPLE_HEADER_LINES)
    lines.append("")
    name = manifest.algorithm.value
    for rec in manifest.files:
        lines.append(f"{name}  {rec.hash}  {rec.path}")
    return "\n".join(lines) + "\n"


class _ManifestReader:
    """Collects warnings while turning decoded JSON into a Manifest."""

    def __init__(self, strict: bool):
        self.strict = strict
        self.warnings: List[SchemaWarning] = []

    def warn(self, message: str) -> None:
        if self.strict:
            raise FormatError(message)
        self.warnings.append(SchemaWarning(message))

    def read(self, data: Any, fallback_algorithm: Optional[Algorithm]) -> Manifest:
        if not isinstance(data, dict):
            raise FormatError("Manifest root must be a JSON object")

        files_data = data.get("Files")
        if files_data is None:
            self.warn("Manifest has no 'Files' list; treating it as empty")
            files_data = []
        elif not isinstance(files_data, list):
            raise FormatError("'Files' must be a list")

        algorithm = self._read_algorithm(data, files_data, fallback_algorithm)
        files = self._read_files(files_data, algorithm)

        total = data.get("TotalFiles")
        if total is None:
            self.warn("Manifest has no 'TotalFiles'")
        elif total != len(files_data):
            self.warn(f"'TotalFiles' is {total} but the manifest lists {len(files_data)} files")

        if "Date" not in data:
            self.warn("Manifest has no 'Date'")
        capture_date = self._read_date(data.get("Date"), "manifest 'Date'")

        original_location = data.get("OriginalLocation")
        if original_location is None:
            self.warn("Manifest has no 'OriginalLocation'")

        hidden = data.get("HiddenFiles")
        if hidden is None:
            self.warn("Manifest has no 'HiddenFiles' flag; assuming hidden files were excluded")
            hidden = False

        return Manifest(
            algorithm=algorithm,
            capture_date=capture_date,
            original_location=original_location,
            hidden_files=bool(hidden),
            files=files,
        )

    def _read_algorithm(self, data: Dict[str, Any], files_data: list,
                        fallback: Optional[Algorithm]) -> Algorithm:
        name = data.get("Algorithm")
        if name is not None:
            try:
                return Algorithm.parse(name)
            except ValueError as e:
                raise FormatError(str(e)) from e

        if fallback is not None:
            self.warn(f"Manifest has no 'Algorithm'; using {fallback.value} from its file name")
            return fallback

        inferred = self._infer_algorithm(files_data)
        if inferred is None:
            raise FormatError("Manifest has no 'Algorithm' and it cannot be inferred")
        self.warn(f"Manifest has no 'Algorithm'; inferred {inferred.value} from hash length")
        return inferred

    @staticmethod
    def _infer_algorithm(files_data: list) -> Optional[Algorithm]:
        for item in files_data:
            if isinstance(item, dict) and isinstance(item.get("Hash"), str):
                candidates = [a for a in Algorithm if a.hex_length == len(item["Hash"])]
                # SHA1 and RIPEMD160 share a length
                return candidates[0] if len(candidates) == 1 else None
        return None

    def _read_files(self, files_data: list, algorithm: Algorithm) -> List[FileRecord]:
        files: List[FileRecord] = []
        seen = set()
        for index, item in enumerate(files_data):
            if not isinstance(item, dict):
                self.warn(f"Entry #{index} is not an object; skipped")
                continue

            path = self._read_path(item.get("Path"), index)
            if path is None:
                continue
            if path in seen:
                self.warn(f"Duplicate entry for {path}; only the first one is checked")
            seen.add(path)

            file_hash = item.get("Hash")
            if not isinstance(file_hash, str) or not file_hash:
                self.warn(f"{path}: no 'Hash'")
                file_hash = ""
            else:
                file_hash = file_hash.strip().lower()
                if len(file_hash) != algorithm.hex_length:
                    self.warn(f"{path}: hash length {len(file_hash)} does not match {algorithm.value}")

            size = item.get("Size")
            if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                self.warn(f"{path}: missing or invalid 'Size'")
                size = None
            if "Date" not in item:
                self.warn(f"{path}: no 'Date'")

            files.append(FileRecord(
                path=path,
                hash=file_hash,
                date=self._read_date(item.get("Date"), f"{path} 'Date'"),
                size=size,
            ))
        return files

    def _read_path(self, raw: Any, index: int) -> Optional[str]:
        if not isinstance(raw, str) or not raw.strip():
            self.warn(f"Entry #{index} has no 'Path'; skipped")
            return None
        pure = PurePosixPath(raw.replace("\\", "/"))
        if pure.is_absolute() or ".." in pure.parts or PureWindowsPath(raw).drive:
            self.warn(f"Entry #{index} path {raw!r} points outside the root; skipped")
            return None
        return pure.as_posix()

    def _read_date(self, raw: Any, what: str) -> Optional[datetime]:
        if raw is None:
            return None
        try:
            value = datetime.fromisoformat(str(raw))
        except ValueError:
            self.warn(f"Unreadable {what}: {raw!r}")
            return None
        if value.tzinfo is None:
            # Naive timestamps are taken as local time
            value = value.astimezone()
        return value


def parse_manifest(text: str,
                   strict: bool = False,
                   fallback_algorithm: Optional[Algorithm] = None) -> ParseResult:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Manifest is not valid JSON: {e}") from e

    reader = _ManifestReader(strict)
    manifest = reader.read(data, fallback_algorithm)
    return ParseResult(manifest=manifest, warnings=reader.warnings)


def load_manifest(path: Path,
                  strict: bool = False,
                  fallback_algorithm: Optional[Algorithm] = None) -> ParseResult:
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise FormatError(f"Manifest {path} is not UTF-8 text") from e
    except OSError as e:
        raise PathError(f"Cannot read manifest {path}: {e}") from e

    logging.debug(f"Parsing manifest {path} ({len(text)} chars)")
    return parse_manifest(text, strict=strict, fallback_algorithm=fallback_algorithm)
