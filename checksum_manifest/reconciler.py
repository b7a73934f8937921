import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set, Tuple

from tqdm import tqdm

from . import config
from .exceptions import ManifestNotFoundError
from .manifest.builder import default_manifest_name, file_timestamp
from .manifest.codec import load_manifest
from .models import (
    Algorithm,
    EntryStatus,
    Manifest,
    ReconciliationEntry,
    ReportSummary,
)
from .scanning.filesystem import DiskScanner, FilterConfig
from .scanning.hasher import FileHasher


@dataclass
class VerifyOptions:
    include_untracked: bool = False
    force_hidden: Optional[bool] = None  # None = follow the manifest's HiddenFiles flag
    ignore_missing: bool = False
    strict: bool = False
    progress: bool = False


def locate_manifest(root: Path) -> Tuple[Path, Algorithm]:
    """
    Looks for `<root-name>.<ext>` inside root, trying algorithms in the fixed
    priority order. The first existing file wins.
    """
    for name in config.LOCATOR_PRIORITY:
        algorithm = Algorithm(name)
        candidate = root / default_manifest_name(root, algorithm)
        if candidate.is_file():
            logging.info(f"Using manifest {candidate}")
            return candidate, algorithm
    raise ManifestNotFoundError(f"No manifest found in {root}")


def algorithm_from_suffix(path: Path) -> Optional[Algorithm]:
    try:
        return Algorithm.parse(path.suffix.lstrip("."))
    except ValueError:
        return None


def recorded_depth(manifest: Manifest) -> int:
    """
    Deepest subdirectory level any record lives at (0 = root only).

    Manifests do not store the depth they were built with, so untracked
    detection looks exactly as deep as the tracked files go.
    """
    return max((record.path.count("/") for record in manifest.files), default=0)


class Reconciler:
    def __init__(self):
        self.scanner = DiskScanner()
        self.hasher = FileHasher()

    def verify(self,
               root,
               manifest_path: Optional[Path] = None,
               options: Optional[VerifyOptions] = None) -> Tuple[ReportSummary, int]:
        """
        Compares the files under root with a manifest and classifies every
        tracked (and optionally untracked) file.

        Locating or parsing the manifest, and reading any tracked file, can
        fail; those errors propagate before a summary exists. Hash mismatches
        and missing files only show up in the summary and the exit status.
        """
        options = options or VerifyOptions()
        root_path = self.scanner.resolve_root(root)

        # 1. Locate
        if manifest_path is None:
            manifest_path, hinted = locate_manifest(root_path)
        else:
            manifest_path = Path(manifest_path)
            if not manifest_path.is_file():
                raise ManifestNotFoundError(f"Manifest not found: {manifest_path}")
            hinted = algorithm_from_suffix(manifest_path)
        manifest_path = manifest_path.resolve()

        # 2. Parse
        parsed = load_manifest(manifest_path, strict=options.strict, fallback_algorithm=hinted)
        for warning in parsed.warnings:
            logging.warning(f"{manifest_path.name}: {warning}")
        manifest = parsed.manifest

        # 3. Hidden files
        include_hidden = manifest.hidden_files if options.force_hidden is None else options.force_hidden

        summary = ReportSummary(
            algorithm=manifest.algorithm,
            manifest_path=str(manifest_path),
            untracked_reported=options.include_untracked,
            warnings=list(parsed.warnings),
        )
        own_path = self._relative_or_none(manifest_path, root_path)

        # 4. Tracked files
        self._check_tracked(root_path, manifest, own_path, summary, options.progress)

        # 5. Untracked files
        if options.include_untracked:
            filters = FilterConfig(max_depth=recorded_depth(manifest), include_hidden=include_hidden)
            self._find_untracked(root_path, manifest_path, filters, summary)

        # 6. Outcome
        passed = summary.passed(options.ignore_missing)
        logging.info(
            f"Verified {summary.verified}, invalid {summary.invalid}, "
            f"missing {summary.missing}, untracked {summary.untracked}"
        )
        return summary, config.EXIT_SUCCESS if passed else config.EXIT_VERIFY_FAILED

    def _check_tracked(self,
                       root: Path,
                       manifest: Manifest,
                       own_path: Optional[str],
                       summary: ReportSummary,
                       progress: bool):
        for record in tqdm(manifest.files, desc="Verifying", unit="file", disable=not progress):
            if record.path == own_path:
                logging.debug(f"Skipping the manifest's own entry {record.path}")
                continue
            if summary.get(record.path) is not None:
                # Duplicate path; the first record already decided it
                continue

            path = root / record.path
            if not path.is_file():
                summary.add(ReconciliationEntry.from_record(record, EntryStatus.MISSING))
                logging.debug(f"Missing: {record.path}")
                continue

            fp = self.hasher.fingerprint(path, manifest.algorithm)
            entry = ReconciliationEntry.from_record(record, EntryStatus.FOUND)
            entry.verify_hash = fp.hash
            entry.verify_size = fp.size
            entry.verify_date = file_timestamp(fp.mtime)
            entry.verified = fp.hash == record.hash
            summary.add(entry)
            if not entry.verified:
                logging.debug(f"Hash mismatch: {record.path}")

    def _find_untracked(self,
                        root: Path,
                        manifest_path: Path,
                        filters: FilterConfig,
                        summary: ReportSummary):
        tracked: Set[str] = set(summary.entries)
        for path in self.scanner.iter_files(root, filters, exclude_paths=[manifest_path]):
            rel = self.scanner.relative_path(path, root)
            if rel in tracked:
                continue
            entry = ReconciliationEntry(path=rel, status=EntryStatus.UNTRACKED)
            try:
                st = path.stat()
                entry.verify_size = st.st_size
                entry.verify_date = file_timestamp(st.st_mtime)
            except OSError as e:
                logging.debug(f"Cannot stat untracked file {rel}: {e}")
            summary.add(entry)

    @staticmethod
    def _relative_or_none(path: Path, root: Path) -> Optional[str]:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return None
