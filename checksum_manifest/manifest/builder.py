import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from tqdm import tqdm

from .. import config
from ..models import Algorithm, FileRecord, Manifest
from ..scanning.filesystem import DiskScanner, FilterConfig
from ..scanning.hasher import FileHasher
from . import codec


def default_manifest_name(root: Path, algorithm: Algorithm) -> str:
    """`<root-basename>.<algorithm>`, e.g. 'release.sha256'."""
    stem = root.name or config.FALLBACK_MANIFEST_STEM
    return f"{stem}.{algorithm.extension}"


def file_timestamp(mtime: float) -> datetime:
    return datetime.fromtimestamp(mtime).astimezone()


@dataclass
class OutputOptions:
    pretty: bool = False
    simple: bool = False
    no_output: bool = False


@dataclass
class BuildResult:
    manifest: Manifest
    text: str
    output_path: Optional[Path]  # None when output was suppressed


class ManifestBuilder:
    def __init__(self):
        self.scanner = DiskScanner()
        self.hasher = FileHasher()

    def build(self,
              root,
              algorithm: Algorithm,
              filters: Optional[FilterConfig] = None,
              exclude_paths: Iterable[Path] = (),
              progress: bool = False) -> Manifest:
        """
        Hashes every file the filters admit and returns the manifest in
        traversal order. Any unreadable file aborts the whole build.
        """
        filters = filters or FilterConfig()
        root_path = self.scanner.resolve_root(root)
        if algorithm.is_legacy:
            logging.warning(f"{algorithm.value} is kept for old manifests only; prefer SHA256 or stronger")

        files = []
        paths = self.scanner.iter_files(root_path, filters, exclude_paths)
        for path in tqdm(paths, desc="Hashing", unit="file", disable=not progress):
            fp = self.hasher.fingerprint(path, algorithm)
            files.append(FileRecord(
                path=self.scanner.relative_path(path, root_path),
                hash=fp.hash,
                date=file_timestamp(fp.mtime),
                size=fp.size,
            ))
            logging.debug(f"Hashed {files[-1].path}")

        return Manifest(
            algorithm=algorithm,
            capture_date=datetime.now().astimezone(),
            original_location=str(root_path),
            hidden_files=filters.include_hidden,
            files=files,
        )

    def create(self,
               root,
               algorithm: Algorithm,
               filters: Optional[FilterConfig] = None,
               output: Optional[OutputOptions] = None,
               progress: bool = False) -> BuildResult:
        """
        Builds the manifest and writes it next to the files it describes.

        Nothing is written until every file has been hashed, so a failed
        build never leaves a partial manifest behind. With no_output the
        serialized text is only returned.
        """
        output = output or OutputOptions()
        root_path = self.scanner.resolve_root(root)
        output_path = root_path / default_manifest_name(root_path, algorithm)

        logging.info(f"Building {algorithm.value} manifest for {root_path}")
        manifest = self.build(root_path, algorithm, filters, exclude_paths=[output_path], progress=progress)

        if output.simple:
            text = codec.to_simple(manifest)
        else:
            text = codec.to_structured(manifest, pretty=output.pretty)

        if output.no_output:
            return BuildResult(manifest=manifest, text=text, output_path=None)

        self._write_atomic(output_path, text)
        logging.info(f"Wrote {manifest.total_files} entries to {output_path}")
        return BuildResult(manifest=manifest, text=text, output_path=output_path)

    def _write_atomic(self, dest: Path, text: str):
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
            os.replace(tmp_name, dest)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
