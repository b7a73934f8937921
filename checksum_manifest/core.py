import logging
from pathlib import Path
from typing import Optional, Tuple

from . import config
from .exceptions import (
    ChecksumManifestError,
    FileHashError,
    FormatError,
    ManifestNotFoundError,
    PathError,
)
from .manifest.builder import BuildResult, ManifestBuilder, OutputOptions
from .models import Algorithm, ReportSummary
from .reconciler import Reconciler, VerifyOptions
from .scanning.filesystem import FilterConfig


class ChecksumManifestApp:
    """
    Runs one build or verification and turns its outcome into an exit code.

    Fatal errors are logged once and reported through the exit code alone;
    no partial manifest or report is produced on those paths.
    """

    def __init__(self):
        self.builder = ManifestBuilder()
        self.reconciler = Reconciler()

    def build(self,
              root: Path,
              algorithm: Algorithm,
              filters: Optional[FilterConfig] = None,
              output: Optional[OutputOptions] = None,
              progress: bool = False) -> Tuple[Optional[BuildResult], int]:
        try:
            result = self.builder.create(root, algorithm, filters, output, progress=progress)
        except FileHashError as e:
            logging.error(f"Build aborted, no manifest written: {e}")
            return None, config.EXIT_RUNTIME_ERROR
        except PathError as e:
            logging.error(str(e))
            return None, config.EXIT_RUNTIME_ERROR
        return result, config.EXIT_SUCCESS

    def verify(self,
               root: Path,
               manifest_path: Optional[Path] = None,
               options: Optional[VerifyOptions] = None) -> Tuple[Optional[ReportSummary], int]:
        try:
            return self.reconciler.verify(root, manifest_path, options)
        except ManifestNotFoundError as e:
            logging.error(str(e))
            return None, config.EXIT_NOT_FOUND
        except FormatError as e:
            logging.error(f"Cannot parse manifest: {e}")
            return None, config.EXIT_RUNTIME_ERROR
        except FileHashError as e:
            logging.error(f"Verification aborted: {e}")
            return None, config.EXIT_RUNTIME_ERROR
        except ChecksumManifestError as e:
            logging.error(str(e))
            return None, config.EXIT_RUNTIME_ERROR
