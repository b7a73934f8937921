import fnmatch
import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from ..exceptions import PathError


@dataclass
class FilterConfig:
    """
    Which files under a root take part in a manifest.

    max_depth implies recursion; 0 means only the root directory itself.
    """
    recursive: bool = False
    max_depth: Optional[int] = None
    include_hidden: bool = False
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_depth is not None:
            if self.max_depth < 0:
                raise ValueError("max_depth must be >= 0")
            self.recursive = True

    def depth_limit(self) -> Optional[int]:
        """Deepest subdirectory level to descend into (None = unlimited)."""
        if not self.recursive:
            return 0
        return self.max_depth


class DiskScanner:
    @staticmethod
    def resolve_root(root) -> Path:
        """Resolves root and checks that it is an existing directory."""
        try:
            resolved = Path(root).expanduser().resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise PathError(f"Cannot resolve directory {root}: {e}") from e
        if not resolved.is_dir():
            raise PathError(f"Not a directory: {resolved}")
        return resolved

    @staticmethod
    def matches_filters(name: str, include: Iterable[str], exclude: Iterable[str]) -> bool:
        """
        Filename-only, case-insensitive shell-wildcard matching.
        Include keeps only matches (when given); exclude then drops any match.
        """
        lowered = name.lower()
        include = list(include or [])
        if include and not any(fnmatch.fnmatchcase(lowered, p.lower()) for p in include):
            return False
        if any(fnmatch.fnmatchcase(lowered, p.lower()) for p in (exclude or [])):
            return False
        return True

    @staticmethod
    def is_hidden(entry: os.DirEntry) -> bool:
        if entry.name.startswith("."):
            return True
        if os.name != "nt":
            return False
        attrs = getattr(entry.stat(follow_symlinks=False), "st_file_attributes", 0)
        return bool(attrs & stat.FILE_ATTRIBUTE_HIDDEN)

    def iter_files(self,
                   root,
                   filters: Optional[FilterConfig] = None,
                   exclude_paths: Iterable[Path] = ()) -> Iterator[Path]:
        """
        Yields the regular files under root that pass the filters, in native
        enumeration order. A directory's files come before its subdirectories.

        The root is validated eagerly so a bad path fails before iteration.
        A directory that cannot be listed raises PathError mid-iteration.
        """
        filters = filters or FilterConfig()
        root_path = self.resolve_root(root)
        excluded = {Path(p).resolve() for p in exclude_paths}
        return self._walk(root_path, filters, excluded)

    def _walk(self, root: Path, filters: FilterConfig, excluded: Set[Path]) -> Iterator[Path]:
        limit = filters.depth_limit()
        stack: List[Tuple[Path, int]] = [(root, 0)]
        while stack:
            current, depth = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as err:
                # Never omit a subtree
                raise PathError(f"Cannot list directory {current}: {err}") from err

            dirs = []
            for e in entries:
                if not filters.include_hidden and self.is_hidden(e):
                    continue
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    # root is resolved and links are not followed, so paths are canonical
                    path = Path(e.path)
                    if path in excluded:
                        logging.debug(f"Skipping manifest file {path}")
                        continue
                    if self.matches_filters(e.name, filters.include, filters.exclude):
                        yield path

            if limit is not None and depth >= limit:
                continue

            # Reversed so subdirectories are walked in enumeration order
            for d in reversed(dirs):
                stack.append((d, depth + 1))

    def relative_path(self, path: Path, root: Path) -> str:
        return path.relative_to(root).as_posix()
