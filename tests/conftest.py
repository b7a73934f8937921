import logging

import pytest

from checksum_manifest.manifest.builder import ManifestBuilder
from checksum_manifest.reconciler import Reconciler


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def tree(tmp_path):
    """A small 'release' directory with nested, hidden and text files."""
    root = tmp_path / "release"
    root.mkdir()
    (root / "a.txt").write_text("alpha")
    (root / "b.txt").write_text("bravo")
    sub = root / "docs"
    sub.mkdir()
    (sub / "guide.md").write_text("# guide")
    (root / ".env").write_text("SECRET=1")
    hidden_dir = root / ".cache"
    hidden_dir.mkdir()
    (hidden_dir / "blob.bin").write_bytes(b"\x00\x01")
    return root


@pytest.fixture
def builder():
    return ManifestBuilder()


@pytest.fixture
def reconciler():
    return Reconciler()
