import hashlib
import os

import pytest

from checksum_manifest.exceptions import FileHashError, PathError
from checksum_manifest.models import Algorithm
from checksum_manifest.scanning.filesystem import DiskScanner, FilterConfig
from checksum_manifest.scanning.hasher import FileHasher


def rel_names(root, paths):
    return {p.relative_to(root.resolve()).as_posix() for p in paths}


@pytest.mark.parametrize(
    "algorithm,hashlib_name",
    [
        (Algorithm.SHA1, "sha1"),
        (Algorithm.SHA256, "sha256"),
        (Algorithm.SHA384, "sha384"),
        (Algorithm.SHA512, "sha512"),
        (Algorithm.MD5, "md5"),
    ],
)
def test_digest_matches_hashlib(tmp_path, algorithm, hashlib_name):
    p = tmp_path / "sample.bin"
    data = b"hello world" * 10000
    p.write_bytes(data)

    digest = FileHasher().digest(p, algorithm)
    assert digest == hashlib.new(hashlib_name, data).hexdigest()
    assert len(digest) == algorithm.hex_length


@pytest.mark.skipif("ripemd160" not in hashlib.algorithms_available,
                    reason="RIPEMD-160 not provided by this OpenSSL build")
def test_digest_ripemd160(tmp_path):
    p = tmp_path / "sample.bin"
    p.write_bytes(b"abc")
    assert FileHasher().digest(p, Algorithm.RIPEMD160) == hashlib.new("ripemd160", b"abc").hexdigest()


def test_tripledes_mac_shape_and_padding():
    hasher = FileHasher()
    mac = hasher.digest_bytes(b"abc", Algorithm.MACTripleDES)

    assert len(mac) == Algorithm.MACTripleDES.hex_length
    assert mac == mac.lower()
    assert mac == hasher.digest_bytes(b"abc", Algorithm.MACTripleDES)
    # Zero padding: trailing zero bytes inside the last block do not change the MAC
    assert mac == hasher.digest_bytes(b"abc\x00\x00", Algorithm.MACTripleDES)
    assert mac != hasher.digest_bytes(b"abd", Algorithm.MACTripleDES)
    # Empty input is one zero block
    assert hasher.digest_bytes(b"", Algorithm.MACTripleDES) == hasher.digest_bytes(b"\x00" * 8, Algorithm.MACTripleDES)


def test_tripledes_mac_streaming_matches_buffer(tmp_path):
    data = bytes(range(256)) * 1000 + b"tail"
    p = tmp_path / "big.bin"
    p.write_bytes(data)
    hasher = FileHasher()
    assert hasher.digest(p, Algorithm.MACTripleDES) == hasher.digest_bytes(data, Algorithm.MACTripleDES)


def test_tripledes_key_override_changes_mac(monkeypatch):
    hasher = FileHasher()
    default = hasher.digest_bytes(b"payload", Algorithm.MACTripleDES)
    monkeypatch.setenv("CHECKSUM_MANIFEST_MAC_KEY", "fedcba9876543210" "0123456789abcdef" "1122334455667788")
    assert hasher.digest_bytes(b"payload", Algorithm.MACTripleDES) != default


def test_digest_unreadable_file_raises(tmp_path):
    with pytest.raises(FileHashError) as excinfo:
        FileHasher().digest(tmp_path / "gone.bin", Algorithm.SHA256)
    assert isinstance(excinfo.value, OSError)
    assert excinfo.value.path == tmp_path / "gone.bin"

    # Directories cannot be opened for reading either
    with pytest.raises(FileHashError):
        FileHasher().digest(tmp_path, Algorithm.SHA256)


def test_fingerprint_captures_size(tmp_path):
    p = tmp_path / "f.txt"
    p.write_bytes(b"12345")
    fp = FileHasher().fingerprint(p, Algorithm.MD5)
    assert fp.size == 5
    assert fp.hash == hashlib.md5(b"12345").hexdigest()


def test_iter_files_top_level_only_by_default(tree):
    files = rel_names(tree, DiskScanner().iter_files(tree))
    assert files == {"a.txt", "b.txt"}


def test_iter_files_recursive_skips_hidden(tree):
    files = rel_names(tree, DiskScanner().iter_files(tree, FilterConfig(recursive=True)))
    assert files == {"a.txt", "b.txt", "docs/guide.md"}


def test_iter_files_with_hidden(tree):
    filters = FilterConfig(recursive=True, include_hidden=True)
    files = rel_names(tree, DiskScanner().iter_files(tree, filters))
    assert files == {"a.txt", "b.txt", "docs/guide.md", ".env", ".cache/blob.bin"}


def test_iter_files_max_depth(tmp_path):
    (tmp_path / "top.txt").write_text("0")
    d1 = tmp_path / "d1"
    d2 = d1 / "d2"
    d2.mkdir(parents=True)
    (d1 / "one.txt").write_text("1")
    (d2 / "two.txt").write_text("2")

    scanner = DiskScanner()
    assert rel_names(tmp_path, scanner.iter_files(tmp_path, FilterConfig(max_depth=0))) == {"top.txt"}
    assert rel_names(tmp_path, scanner.iter_files(tmp_path, FilterConfig(max_depth=1))) == {"top.txt", "d1/one.txt"}
    assert len(list(scanner.iter_files(tmp_path, FilterConfig(max_depth=5)))) == 3


def test_max_depth_implies_recursive():
    assert FilterConfig(max_depth=2).recursive is True
    with pytest.raises(ValueError):
        FilterConfig(max_depth=-1)


def test_iter_files_directory_files_before_subdirectories(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "inner.txt").write_text("i")
    (tmp_path / "outer.txt").write_text("o")

    files = list(DiskScanner().iter_files(tmp_path, FilterConfig(recursive=True)))
    assert files == [tmp_path.resolve() / "outer.txt", sub.resolve() / "inner.txt"]


def test_iter_files_excludes_exact_path(tree):
    files = rel_names(tree, DiskScanner().iter_files(tree, exclude_paths=[tree / "a.txt"]))
    assert files == {"b.txt"}


@pytest.mark.parametrize(
    "name,include,exclude,expected",
    [
        ("notes.txt", ["*.txt"], [], True),
        ("NOTES.TXT", ["*.txt"], [], True),
        ("image.png", ["*.txt"], [], False),
        ("secret.txt", ["*.txt"], ["secret.txt"], False),
        ("Secret.TXT", ["*.txt"], ["secret.*"], False),
        ("a1.log", [], ["a?.log"], False),
        ("ab1.log", [], ["a?.log"], True),
        ("anything", [], [], True),
    ],
)
def test_matches_filters(name, include, exclude, expected):
    assert DiskScanner.matches_filters(name, include, exclude) is expected


def test_glob_matches_filename_only(tmp_path):
    sub = tmp_path / "txt"
    sub.mkdir()
    (sub / "data.bin").write_bytes(b"x")
    (tmp_path / "keep.txt").write_text("k")

    filters = FilterConfig(recursive=True, include=["*.txt"])
    assert rel_names(tmp_path, DiskScanner().iter_files(tmp_path, filters)) == {"keep.txt"}


def test_iter_files_rejects_missing_root(tmp_path):
    with pytest.raises(PathError):
        DiskScanner().iter_files(tmp_path / "nope")


def test_iter_files_rejects_file_root(tmp_path):
    f = tmp_path / "file.txt"
    f.write_text("x")
    with pytest.raises(PathError):
        DiskScanner().iter_files(f)


def test_iter_files_raises_on_unlistable_directory(tree, monkeypatch):
    real_scandir = os.scandir
    blocked = tree.resolve() / "docs"

    def failing_scandir(path):
        if str(path) == str(blocked):
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", failing_scandir)

    # Top-level only never lists docs/
    assert rel_names(tree, DiskScanner().iter_files(tree)) == {"a.txt", "b.txt"}
    with pytest.raises(PathError):
        list(DiskScanner().iter_files(tree, FilterConfig(recursive=True)))
