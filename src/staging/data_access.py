from __future__ import annotations

import hashlib
import os
import re
import shutil
import tempfile
from pathlib import Path

from .errors import StagingError

RESERVED_PREFIX = "_"
HIDDEN_PREFIX = "."

# Characters rejected by common filesystems, plus ASCII control characters.
_UNSAFE_KEY_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class DataAccessError(StagingError):
    pass


def safe_doc_key(name: str) -> str:
    """
    Filesystem-safe staging directory name for a document.

    Spaces and non-ASCII letters are kept; only reserved and control characters
    are replaced. The result may be empty or reserved, callers must check
    `is_usable_doc_key`.
    """

    return _UNSAFE_KEY_CHARS.sub("_", name).strip()


def is_usable_doc_key(key: str) -> bool:
    return key not in ("", ".", "..") and not key.startswith((RESERVED_PREFIX, HIDDEN_PREFIX))


def resolve_under_root(*, root: Path, relpath: str) -> Path:
    """
    Resolve a relative path under an explicit root, rejecting traversal.
    """

    if relpath.startswith(("/", "\\")) or (":" in relpath and "\\" in relpath):
        raise DataAccessError(f"Expected a relative path under root, got: {relpath!r}")

    root = root.expanduser().resolve()
    candidate = (root / relpath).resolve()
    if not candidate.is_relative_to(root):
        raise DataAccessError(f"Path traversal or external reference detected: relpath={relpath!r}")
    return candidate


def relpath_posix(path: Path, *, start: Path) -> str:
    return Path(os.path.relpath(path, start)).as_posix()


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """
    Write via a temp file in the same directory and rename over the target.

    Readers see either the previous file or the complete new one.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def write_text_atomic(path: Path, text: str) -> None:
    write_bytes_atomic(path, text.encode("utf-8"))


def copy_file_atomic(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dst.name}.", suffix=".tmp", dir=dst.parent)
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        shutil.copyfile(src, tmp)
        os.replace(tmp, dst)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
