"""File helpers: atomic writes and content digests."""

import hashlib
import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from confsync.models.managed_file import MISSING


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """Write a file atomically.

    The data is first written to a temporary file in the same directory
    and then moved into place with os.replace(). The temporary file is
    cleaned up on failure.

    Args:
        path: Destination path. Parent directories are created.
        data: Content to write.

    Returns:
        The destination path.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            f.write(data)
        os.replace(str(tmp_path), str(path))
    except OSError:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise

    return path


def atomic_write_json(path: Path, data: Any) -> Path:
    """Serialize data as indented JSON and write it atomically."""
    text = json.dumps(data, indent=2, sort_keys=True) + "\n"
    return atomic_write_bytes(path, text.encode("utf-8"))


def sha256_bytes(data: bytes) -> str:
    """Return the SHA-256 hex digest of data."""
    return hashlib.sha256(data).hexdigest()


def file_digest(path: Path) -> str:
    """Return the SHA-256 hex digest of a file.

    Args:
        path: File to hash.

    Returns:
        Hex digest, or MISSING when the path is not a regular file.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    if not path.is_file():
        return MISSING
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()
