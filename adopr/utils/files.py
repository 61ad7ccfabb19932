"""File helpers."""

import os
import tempfile
from pathlib import Path


def atomic_write_bytes(path: Path, content: bytes) -> None:
    """Write bytes so readers see either the old file or the complete new one.

    The content goes to a temporary file in the target directory which then
    replaces ``path``.
    """
    path = Path(path)
    with tempfile.NamedTemporaryFile(
        mode="wb", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
    ) as temp_file:
        temp_file.write(content)
        temp_path = Path(temp_file.name)

    try:
        os.replace(temp_path, path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, content: str) -> None:
    """UTF-8 variant of :func:`atomic_write_bytes`."""
    atomic_write_bytes(path, content.encode("utf-8"))
