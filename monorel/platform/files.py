"""Local file writes for commands that create packages on disk."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text"]


def atomic_write_text(
    path: Path, content: str, *, encoding: str = "utf-8", overwrite: bool = True
) -> None:
    """Write `content` to `path` so readers never observe a half-written file.

    The text goes to a sibling temp file which then replaces `path`. Line
    endings are written exactly as given.

    Raises:
        FileExistsError: `overwrite` is False and `path` exists.
        OSError: The directory cannot be created or written.
    """
    if not overwrite and path.exists():
        raise FileExistsError(str(path))
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        "w",
        encoding=encoding,
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as handle:
        staged = Path(handle.name)
        try:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        except OSError:
            handle.close()
            staged.unlink(missing_ok=True)
            raise

    try:
        os.replace(staged, path)
    finally:
        staged.unlink(missing_ok=True)
