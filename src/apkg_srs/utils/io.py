"""File I/O utilities for safe and atomic operations."""

import os
import shutil
import tempfile
from collections.abc import Generator
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Any

from apkg_srs.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def atomic_write(
    path: str | Path,
    mode: str = "w",
    encoding: str | None = "utf-8",
    **kwargs: Any,
) -> Generator[Any]:
    """
    Context manager for atomic file writing.

    Writes to a temporary file next to the target, then renames it over the
    target once the block completes, so the target is never left half written.

    Args:
        path: Target file path
        mode: File open mode (default: "w")
        encoding: File encoding, ignored for binary modes
        **kwargs: Additional arguments passed to open()

    Yields:
        File object opened for writing

    Example:
        with atomic_write("deck.apkg", "wb") as f:
            f.write(payload)
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    if "b" in mode:
        encoding = None

    try:
        temp_fd, temp_path = tempfile.mkstemp(
            dir=parent,
            prefix=f".tmp_{path.name}_",
            text="b" not in mode,
        )
        os.close(temp_fd)
        temp_path_obj = Path(temp_path)

        try:
            with open(temp_path, mode, encoding=encoding, **kwargs) as f:
                yield f
                f.flush()
                os.fsync(f.fileno())

            temp_path_obj.replace(path)

        except BaseException:
            if temp_path_obj.exists():
                with suppress(OSError):
                    temp_path_obj.unlink()
            raise

    except Exception as e:
        logger.error(
            "atomic_write_failed",
            path=str(path),
            error=str(e),
        )
        raise


def make_scratch_dir(root: Path | None = None, prefix: str = "apkg-srs-") -> Path:
    """Create a fresh scratch directory, under ``root`` when given."""
    if root is not None:
        root.mkdir(parents=True, exist_ok=True)
    scratch = Path(tempfile.mkdtemp(prefix=prefix, dir=str(root) if root else None))
    logger.debug("scratch_dir_created", path=str(scratch))
    return scratch


def remove_dir(path: Path) -> None:
    """Recursively delete ``path``. Raises ``OSError`` on failure."""
    shutil.rmtree(path)
    logger.debug("scratch_dir_removed", path=str(path))
