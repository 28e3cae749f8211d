"""
Export Utilities

Atomic file replacement: output is written to a temporary file beside the
destination and renamed into place only after the write succeeded, so a
failed export never leaves a file that looks complete.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import logging
import os
import stat
import tempfile

from core.errors import MeshWriteError


def _default_file_mode() -> int:
    """Mode open() would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@contextmanager
def atomic_path(output_path: str | Path) -> Iterator[Path]:
    """
    Yield a temporary path that replaces output_path on success.

    The finished file gets the permissions of a plain open(): those of the
    file it replaces, otherwise 0666 minus the umask (mkstemp creates 0600).

    Raises:
        MeshWriteError: If writing or renaming fails
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
        )
        os.close(fd)
    except OSError as e:
        raise MeshWriteError(f"Cannot write {output_path}: {e}") from e

    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        if output_path.exists():
            mode = stat.S_IMODE(output_path.stat().st_mode)
        else:
            mode = _default_file_mode()
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, output_path)
    except MeshWriteError:
        raise
    except OSError as e:
        raise MeshWriteError(f"Failed to write {output_path}: {e}") from e
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logging.warning(f"Failed to remove temporary file {tmp_path}: {e}")


@contextmanager
def atomic_write(output_path: str | Path, mode: str = "wb", **kwargs):
    """Open a temporary file for writing; it replaces output_path on success."""
    with atomic_path(output_path) as tmp_path:
        with open(tmp_path, mode, **kwargs) as f:
            yield f
