"""File helpers: temporary directory choice and best-effort deletion."""

import os
from typing import Optional

_SHM_DIR = "/dev/shm"


def default_temp_dir() -> Optional[str]:
    """Return ``/dev/shm`` when it is a directory, otherwise ``None``.

    ``None`` makes :mod:`tempfile` fall back to the system temporary directory.
    """
    return _SHM_DIR if os.path.isdir(_SHM_DIR) else None


TEMP_DIR: Optional[str] = default_temp_dir()


def delete_file(path: "str | os.PathLike[str]") -> None:
    """Delete a file or an empty directory, ignoring any failure."""
    if not os.path.lexists(path):
        return
    try:
        os.remove(path)
    except OSError:
        try:
            os.rmdir(path)
        except OSError:
            pass