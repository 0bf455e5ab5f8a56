"""
Path safety utilities for restored objects.

Object keys become filesystem paths under the destination root. This module
rejects keys that would escape that root.
"""
from __future__ import annotations

from pathlib import PurePosixPath


def safe_relpath(key: str) -> str:
    """
    Validate an object key for use as a relative path under the restore root.

    Leading separators are dropped, so "/Proj/a.mov" lands at base/Proj/a.mov
    like any other key. This function enforces the following safety rules:
    - No empty keys, "." or bare separators (would address the root itself)
    - No parent directory references ('..' components)

    Args:
        key: Object key

    Returns:
        Normalized relative path

    Raises:
        ValueError: If the key violates safety rules

    Examples:
        >>> safe_relpath("Proj/clips/a.mov")
        'Proj/clips/a.mov'

        >>> safe_relpath("/Proj//clips/./a.mov")
        'Proj/clips/a.mov'

        >>> safe_relpath("../secrets.txt")
        ValueError: unsafe path: ../secrets.txt
    """
    rel = PurePosixPath(key.lstrip("/"))
    s = str(rel)
    if not s or s == ".":
        raise ValueError(f"unsafe path: {key}")
    if ".." in rel.parts:
        raise ValueError(f"unsafe path: {key}")
    return s
