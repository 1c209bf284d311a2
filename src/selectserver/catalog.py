"""
=============================================================================
FILE CATALOG
=============================================================================

Backs the `list` and `get` commands with one flat directory.

=============================================================================
EXACT-MATCH LOOKUP
=============================================================================

`get` never builds a path from client input and then checks whether it
escaped the root. It does the reverse: it lists the directory and looks
the requested name up in that list. A name like "../etc/passwd" or
"sub/file" can never equal a directory entry, so traversal is impossible
by construction.

    get notes.txt       → "notes.txt" in listing → read root/notes.txt
    get ../secret       → not in listing         → ResourceNotFound

=============================================================================
ORDERING
=============================================================================

Entries come back in whatever order the OS returns them (os.listdir).
No sorting; clients that care must sort themselves.

=============================================================================
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from .errors import ResourceNotFound


logger = logging.getLogger(__name__)


class FileCatalog:
    """
    Lists a directory and reads whole files out of it.

    Usage:
        catalog = FileCatalog("/srv/files")
        catalog.list_names()       # ["a.txt", "b.bin"]
        catalog.read("a.txt")      # b"..."
    """

    def __init__(self, root_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            root_dir: Directory to serve. None = current working directory.
        """
        self.root_dir = Path(root_dir if root_dir is not None else os.getcwd()).resolve()

        if not self.root_dir.is_dir():
            raise ValueError(f"Catalog root directory does not exist: {root_dir}")

    def list_names(self) -> List[str]:
        """Return the non-recursive directory entries, OS order."""
        return os.listdir(self.root_dir)

    def listing(self, encoding: str = "ascii") -> bytes:
        """
        Build the `list` wire payload: one entry per line.

        Names that cannot be encoded get replacement characters rather
        than failing the whole listing.
        """
        text = "".join(f"{name}\n" for name in self.list_names())
        return text.encode(encoding, errors="replace")

    def read(self, name: str) -> bytes:
        """
        Read a listed file fully into memory.

        Raises:
            ResourceNotFound: If `name` is not an exact entry of the
                              listing, is not a regular file, or cannot
                              be read (permissions, removed meanwhile).
        """
        path = self.root_dir / name

        try:
            if name not in self.list_names() or not path.is_file():
                raise ResourceNotFound(name)

            # Whole file in memory; large files are out of scope
            data = path.read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            raise ResourceNotFound(name) from e

        logger.debug(f"Read {len(data)} bytes from {path}")
        return data
