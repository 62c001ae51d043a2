"""Filesystem-backed drop entries, so local paths can be uploaded like a drag-and-drop."""
import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import ScanError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class LocalDirectoryReader:
    """
    Paginated reader over a local directory.

    The listing is taken on the first call and handed out page by page;
    an empty page means the directory is exhausted.
    """

    def __init__(self, path: Path, page_size: int = DEFAULT_PAGE_SIZE):
        self._path = path
        self._page_size = page_size
        self._children: Optional[List[Path]] = None
        self._offset = 0

    async def read_entries(self) -> List["LocalEntry"]:
        if self._children is None:
            loop = asyncio.get_running_loop()
            self._children = await loop.run_in_executor(None, self._list)

        page = self._children[self._offset:self._offset + self._page_size]
        self._offset += len(page)
        return [LocalEntry(child, self._page_size) for child in page]

    def _list(self) -> List[Path]:
        try:
            with os.scandir(self._path) as it:
                return sorted((Path(entry.path) for entry in it), key=lambda p: p.name)
        except OSError as e:
            raise ScanError(str(self._path), e.strerror or str(e)) from e


class LocalEntry:
    """IEntry implementation for a path on the local filesystem."""

    def __init__(self, path: Path, page_size: int = DEFAULT_PAGE_SIZE):
        self._path = Path(path)
        self._page_size = page_size
        self.name = self._path.name
        self.is_file = self._path.is_file()
        self.is_directory = self._path.is_dir()

    @property
    def path(self) -> Path:
        return self._path

    async def file(self) -> Tuple[int, Path]:
        """Return (size, path); the file is opened only when it is transferred."""
        loop = asyncio.get_running_loop()
        try:
            stat = await loop.run_in_executor(None, self._path.stat)
        except OSError as e:
            raise ScanError(str(self._path), e.strerror or str(e)) from e
        return stat.st_size, self._path

    def create_reader(self) -> LocalDirectoryReader:
        if not self.is_directory:
            raise ScanError(str(self._path), "not a directory")
        return LocalDirectoryReader(self._path, self._page_size)

    def __repr__(self) -> str:
        kind = "dir" if self.is_directory else "file" if self.is_file else "other"
        return f"LocalEntry({str(self._path)!r}, {kind})"
