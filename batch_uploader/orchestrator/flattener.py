"""Flattening of dropped files and folders into FileDescriptors."""
import asyncio
import logging
from typing import AsyncIterator, Callable, Iterable, List, Optional

from ..errors import ScanError
from ..models import FileDescriptor
from ..protocols import IEntry

logger = logging.getLogger(__name__)

FoundCallback = Callable[[int, FileDescriptor], None]


class DirectoryFlattener:
    """
    Expands hierarchical entries into a flat list of FileDescriptors.

    relative_path keeps the nesting below the drop root: dropping a folder
    ``dir`` containing ``sub/c.txt`` yields ``dir/sub/c.txt``. Sibling
    subtrees are read concurrently. Anything unreadable is logged and
    contributes nothing instead of failing the scan.
    """

    def __init__(self, on_found: Optional[FoundCallback] = None):
        self._on_found = on_found
        self._found = 0

    @property
    def found(self) -> int:
        return self._found

    async def flatten(self, entries: Iterable[IEntry]) -> List[FileDescriptor]:
        """Scan all top-level entries concurrently and return every file found."""
        groups = await asyncio.gather(*(self._drain(entry, "") for entry in entries))
        files = [descriptor for group in groups for descriptor in group]
        logger.info(f"Scan complete: {len(files)} files")
        return files

    async def walk(self, entry: IEntry, base_path: str = "") -> AsyncIterator[FileDescriptor]:
        """
        Lazily yield the files under one entry.

        Each call starts a fresh traversal, so a top-level entry can be
        walked again after a failure.
        """
        if entry.is_file:
            descriptor = await self._describe(entry, base_path)
            if descriptor is not None:
                yield descriptor
            return

        if not entry.is_directory:
            logger.debug(f"Skipping {base_path}{entry.name}: neither file nor directory")
            return

        children = await self._read_children(entry, base_path)
        prefix = f"{base_path}{entry.name}/"
        groups = await asyncio.gather(*(self._drain(child, prefix) for child in children))
        for group in groups:
            for descriptor in group:
                yield descriptor

    async def _drain(self, entry: IEntry, base_path: str) -> List[FileDescriptor]:
        try:
            return [descriptor async for descriptor in self.walk(entry, base_path)]
        except (ScanError, OSError) as e:
            logger.warning(f"Skipping unreadable entry {base_path}{entry.name}: {e}")
            return []
        except Exception as e:
            logger.error(f"Unexpected error scanning {base_path}{entry.name}: {e}", exc_info=True)
            return []

    async def _describe(self, entry: IEntry, base_path: str) -> Optional[FileDescriptor]:
        try:
            byte_size, handle = await entry.file()
            descriptor = FileDescriptor(
                name=entry.name,
                relative_path=f"{base_path}{entry.name}",
                byte_size=byte_size,
                data_handle=handle,
            )
        except (ScanError, OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable file {base_path}{entry.name}: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error reading {base_path}{entry.name}: {e}", exc_info=True)
            return None

        self._found += 1
        if self._on_found is not None:
            self._on_found(self._found, descriptor)
        return descriptor

    async def _read_children(self, entry: IEntry, base_path: str) -> List[IEntry]:
        """Read pages until an empty one; a failing page keeps what was read so far."""
        children: List[IEntry] = []
        try:
            reader = entry.create_reader()
            while True:
                page = await reader.read_entries()
                if not page:
                    break
                children.extend(page)
        except (ScanError, OSError) as e:
            logger.warning(
                f"Could not fully read {base_path}{entry.name}/ "
                f"({len(children)} entries read): {e}"
            )
        except Exception as e:
            logger.error(
                f"Unexpected error listing {base_path}{entry.name}/ "
                f"({len(children)} entries read): {e}",
                exc_info=True
            )
        return children
