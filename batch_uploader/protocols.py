"""
Protocols (Interfaces) for the collaborators around an upload session.

Following Interface Segregation Principle - small, focused interfaces.
"""
from typing import Any, List, Protocol, Tuple, runtime_checkable

from .models import ProgressSnapshot


@runtime_checkable
class IDirectoryReader(Protocol):
    """Paginated enumeration of a directory's children."""

    async def read_entries(self) -> List["IEntry"]:
        """Return the next page of children; an empty list means done."""
        ...


@runtime_checkable
class IEntry(Protocol):
    """Hierarchical entry from a drop (file or directory)."""

    name: str
    is_file: bool
    is_directory: bool

    async def file(self) -> Tuple[int, Any]:
        """Return (byte_size, data_handle) for a file entry."""
        ...

    def create_reader(self) -> IDirectoryReader:
        """Return a reader for a directory entry's children."""
        ...


@runtime_checkable
class IProgressSurface(Protocol):
    """Something that renders progress; the core never renders itself."""

    def begin(self, title: str) -> None:
        ...

    def update(self, snapshot: ProgressSnapshot) -> None:
        ...

    def end(self) -> None:
        ...

    def fail(self, message: str) -> None:
        ...


@runtime_checkable
class IListingCache(Protocol):
    """Cache of directory listings keyed by directory path."""

    def invalidate(self, path: str) -> None:
        """Drop any cached listing for path."""
        ...
