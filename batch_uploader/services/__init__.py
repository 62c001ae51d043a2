"""Services for batch_uploader."""
from .entries import LocalDirectoryReader, LocalEntry
from .listing import DirectoryListingClient, ListingCache
from .transfer import TransferUnit

__all__ = [
    "LocalDirectoryReader",
    "LocalEntry",
    "DirectoryListingClient",
    "ListingCache",
    "TransferUnit",
]
