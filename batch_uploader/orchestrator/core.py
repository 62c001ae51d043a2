"""Core orchestrator - owns the HTTP client and creates upload sessions."""
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from ..models import FileDescriptor, UploadConfig
from ..protocols import IEntry, IProgressSurface
from ..services.entries import LocalEntry
from ..services.listing import DirectoryListingClient, ListingCache
from ..services.transfer import TransferUnit
from .session import UploadSession


class UploadOrchestrator:
    """
    Creates upload sessions against one file server.

    Usage:
        async with UploadOrchestrator(api_url, surface=surface) as uploader:
            session = uploader.upload_paths([Path("photos")], "/backup")
            result = await session.wait()
            print(result.summary_message)

            files = await uploader.list_directory("/backup")
    """

    def __init__(
        self,
        api_url: str,
        config: Optional[UploadConfig] = None,
        surface: Optional[IProgressSurface] = None,
        listing_cache: Optional[ListingCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            api_url: Base URL of the file server API
            config: Upload configuration (batch sizes, concurrency, endpoints)
            surface: Where progress is rendered (optional)
            listing_cache: Directory listing cache shared with the rest of the client
            transport: httpx transport override (tests use httpx.MockTransport)
        """
        self._api_url = api_url
        self._config = config or UploadConfig()
        self._surface = surface
        self._listing_cache = listing_cache if listing_cache is not None else ListingCache()
        self._transport = transport

        # Initialized in __aenter__
        self._client: Optional[httpx.AsyncClient] = None
        self._transfer_unit: Optional[TransferUnit] = None
        self._listing: Optional[DirectoryListingClient] = None

    async def __aenter__(self):
        limits = httpx.Limits(max_connections=self._config.max_in_flight_transfers)
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=self._config.timeout,
            limits=limits,
            transport=self._transport,
        )
        self._transfer_unit = TransferUnit(self._client, self._config.upload_endpoint)
        self._listing = DirectoryListingClient(
            self._client, self._listing_cache, self._config.listing_endpoint
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def listing_cache(self) -> ListingCache:
        return self._listing_cache

    def upload_entries(
        self,
        entries: Iterable[IEntry],
        dest: str = "/",
        title: str = "Processing Files",
    ) -> UploadSession:
        """
        Upload dropped files and folders, keeping their structure under dest.

        Returns an UploadSession; call wait() to run it.
        """
        return UploadSession(
            self._require_transfer_unit(),
            dest,
            entries=entries,
            config=self._config,
            surface=self._surface,
            listing_cache=self._listing_cache,
            title=title,
        )

    def upload_files(
        self,
        files: Sequence[FileDescriptor],
        dest: str = "/",
        title: str = "Uploading Files",
    ) -> UploadSession:
        """Upload an already flat selection (relative paths are used as given)."""
        return UploadSession(
            self._require_transfer_unit(),
            dest,
            files=files,
            config=self._config,
            surface=self._surface,
            listing_cache=self._listing_cache,
            title=title,
        )

    def upload_paths(
        self,
        paths: Iterable[Union[str, Path]],
        dest: str = "/",
    ) -> UploadSession:
        """Upload local files and folders as if they had been dropped."""
        entries = [LocalEntry(Path(p), self._config.scan_page_size) for p in paths]
        return self.upload_entries(entries, dest)

    async def list_directory(self, path: str) -> List[Dict[str, Any]]:
        """Fetch a directory listing, served from cache when the server says 304."""
        if self._listing is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return await self._listing.get_files(path)

    def _require_transfer_unit(self) -> TransferUnit:
        if self._transfer_unit is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return self._transfer_unit
