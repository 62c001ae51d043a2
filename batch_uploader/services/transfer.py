"""HTTP transfer of a single file to the upload endpoint."""
from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional

import httpx

from ..errors import TransferError
from ..models import FileDescriptor, TransferErrorKind, TransferOutcome

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class _ProgressReader:
    """
    Binary file wrapper that reports how much of the body has been read.

    httpx pulls multipart file fields through ``read()`` while the request
    body is being written, so bytes read track bytes sent.
    """

    def __init__(self, raw: BinaryIO, total: int, callback: Optional[ProgressCallback]):
        self._raw = raw
        self._total = total
        self._callback = callback
        self._sent = 0
        self._reported = 0.0

    def read(self, size: int = -1) -> bytes:
        chunk = self._raw.read(size)
        if chunk:
            self._sent += len(chunk)
            self._report()
        return chunk

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        position = self._raw.seek(offset, whence)
        self._sent = position
        return position

    def tell(self) -> int:
        return self._raw.tell()

    def _report(self) -> None:
        if self._callback is None or self._total <= 0:
            return
        fraction = min(self._sent / self._total, 1.0)
        if fraction > self._reported:
            self._reported = fraction
            self._callback(fraction)


async def _open_handle(descriptor: FileDescriptor) -> BinaryIO:
    """Open the descriptor's data handle for binary reading; files are opened in a worker thread."""
    handle: Any = descriptor.data_handle
    if isinstance(handle, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(handle))
    if isinstance(handle, (str, Path)):
        return await asyncio.to_thread(open, handle, "rb")
    if hasattr(handle, "read"):
        return handle
    raise TransferError(
        TransferErrorKind.SOURCE,
        f"Unsupported data handle for {descriptor.relative_path}: {type(handle).__name__}"
    )


class TransferUnit:
    """
    Uploads one file as a multipart POST and classifies the outcome.

    Never raises: every failure becomes a failed TransferOutcome.

    Usage:
        async with httpx.AsyncClient(base_url=api_url) as client:
            unit = TransferUnit(client)
            outcome = await unit.transfer("/photos", descriptor, on_progress)
    """

    def __init__(self, client: httpx.AsyncClient, endpoint: str = "/api/files/upload"):
        self._client = client
        self._endpoint = endpoint

    async def transfer(
        self,
        dest: str,
        descriptor: FileDescriptor,
        progress_callback: Optional[ProgressCallback] = None
    ) -> TransferOutcome:
        """
        Upload descriptor into dest.

        Args:
            dest: Destination directory path on the server
            descriptor: File to upload
            progress_callback: Called with completion fraction in [0, 1]

        Returns:
            TransferOutcome (success or failure, never raises)
        """
        try:
            raw = await _open_handle(descriptor)
        except TransferError as e:
            logger.warning(f"Cannot read {descriptor.relative_path}: {e}")
            return TransferOutcome.fail(descriptor, e.kind, str(e))
        except OSError as e:
            logger.warning(f"Cannot read {descriptor.relative_path}: {e}")
            return TransferOutcome.fail(descriptor, TransferErrorKind.SOURCE, str(e))

        reader = _ProgressReader(raw, descriptor.byte_size, progress_callback)
        try:
            response = await self._client.post(
                self._endpoint,
                data={"path": dest, "relativePath[]": descriptor.relative_path},
                files={"file": (descriptor.name, reader, "application/octet-stream")},
            )
            status_code = self._classify(response)
        except TransferError as e:
            logger.warning(f"Upload failed ({e.kind.value}): {descriptor.relative_path}: {e}")
            return TransferOutcome.fail(descriptor, e.kind, str(e), e.status_code)
        except httpx.HTTPError as e:
            error_msg = str(e) or type(e).__name__
            logger.warning(f"Network error uploading {descriptor.relative_path}: {error_msg}")
            return TransferOutcome.fail(descriptor, TransferErrorKind.NETWORK, error_msg)
        except OSError as e:
            logger.warning(f"Read error uploading {descriptor.relative_path}: {e}")
            return TransferOutcome.fail(descriptor, TransferErrorKind.SOURCE, str(e))
        except Exception as e:
            # Custom transports may raise anything; it is still this file's failure
            error_msg = str(e) or type(e).__name__
            logger.warning(f"Transport error uploading {descriptor.relative_path}: {error_msg}", exc_info=True)
            return TransferOutcome.fail(descriptor, TransferErrorKind.NETWORK, error_msg)
        finally:
            if raw is not descriptor.data_handle:
                raw.close()

        if progress_callback is not None:
            progress_callback(1.0)
        logger.debug(f"Uploaded {descriptor.relative_path} ({descriptor.byte_size} bytes)")
        return TransferOutcome.ok(descriptor, status_code)

    @staticmethod
    def _classify(response: httpx.Response) -> int:
        """Return the status code if the response asserts success, raise TransferError otherwise."""
        status = response.status_code
        if not 200 <= status < 300:
            raise TransferError(TransferErrorKind.HTTP, f"HTTP {status}", status)

        try:
            body = response.json()
        except ValueError as exc:
            raise TransferError(
                TransferErrorKind.MALFORMED_RESPONSE,
                f"Response is not valid JSON: {exc}",
                status
            ) from exc

        if not isinstance(body, dict) or "success" not in body:
            raise TransferError(
                TransferErrorKind.MALFORMED_RESPONSE,
                "Response does not carry a success flag",
                status
            )

        data = body.get("data")
        successful = data.get("successful") if isinstance(data, dict) else None
        if body["success"] is True and successful != 0:
            return status
        if isinstance(successful, int) and successful > 0:
            return status

        message = body.get("message") or "Server did not accept the file"
        raise TransferError(TransferErrorKind.REJECTED, str(message), status)
