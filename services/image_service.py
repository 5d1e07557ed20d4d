# services/image_service.py - photo archival with fallback to the source URL
from __future__ import annotations

import logging
import time
from datetime import date
from typing import Optional

import httpx

from config import (
    IMAGEKIT_PRIVATE_KEY,
    IMAGEKIT_UPLOAD_URL,
    ARCHIVE_HOST_MARKER,
    IMAGE_MAX_BYTES,
    IMAGE_TIMEOUT,
)
from services.exceptions import ImageArchiveError
from utils.time_and_ids import gen_file_token

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; ImageBot/1.0)"
UPLOAD_TAGS = "attendance,automated-upload"


def build_file_name(employee_id: str, day: date, kind: str) -> str:
    millis = int(time.time() * 1000)
    return f"{employee_id}_{day:%Y%m%d}_{kind}_{millis}_{gen_file_token()}.jpg"


def build_folder(day: date) -> str:
    return f"/attendance/{day:%Y}/{day:%m}"


class ImageArchiver:
    """
    Downloads a punch photo and re-hosts it on ImageKit.

    `archive()` never raises: any download or upload failure is logged and
    the original URL is returned so the attendance record keeps a usable link.
    """

    def __init__(
        self,
        upload_url: str = IMAGEKIT_UPLOAD_URL,
        private_key: str = IMAGEKIT_PRIVATE_KEY,
        host_marker: str = ARCHIVE_HOST_MARKER,
        max_bytes: int = IMAGE_MAX_BYTES,
        timeout: float = IMAGE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upload_url = upload_url
        self.private_key = private_key
        self.host_marker = host_marker
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.transport = transport

    def is_archived(self, url: Optional[str]) -> bool:
        return bool(url) and self.host_marker.lower() in url.lower()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True)

    async def download(self, url: str) -> bytes:
        """Fetch `url` into memory, refusing bodies larger than max_bytes."""
        try:
            async with self._client() as client:
                async with client.stream("GET", url, headers={"User-Agent": USER_AGENT}) as resp:
                    resp.raise_for_status()
                    declared = resp.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > self.max_bytes:
                        raise ImageArchiveError(f"Image at {url} is {declared} bytes, over the {self.max_bytes} cap")
                    chunks = []
                    received = 0
                    async for chunk in resp.aiter_bytes():
                        received += len(chunk)
                        if received > self.max_bytes:
                            raise ImageArchiveError(f"Image at {url} exceeds the {self.max_bytes} byte cap")
                        chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise ImageArchiveError(f"Failed to download image from {url}: {exc!s}") from exc

        content = b"".join(chunks)
        if not content:
            raise ImageArchiveError(f"Empty image body from {url}")
        return content

    async def upload(self, content: bytes, file_name: str, folder: str) -> str:
        """Upload bytes to ImageKit and return the hosted URL."""
        if not self.private_key:
            raise ImageArchiveError("IMAGEKIT_PRIVATE_KEY is not configured")
        form = {
            "fileName": file_name,
            "folder": folder,
            "useUniqueFileName": "true",
            "tags": UPLOAD_TAGS,
        }
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.upload_url,
                    data=form,
                    files={"file": (file_name, content, "image/jpeg")},
                    auth=(self.private_key, ""),
                )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as exc:
            raise ImageArchiveError(f"Failed to upload {file_name}: {exc!s}") from exc
        except ValueError as exc:
            raise ImageArchiveError(f"Invalid upload response for {file_name}") from exc

        if not isinstance(payload, dict):
            raise ImageArchiveError(f"Invalid upload response for {file_name}")
        url = payload.get("url")
        if not url:
            raise ImageArchiveError(f"Upload response for {file_name} carried no url")
        return url

    async def archive(
        self, url: Optional[str], employee_id: str, day: date, kind: str, force: bool = False
    ) -> Optional[str]:
        """Archived URL for `url`; with `force`, URLs already on the archive host are re-uploaded too."""
        if not url or not url.strip():
            return None
        if not force and self.is_archived(url):
            return url

        try:
            content = await self.download(url)
        except ImageArchiveError as exc:
            logger.warning(f"Failed to download {kind} image for user {employee_id}: {exc}")
            return url

        try:
            archived = await self.upload(content, build_file_name(employee_id, day, kind), build_folder(day))
        except ImageArchiveError as exc:
            logger.warning(f"Failed to upload {kind} image for user {employee_id}: {exc}")
            return url

        logger.info(f"Archived {kind} image for user {employee_id}")
        return archived


image_archiver = ImageArchiver()
