"""Tests for photo download/upload with fallback."""
import asyncio
from datetime import date

import httpx
import pytest

from services.exceptions import ImageArchiveError
from services.image_service import ImageArchiver, build_file_name, build_folder
from tests.conftest import ARCHIVE_URL

DAY = date(2025, 6, 2)


def test_archived_urls_pass_through(image_host):
    archiver = image_host.archiver()

    url = asyncio.run(archiver.archive(ARCHIVE_URL, "E1", DAY, "start"))

    assert url == ARCHIVE_URL
    assert image_host.uploads == []


def test_forced_archive_reuploads(image_host):
    old = "https://ik.imagekit.io/demo/old.jpg"

    url = asyncio.run(image_host.archiver().archive(old, "E1", DAY, "end", force=True))

    assert url == ARCHIVE_URL
    assert len(image_host.uploads) == 1


def test_empty_url_returns_none(image_host):
    assert asyncio.run(image_host.archiver().archive("  ", "E1", DAY, "start")) is None


def test_upload_request_shape(image_host):
    archiver = image_host.archiver()

    url = asyncio.run(archiver.archive("https://clock.example.com/x.jpg", "E1", DAY, "break_in"))

    assert url == ARCHIVE_URL
    request = image_host.uploads[0]
    body = request.content
    assert b'name="folder"' in body
    assert b"/attendance/2025/06" in body
    assert b'name="useUniqueFileName"' in body
    assert b"E1_20250602_break_in_" in body
    assert request.headers["authorization"].startswith("Basic ")


def test_oversized_download_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=b"x" * 64)
        raise AssertionError("upload must not be attempted")

    archiver = ImageArchiver(private_key="k", max_bytes=16, transport=httpx.MockTransport(handler))
    source = "https://clock.example.com/big.jpg"

    assert asyncio.run(archiver.archive(source, "E1", DAY, "end")) == source
    with pytest.raises(ImageArchiveError):
        asyncio.run(archiver.download(source))


def test_missing_private_key_falls_back(image_host):
    archiver = ImageArchiver(private_key="", transport=httpx.MockTransport(image_host.handler))
    source = "https://clock.example.com/x.jpg"

    assert asyncio.run(archiver.archive(source, "E1", DAY, "start")) == source


def test_upload_without_url_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=b"img")
        return httpx.Response(200, json={"fileId": "abc"})

    archiver = ImageArchiver(private_key="k", transport=httpx.MockTransport(handler))

    with pytest.raises(ImageArchiveError):
        asyncio.run(archiver.upload(b"img", "a.jpg", "/attendance/2025/06"))


def test_non_object_upload_response_is_an_error(image_host):
    image_host.upload_payload = ["unexpected"]
    archiver = image_host.archiver()

    with pytest.raises(ImageArchiveError):
        asyncio.run(archiver.upload(b"img", "a.jpg", "/attendance/2025/06"))
    assert asyncio.run(archiver.archive("https://clock.example.com/x.jpg", "E1", DAY, "start")) == "https://clock.example.com/x.jpg"


def test_file_name_and_folder():
    name = build_file_name("2405047", DAY, "start")

    assert name.startswith("2405047_20250602_start_")
    assert name.endswith(".jpg")
    assert name != build_file_name("2405047", DAY, "start")
    assert build_folder(DAY) == "/attendance/2025/06"
