"""Tests for image naming, caching and download fallback."""

from __future__ import annotations

import hashlib
from unittest.mock import MagicMock, patch

import pytest
import requests
from conftest import make_block, rich

from notion_exporter.markdown.images import (
    ImageAssetPipeline,
    download_file,
    get_image_extension,
    image_filename,
    image_url,
)


def _image_block(url: str, source: str = "file", caption: str | None = None):
    return make_block(
        "image",
        "img-1",
        type=source,
        caption=[rich(caption)] if caption else [],
        **{source: {"url": url}},
    )


class TestImageFilename:

    def test_query_string_is_ignored(self):
        assert image_filename("https://x/img.png?v=2") == image_filename("https://x/img.png?v=3")

    def test_hash_of_base_url(self):
        expected = hashlib.md5(b"https://x/img.png").hexdigest()
        assert image_filename("https://x/img.png?v=2") == f"image_{expected}.png"

    @pytest.mark.parametrize(
        ("url", "extension"),
        [
            ("https://x/a.PNG", ".png"),
            ("https://x/a.jpeg?sig=1", ".jpeg"),
            ("https://x/a.gif", ".gif"),
            ("https://x/a.webp", ".webp"),
            ("https://x/a.svg", ".svg"),
            ("https://x/a.tiff", ".jpg"),
            ("https://x/image", ".jpg"),
        ],
    )
    def test_extension(self, url, extension):
        assert get_image_extension(url) == extension


class TestImageUrl:

    def test_file_and_external_sources(self):
        assert image_url({"type": "file", "file": {"url": "https://s3/a.png"}}) == "https://s3/a.png"
        assert image_url({"type": "external", "external": {"url": "https://e/b.png"}}) == "https://e/b.png"

    def test_missing_url(self):
        assert image_url({}) == ""


class TestImageAssetPipeline:

    async def test_downloads_into_images_dir(self, tmp_path):
        pipeline = ImageAssetPipeline()
        url = "https://s3.example.com/photo.png?X-Amz-Signature=abc"

        def fake_download(download_url, destination):
            destination.write_bytes(b"png")
            return 3

        with patch("notion_exporter.markdown.images.download_file", side_effect=fake_download) as download:
            result = await pipeline.resolve(_image_block(url, caption="Photo"), tmp_path)

        filename = image_filename(url)
        assert result == f"![Photo](images/{filename})"
        assert (tmp_path / "images" / filename).read_bytes() == b"png"
        download.assert_called_once()

    async def test_existing_file_is_not_downloaded_again(self, tmp_path):
        url = "https://s3.example.com/photo.png?v=1"
        images_dir = tmp_path / "images"
        images_dir.mkdir()
        (images_dir / image_filename(url)).write_bytes(b"cached")

        with patch("notion_exporter.markdown.images.download_file") as download:
            result = await ImageAssetPipeline().resolve(_image_block(url), tmp_path)

        download.assert_not_called()
        assert result == f"![](images/{image_filename(url)})"

    async def test_download_failure_falls_back_to_remote_url(self, tmp_path):
        url = "https://s3.example.com/broken.png"
        with patch(
            "notion_exporter.markdown.images.download_file",
            side_effect=requests.ConnectionError("boom"),
        ):
            result = await ImageAssetPipeline().resolve(_image_block(url, caption="Broken"), tmp_path)

        assert result == f"![Broken]({url})"

    async def test_no_asset_dir_skips_download(self):
        url = "https://example.com/a.png"
        with patch("notion_exporter.markdown.images.download_file") as download:
            result = await ImageAssetPipeline().resolve(_image_block(url, source="external"), "")
        download.assert_not_called()
        assert result == f"![]({url})"


class TestDownloadFile:

    def test_writes_streamed_content(self, tmp_path):
        response = MagicMock()
        response.iter_content.return_value = [b"ab", b"cd"]
        destination = tmp_path / "out.png"

        with patch("notion_exporter.markdown.images.requests.get", return_value=response):
            size = download_file("https://x/out.png", destination)

        assert size == 4
        assert destination.read_bytes() == b"abcd"

    def test_retries_then_raises(self, tmp_path):
        destination = tmp_path / "out.png"
        with patch(
            "notion_exporter.markdown.images.requests.get",
            side_effect=requests.Timeout("slow"),
        ) as get:
            with pytest.raises(requests.Timeout):
                download_file("https://x/out.png", destination)

        assert get.call_count == 3
        assert not destination.exists()

    def test_write_error_removes_partial_file(self, tmp_path):
        def chunks(chunk_size):
            yield b"ab"
            raise OSError("No space left on device")

        response = MagicMock()
        response.iter_content.side_effect = chunks
        destination = tmp_path / "out.png"

        with patch("notion_exporter.markdown.images.requests.get", return_value=response) as get:
            with pytest.raises(OSError, match="No space left"):
                download_file("https://x/out.png", destination)

        get.assert_called_once()
        assert not destination.exists()

    async def test_failed_write_is_downloaded_again_next_time(self, tmp_path):
        url = "https://s3.example.com/photo.png"
        destination = tmp_path / "images" / image_filename(url)

        def full_disk(chunk_size):
            yield b"partial"
            raise OSError("No space left on device")

        response = MagicMock()
        response.iter_content.side_effect = full_disk
        with patch("notion_exporter.markdown.images.requests.get", return_value=response):
            result = await ImageAssetPipeline().resolve(_image_block(url), tmp_path)

        assert result == f"![]({url})"
        assert not destination.exists()

        response.iter_content.side_effect = None
        response.iter_content.return_value = [b"complete"]
        with patch("notion_exporter.markdown.images.requests.get", return_value=response):
            result = await ImageAssetPipeline().resolve(_image_block(url), tmp_path)

        assert result == f"![](images/{image_filename(url)})"
        assert destination.read_bytes() == b"complete"
