# ABOUTME: Download logic for images referenced by image blocks.
# ABOUTME: Caches files by URL hash and falls back to the remote URL on failure.

import asyncio
import hashlib
import logging
import re
from pathlib import Path

import requests

from .rich_text import render_rich_text

logger = logging.getLogger(__name__)

# Sub-directory (of the page's directory) holding downloaded images
IMAGES_DIR = "images"

# Extensions kept as-is; anything else is saved as .jpg
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "svg"}

# Timeout for image downloads (seconds)
DOWNLOAD_TIMEOUT = 30

# Max retries for failed downloads
MAX_RETRIES = 3

_EXTENSION_PATTERN = re.compile(r"\.([a-zA-Z0-9]+)(?:\?|$)")


def image_url(block_data: dict) -> str:
    """Return the URL of an image block, hosted by Notion or external."""
    source = block_data.get("type")
    if source in ("file", "external"):
        return (block_data.get(source) or {}).get("url", "")
    for source in ("file", "external"):
        if source in block_data:
            return (block_data[source] or {}).get("url", "")
    return ""


def get_image_extension(url: str) -> str:
    """Get a recognised image extension (with dot) from a URL, default '.jpg'."""
    match = _EXTENSION_PATTERN.search(url)
    if match:
        ext = match.group(1).lower()
        if ext in IMAGE_EXTENSIONS:
            return f".{ext}"
    return ".jpg"


def image_filename(url: str) -> str:
    """Content-stable filename for an image URL.

    The query string is ignored, so signed URLs of the same file share one
    name: image_<md5 of base URL><extension>.
    """
    base_url = url.split("?", 1)[0]
    url_hash = hashlib.md5(base_url.encode("utf-8")).hexdigest()
    return f"image_{url_hash}{get_image_extension(url)}"


def download_file(url: str, destination: Path) -> int:
    """Download a file from URL to destination.

    Args:
        url: The file URL.
        destination: Path to save the file.

    Returns:
        File size in bytes.

    Raises:
        requests.RequestException: When every attempt failed.
    """
    for attempt in range(MAX_RETRIES):
        try:
            response = requests.get(url, timeout=DOWNLOAD_TIMEOUT, stream=True)
            response.raise_for_status()

            size = 0
            try:
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=8192):
                        f.write(chunk)
                        size += len(chunk)
            except BaseException:
                # A partial file would be served from cache on the next run.
                destination.unlink(missing_ok=True)
                raise

            return size

        except requests.RequestException as e:
            logger.warning(f"Download attempt {attempt + 1}/{MAX_RETRIES} failed: {e}")
            destination.unlink(missing_ok=True)
            if attempt == MAX_RETRIES - 1:
                raise

    raise requests.RequestException(f"Download of {url} was not attempted")


class ImageAssetPipeline:
    """Resolves image blocks to Markdown, downloading images next to the page."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)

    async def resolve(self, block, asset_dir: str | Path | None) -> str:
        """Render an image block as Markdown image syntax.

        Without an asset_dir the remote URL is used and nothing is
        downloaded. Otherwise the image is stored under asset_dir/images
        (once per URL hash) and referenced relatively. Download failures
        fall back to the remote URL.
        """
        url = image_url(block.data)
        caption = render_rich_text(block.data.get("caption"))

        if not asset_dir or not url:
            return f"![{caption}]({url})"

        filename = image_filename(url)
        images_path = Path(asset_dir) / IMAGES_DIR
        destination = images_path / filename

        try:
            if destination.exists():
                self.logger.debug(f"Image already exists at {destination}")
            else:
                images_path.mkdir(parents=True, exist_ok=True)
                self.logger.debug(f"Downloading image {filename}")
                size = await asyncio.to_thread(download_file, url, destination)
                self.logger.debug(f"Saved {size} bytes to {destination}")
        except (requests.RequestException, OSError) as e:
            self.logger.warning(f"Failed to download image from block {block.id}, keeping remote URL: {e}")
            return f"![{caption}]({url})"

        return f"![{caption}]({IMAGES_DIR}/{filename})"
