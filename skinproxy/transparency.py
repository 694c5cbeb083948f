"""
Alpha-channel transparency test for page images.

The image bytes are decoded off-page with Pillow at their natural size,
converted to RGBA and the alpha channel is bucketed into fully opaque (255),
fully transparent (0) and partially transparent (1-254) pixels. An image
counts as transparent only when more than 0.1% of its pixels are not fully
opaque, so anti-aliasing and compression noise do not flip the verdict.
"""

import asyncio
import base64
from dataclasses import dataclass
from io import BytesIO
from typing import Awaitable, Callable, Optional
from urllib.parse import unquote_to_bytes, urljoin

from PIL import Image

from .common import parse_srcset


# Percent of non-opaque pixels, compared as a strict inequality.
TRANSPARENCY_THRESHOLD_PERCENT = 0.1
# Same threshold as a ratio: count / total > 1 / 1000.
_THRESHOLD_DENOMINATOR = 1000

Fetcher = Callable[[str], Awaitable[bytes]]


class FetchError(Exception):
    pass


@dataclass
class AlphaStats:
    opaque: int
    transparent: int
    partial: int

    @property
    def total(self) -> int:
        return self.opaque + self.transparent + self.partial

    @property
    def non_opaque(self) -> int:
        return self.transparent + self.partial

    @property
    def percentage(self) -> float:
        if not self.total:
            return 0.0
        return self.non_opaque / self.total * 100

    @property
    def has_significant_transparency(self) -> bool:
        if not self.total:
            return False
        return self.non_opaque * _THRESHOLD_DENOMINATOR > self.total


def alpha_stats(image: Image.Image) -> AlphaStats:
    rgba = image if image.mode == "RGBA" else image.convert("RGBA")
    histogram = rgba.getchannel("A").histogram()
    return AlphaStats(
        opaque=histogram[255],
        transparent=histogram[0],
        partial=sum(histogram[1:255]),
    )


def resolve_source(src: str, srcset: Optional[str] = None, base_url: Optional[str] = None) -> str:
    """Pick the URL whose bytes are inspected: first srcset entry, else src.

    Relative srcset entries resolve against the document base, as the browser
    does. Without a base they fall back to an http(s) src.
    """
    entries = parse_srcset(srcset)
    if not entries:
        return src
    first = entries[0][0]
    if first.startswith("data:"):
        return first
    base = base_url or ("" if src.startswith("data:") else src)
    return urljoin(base, first) if base else first


def decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not header.startswith("data:") or not sep:
        raise ValueError("Malformed data URL")
    if header.lower().endswith(";base64"):
        return base64.b64decode(payload, validate=False)
    return unquote_to_bytes(payload)


def page_fetcher(page) -> Fetcher:
    async def fetch(url: str) -> bytes:
        response = await page.request.get(url)
        if not response.ok:
            raise FetchError(f"HTTP {response.status} for {url}")
        return await response.body()

    return fetch


class TransparencyDetector:
    def __init__(self, fetch: Fetcher, verbose: bool = False):
        self.fetch = fetch
        self.verbose = verbose

    async def load_bytes(self, url: str) -> bytes:
        if url.startswith("data:"):
            return decode_data_url(url)
        return await self.fetch(url)

    def inspect(self, data: bytes) -> AlphaStats:
        with Image.open(BytesIO(data)) as image:
            image.load()
            return alpha_stats(image)

    async def has_transparency(
        self, src: str, srcset: Optional[str] = None, base_url: Optional[str] = None
    ) -> bool:
        url = resolve_source(src, srcset, base_url)
        if not url:
            return False
        try:
            data = await self.load_bytes(url)
            # Decoding runs in a worker thread so other images keep moving.
            loop = asyncio.get_running_loop()
            stats = await loop.run_in_executor(None, self.inspect, data)
        except Exception as exc:
            if self.verbose:
                print(f"   ⚠️  Transparency check failed for {url[:120]}: {exc}")
            return False

        verdict = stats.has_significant_transparency
        if self.verbose:
            print(
                f"   🔍 alpha {url[:80]}: opaque={stats.opaque} partial={stats.partial} "
                f"transparent={stats.transparent} ({stats.percentage:.4f}%) -> {verdict}"
            )
        return verdict
