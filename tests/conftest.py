import asyncio
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest
from PIL import Image

from skinproxy.executor import BOX_JS, PRELOAD_JS, SWAP_JS
from skinproxy.pipeline import CLAIM_JS, DECODE_STATE_JS, WAIT_FOR_DECODE_JS
from skinproxy.snapshot import PROCESSED_ATTRIBUTE, SNAPSHOT_JS, ImageSnapshot


DEFAULT_IMAGE = {
    "width": 400,
    "height": 300,
    "x": 100,
    "y": 400,
    "src": "https://site.test/photos/lake.jpg",
    "srcset": "",
    "base_url": "https://site.test/shop/",
    "position": "static",
    "top": "auto",
    "right": "auto",
    "bottom": "auto",
    "left": "auto",
    "in_chrome": False,
    "in_content": True,
    "in_banner": False,
    "parent_width": 400,
    "parent_height": 300,
    "viewport_width": 1440,
    "viewport_height": 900,
    "natural_width": 800,
    "natural_height": 600,
    "complete": True,
}


def build_image_bytes(
    size: Tuple[int, int] = (10, 10),
    fmt: str = "PNG",
    mode: str = "RGBA",
    alpha_pixels: Iterable[Tuple[int, int, int]] = (),
) -> bytes:
    """Solid image; alpha_pixels is a list of (x, y, alpha) overrides."""
    color = (200, 40, 40, 255) if mode == "RGBA" else (200, 40, 40)
    image = Image.new(mode, size, color)
    for x, y, alpha in alpha_pixels:
        image.putpixel((x, y), (200, 40, 40, alpha))
    buf = BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


class FakeImage:
    """Stands in for a Playwright ElementHandle of an <img>."""

    def __init__(
        self,
        complete: bool = True,
        natural_width: int = 800,
        preload_ok: bool = True,
        decode_outcome: str = "load",
        decode_event: Optional[asyncio.Event] = None,
        box: Optional[Dict[str, Any]] = None,
        fail_on: Optional[str] = None,
        **overrides: Any,
    ):
        self.data = dict(DEFAULT_IMAGE)
        self.data.update(overrides)
        self.complete = complete
        self.natural_width = natural_width
        self.preload_ok = preload_ok
        self.decode_outcome = decode_outcome
        self.decode_event = decode_event
        self.box = box
        self.fail_on = fail_on
        self.attributes: Dict[str, str] = {}
        self.preloaded: List[str] = []
        self.swaps: List[Dict[str, Any]] = []
        self.waited = 0

    @property
    def processed(self) -> bool:
        return PROCESSED_ATTRIBUTE in self.attributes

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if self.fail_on is not None and script is self.fail_on:
            raise RuntimeError("Execution context was destroyed")
        if script is DECODE_STATE_JS:
            return {"processed": self.processed, "complete": self.complete, "natural_width": self.natural_width}
        if script is WAIT_FOR_DECODE_JS:
            self.waited += 1
            if self.decode_event is not None:
                await self.decode_event.wait()
            return self.decode_outcome
        if script is SNAPSHOT_JS:
            data = dict(self.data)
            data["processed"] = self.processed
            return data
        if script is CLAIM_JS:
            if arg in self.attributes:
                return False
            self.attributes[arg] = "true"
            return True
        if script is BOX_JS:
            if self.box is not None:
                return self.box
            return {
                "style_width": "",
                "style_height": "",
                "attr_width": "",
                "attr_height": "",
                "rect_width": self.data["width"],
                "rect_height": self.data["height"],
                "srcset": self.data["srcset"] or None,
            }
        if script is PRELOAD_JS:
            self.preloaded.append(arg)
            return self.preload_ok
        if script is SWAP_JS:
            self.swaps.append(arg)
            return True
        raise AssertionError(f"unexpected script: {script[:40]}")


class FakeHandle:
    def __init__(self, element):
        self.element = element

    def as_element(self):
        return self.element


class FakePage:
    def __init__(self, images: Optional[List[FakeImage]] = None):
        self.images = images or []
        self.bindings: Dict[str, Any] = {}
        self.binding_handle_flags: Dict[str, bool] = {}
        self.init_scripts: List[str] = []
        self.listeners: Dict[str, Any] = {}

    async def expose_binding(self, name, callback, handle=False):
        self.bindings[name] = callback
        self.binding_handle_flags[name] = handle

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    def on(self, event, handler):
        self.listeners[event] = handler

    async def query_selector_all(self, selector):
        assert selector == "img"
        return list(self.images)


@pytest.fixture
def make_snapshot():
    def factory(**overrides: Any) -> ImageSnapshot:
        data = dict(DEFAULT_IMAGE)
        data.update(overrides)
        return ImageSnapshot.from_dict(data)

    return factory


@pytest.fixture
def image_bytes():
    return build_image_bytes


@pytest.fixture
def fake_image():
    return FakeImage


@pytest.fixture
def fake_page():
    return FakePage


@pytest.fixture
def fake_handle():
    return FakeHandle
