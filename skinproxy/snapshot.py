from dataclasses import dataclass
from typing import Any, Dict, Optional

from .common import ratio


PROCESSED_ATTRIBUTE = "data-proxy-processed"

CHROME_SELECTOR = "header, nav, .header, .nav, .navbar, .navigation, .menu"

CONTENT_SELECTOR = 'main, article, section, .content, .post, .product, .gallery, .hero, [role="main"]'

BANNER_SELECTORS = [
    ".hero",
    ".banner",
    ".header-image",
    ".cover",
    ".featured-image",
    ".hero-section",
    ".banner-section",
    ".jumbotron",
    ".masthead",
    '[class*="hero"]',
    '[class*="banner"]',
    '[class*="cover"]',
]

SNAPSHOT_JS = """(img, selectors) => {
    const rect = img.getBoundingClientRect();
    const style = window.getComputedStyle(img);
    const parent = img.parentElement;
    const parentRect = parent ? parent.getBoundingClientRect() : null;
    return {
        width: rect.width,
        height: rect.height,
        x: rect.left,
        y: rect.top,
        src: img.src || '',
        srcset: img.getAttribute('srcset') || '',
        base_url: document.baseURI || '',
        position: style.position,
        top: style.top,
        right: style.right,
        bottom: style.bottom,
        left: style.left,
        in_chrome: !!img.closest(selectors.chrome),
        in_content: !!img.closest(selectors.content),
        in_banner: selectors.banner.some(sel => !!img.closest(sel)),
        parent_width: parentRect ? parentRect.width : null,
        parent_height: parentRect ? parentRect.height : null,
        viewport_width: window.innerWidth,
        viewport_height: window.innerHeight,
        natural_width: img.naturalWidth || 0,
        natural_height: img.naturalHeight || 0,
        complete: !!img.complete,
        processed: img.hasAttribute(selectors.marker),
    };
}"""

SNAPSHOT_SELECTORS = {
    "chrome": CHROME_SELECTOR,
    "content": CONTENT_SELECTOR,
    "banner": BANNER_SELECTORS,
    "marker": PROCESSED_ATTRIBUTE,
}


@dataclass
class ImageSnapshot:
    """Everything the classifier and selector read from one rendered <img>."""

    width: float
    height: float
    src: str = ""
    srcset: str = ""
    base_url: str = ""
    x: float = 0.0
    y: float = 0.0
    position: str = "static"
    top: str = "auto"
    right: str = "auto"
    bottom: str = "auto"
    left: str = "auto"
    in_chrome: bool = False
    in_content: bool = False
    in_banner: bool = False
    parent_width: Optional[float] = None
    parent_height: Optional[float] = None
    viewport_width: int = 1440
    viewport_height: int = 900
    natural_width: int = 0
    natural_height: int = 0
    complete: bool = True
    processed: bool = False

    @property
    def aspect_ratio(self) -> float:
        return ratio(self.width, self.height)

    @property
    def parent_aspect_ratio(self) -> Optional[float]:
        if self.parent_width is None or self.parent_height is None:
            return None
        return ratio(self.parent_width, self.parent_height)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageSnapshot":
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


async def take_snapshot(element) -> ImageSnapshot:
    data = await element.evaluate(SNAPSHOT_JS, SNAPSHOT_SELECTORS)
    return ImageSnapshot.from_dict(data)
