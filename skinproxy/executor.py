import re
from typing import Any, Dict

from .common import parse_srcset
from .config import DEFAULT_ASSET_PREFIX


FADE_DELAY_MS = 100
FADE_TRANSITION = "opacity 0.3s ease"

CONTAIN_CATEGORIES = {"transparent"}

_BARE_NUMBER = re.compile(r"^\d+(\.\d+)?$")

BOX_JS = """img => {
    const rect = img.getBoundingClientRect();
    return {
        style_width: img.style.width || '',
        style_height: img.style.height || '',
        attr_width: img.getAttribute('width') || '',
        attr_height: img.getAttribute('height') || '',
        rect_width: rect.width,
        rect_height: rect.height,
        srcset: img.getAttribute('srcset'),
    };
}"""

PRELOAD_JS = """(img, src) => new Promise(resolve => {
    const loader = new Image();
    loader.onload = () => resolve(true);
    loader.onerror = () => resolve(false);
    loader.src = src;
})"""

SWAP_JS = """(img, opts) => {
    img.src = opts.src;
    if (opts.srcset !== null) {
        img.setAttribute('srcset', opts.srcset);
    }
    if (img.hasAttribute('sizes')) {
        img.removeAttribute('sizes');
    }
    img.style.width = opts.width;
    img.style.height = opts.height;
    img.style.objectFit = opts.fit;
    img.style.objectPosition = 'center';
    img.style.transition = opts.transition;
    img.style.opacity = '0';
    setTimeout(() => { img.style.opacity = '1'; }, opts.delay);
    return true;
}"""


def rewrite_srcset(srcset: str, new_src: str) -> str:
    """Point every srcset entry at new_src, keeping each descriptor token."""
    return ", ".join(
        f"{new_src} {descriptor}" if descriptor else new_src
        for _, descriptor in parse_srcset(srcset)
    )


def css_length(style_value: str, attr_value: str, rendered: float) -> str:
    if style_value:
        return style_value
    if attr_value:
        return f"{attr_value}px" if _BARE_NUMBER.match(attr_value.strip()) else attr_value
    return f"{rendered}px"


def fit_mode(category: str) -> str:
    return "contain" if category in CONTAIN_CATEGORIES else "cover"


class ReplacementExecutor:
    def __init__(self, asset_prefix: str = DEFAULT_ASSET_PREFIX, verbose: bool = False):
        self.asset_prefix = asset_prefix if asset_prefix.endswith("/") else asset_prefix + "/"
        self.verbose = verbose

    def target_path(self, category: str, filename: str) -> str:
        return f"{self.asset_prefix}{category}/{filename}"

    async def apply(self, element, category: str, filename: str) -> bool:
        new_src = self.target_path(category, filename)
        box: Dict[str, Any] = await element.evaluate(BOX_JS)

        loaded = await element.evaluate(PRELOAD_JS, new_src)
        if not loaded:
            if self.verbose:
                print(f"   ⚠️  Preload failed for {new_src}, keeping original")
            return False

        srcset = box.get("srcset")
        await element.evaluate(SWAP_JS, {
            "src": new_src,
            "srcset": rewrite_srcset(srcset, new_src) if srcset else None,
            "width": css_length(box.get("style_width") or "", box.get("attr_width") or "", box.get("rect_width") or 0),
            "height": css_length(box.get("style_height") or "", box.get("attr_height") or "", box.get("rect_height") or 0),
            "fit": fit_mode(category),
            "transition": FADE_TRANSITION,
            "delay": FADE_DELAY_MS,
        })
        if self.verbose:
            print(f"   ✨ Swapped in {new_src} (object-fit: {fit_mode(category)})")
        return True
