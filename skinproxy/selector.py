import random
from dataclasses import dataclass
from typing import Optional

from .catalog import Catalog, RecencyWindow, qualified_name
from .snapshot import ImageSnapshot


BANNER_RATIO = 2.0
WIDE_RATIO = 1.5
TALL_RATIO = 0.7

LARGE_VIEWPORT_SHARE = 0.5
LARGE_ABSOLUTE_WIDTH = 800
FULL_BLEED_SHARE = 0.8

BANNER_PARENT_RATIO = 2.5
BANNER_PARENT_SHARE = 0.7


@dataclass
class Selection:
    category: str
    filename: str

    @property
    def qualified(self) -> str:
        return qualified_name(self.category, self.filename)


def is_banner_context(snapshot: ImageSnapshot) -> bool:
    if snapshot.in_banner:
        return True
    parent_ratio = snapshot.parent_aspect_ratio
    if parent_ratio is None or snapshot.parent_width is None:
        return False
    return parent_ratio > BANNER_PARENT_RATIO and snapshot.parent_width > snapshot.viewport_width * BANNER_PARENT_SHARE


def is_banner(snapshot: ImageSnapshot) -> bool:
    aspect = snapshot.aspect_ratio
    viewport_width = snapshot.viewport_width
    is_large = snapshot.width > viewport_width * LARGE_VIEWPORT_SHARE or snapshot.width > LARGE_ABSOLUTE_WIDTH
    return (
        aspect > BANNER_RATIO
        or (aspect > WIDE_RATIO and is_large)
        or snapshot.width > viewport_width * FULL_BLEED_SHARE
        or is_banner_context(snapshot)
    )


def choose_category(snapshot: ImageSnapshot, transparent: bool) -> str:
    if transparent:
        return "transparent"
    if is_banner(snapshot):
        return "wide"
    aspect = snapshot.aspect_ratio
    if aspect > WIDE_RATIO:
        return "wide"
    if aspect < TALL_RATIO:
        return "tall"
    return "square"


class CategorySelector:
    """Maps a source image to a category and draws a replacement from it.

    Draws skip anything still in the recency window unless that would leave
    the category empty, in which case the whole category is eligible again.
    """

    def __init__(
        self,
        catalog: Catalog,
        window: Optional[RecencyWindow] = None,
        rng: Optional[random.Random] = None,
        verbose: bool = False,
    ):
        self.catalog = catalog
        self.window = window if window is not None else RecencyWindow()
        self.rng = rng or random.Random()
        self.verbose = verbose

    def draw(self, category: str) -> Selection:
        members = self.catalog.files(category)
        available = [f for f in members if qualified_name(category, f) not in self.window]
        candidates = available or list(members)
        filename = self.rng.choice(candidates)
        selection = Selection(category=category, filename=filename)
        self.window.push(selection.qualified)
        return selection

    def select(self, snapshot: ImageSnapshot, transparent: bool) -> Selection:
        selection = self.draw(choose_category(snapshot, transparent))
        if self.verbose:
            print(f"   🎯 Selected {selection.qualified} (recent: {', '.join(self.window.items())})")
        return selection
