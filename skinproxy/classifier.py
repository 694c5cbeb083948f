import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .common import parse_offset
from .config import SkinConfig
from .snapshot import ImageSnapshot


ABSOLUTE_MIN_SIZE = 40
CORNER_DISTANCE = 100

UI_PATH_PATTERNS = ["/icon", "/logo", "/sprite", "/ui/", "/nav", "/menu", "/btn", "/button"]

RASTER_PATH = re.compile(r"\.(jpg|jpeg|png|webp)$", re.IGNORECASE)

# Size tiers; both dimensions must clear the bound.
LARGE_SIZE = 200
MEDIUM_SIZE = 150

CONTENT_RATIO = (1.2, 3.0)
SQUARE_RATIO = (0.8, 1.2)

VIEWPORT_WIDTH_SHARE = 0.3
VIEWPORT_HEIGHT_SHARE = 0.2


@dataclass
class Verdict:
    eligible: bool
    score: int
    reason: str


class LayoutClassifier:
    """Decides whether a rendered image is a large display image worth replacing.

    Hard rejects (too small, UI asset paths, header/nav ancestry, corner
    anchored fixed/absolute boxes) win over any score. Everything else is a
    sum of independent signed contributions compared against
    ``config.min_score``.
    """

    def __init__(self, config: Optional[SkinConfig] = None):
        self.config = config or SkinConfig()

    def classify(self, snapshot: ImageSnapshot) -> bool:
        return self.evaluate(snapshot).eligible

    def evaluate(self, snapshot: ImageSnapshot) -> Verdict:
        reason = self.hard_reject_reason(snapshot)
        if reason:
            return Verdict(eligible=False, score=0, reason=reason)
        score = self.score(snapshot)
        if score >= self.config.min_score:
            return Verdict(eligible=True, score=score, reason="eligible")
        return Verdict(eligible=False, score=score, reason="low-score")

    def hard_reject_reason(self, snapshot: ImageSnapshot) -> Optional[str]:
        width, height = snapshot.width, snapshot.height
        if width < self.config.min_width or height < self.config.min_height:
            return "too-small"
        if width < ABSOLUTE_MIN_SIZE or height < ABSOLUTE_MIN_SIZE:
            return "below-floor"

        src = snapshot.src.lower()
        if any(pattern in src for pattern in UI_PATH_PATTERNS):
            return "ui-asset"

        if snapshot.in_chrome:
            return "chrome-ancestor"

        if snapshot.position in {"fixed", "absolute"}:
            top = parse_offset(snapshot.top)
            right = parse_offset(snapshot.right)
            left = parse_offset(snapshot.left)
            if (top < CORNER_DISTANCE and left < CORNER_DISTANCE) or (top < CORNER_DISTANCE and right < CORNER_DISTANCE):
                return "corner-anchored"
        return None

    def score(self, snapshot: ImageSnapshot) -> int:
        width, height = snapshot.width, snapshot.height
        score = 0

        if width >= LARGE_SIZE and height >= LARGE_SIZE:
            score += 3
        elif width >= MEDIUM_SIZE and height >= MEDIUM_SIZE:
            score += 2
        else:
            score += 1

        aspect = snapshot.aspect_ratio
        if CONTENT_RATIO[0] <= aspect <= CONTENT_RATIO[1]:
            score += 2
        elif SQUARE_RATIO[0] <= aspect <= SQUARE_RATIO[1]:
            score += 1

        if snapshot.in_content:
            score += 2

        if width > snapshot.viewport_width * VIEWPORT_WIDTH_SHARE or height > snapshot.viewport_height * VIEWPORT_HEIGHT_SHARE:
            score += 2

        src = snapshot.src.lower()
        if RASTER_PATH.search(urlparse(src).path):
            score += 1
        if ".svg" in src:
            score -= 1

        return score
