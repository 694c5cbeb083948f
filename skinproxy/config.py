from dataclasses import dataclass, replace
from typing import Optional
from urllib.parse import parse_qs, urlparse

from .common import parse_int


DEFAULT_MIN_SCORE = 3
DEFAULT_MIN_WIDTH = 120
DEFAULT_MIN_HEIGHT = 120

AGGRESSIVE_MIN_SCORE = 2
AGGRESSIVE_MIN_WIDTH = 80
AGGRESSIVE_MIN_HEIGHT = 80

DEFAULT_ASSET_PREFIX = "/__skin/images/"


@dataclass(frozen=True)
class SkinConfig:
    aggressive: bool = False
    min_score: int = DEFAULT_MIN_SCORE
    min_width: int = DEFAULT_MIN_WIDTH
    min_height: int = DEFAULT_MIN_HEIGHT

    @classmethod
    def aggressive_mode(cls) -> "SkinConfig":
        return cls(
            aggressive=True,
            min_score=AGGRESSIVE_MIN_SCORE,
            min_width=AGGRESSIVE_MIN_WIDTH,
            min_height=AGGRESSIVE_MIN_HEIGHT,
        )

    @classmethod
    def from_url(cls, url: str) -> "SkinConfig":
        """Read the skin options carried in a page URL's query string.

        ``aggressive=true`` switches every threshold to its aggressive value;
        ``minScore``, ``minWidth`` and ``minHeight`` override individual
        thresholds afterwards. Unparseable values are ignored.
        """
        params = parse_qs(urlparse(url).query)

        def first(name: str) -> Optional[str]:
            values = params.get(name)
            return values[0] if values else None

        def number(name: str) -> Optional[int]:
            value = parse_int(first(name))
            return value if value is not None and value >= 0 else None

        config = cls.aggressive_mode() if first("aggressive") == "true" else cls()
        return config.with_overrides(
            min_score=number("minScore"),
            min_width=number("minWidth"),
            min_height=number("minHeight"),
        )

    def with_overrides(
        self,
        aggressive: Optional[bool] = None,
        min_score: Optional[int] = None,
        min_width: Optional[int] = None,
        min_height: Optional[int] = None,
    ) -> "SkinConfig":
        config = self
        if aggressive and not config.aggressive:
            base = SkinConfig.aggressive_mode()
            # Thresholds already moved away from the defaults survive the switch.
            config = replace(
                base,
                min_score=base.min_score if config.min_score == DEFAULT_MIN_SCORE else config.min_score,
                min_width=base.min_width if config.min_width == DEFAULT_MIN_WIDTH else config.min_width,
                min_height=base.min_height if config.min_height == DEFAULT_MIN_HEIGHT else config.min_height,
            )
        if min_score is not None:
            config = replace(config, min_score=min_score)
        if min_width is not None:
            if min_width < 0:
                raise ValueError(f"min_width must be non-negative, got {min_width}")
            config = replace(config, min_width=min_width)
        if min_height is not None:
            if min_height < 0:
                raise ValueError(f"min_height must be non-negative, got {min_height}")
            config = replace(config, min_height=min_height)
        return config
