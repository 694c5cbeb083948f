from collections import deque
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple


CATEGORIES = ("wide", "tall", "square", "transparent")

RASTER_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}

DEFAULT_RECENT_HISTORY = 3

DEFAULT_CATEGORIES = {
    # Hero sections, banners
    "wide": [
        "deadpool-14.jpg",
        "deadpool-15.jpg",
        "deadpool-16.jpg",
        "deadpool-17.jpg",
        "deadpool-18.jpg",
    ],
    "tall": [
        "deadpool-6.jpg",
        "deadpool-7.jpg",
        "deadpool-8.jpg",
    ],
    "square": [
        "deadpool-1.jpg",
        "deadpool-2.jpg",
        "deadpool-3.jpg",
        "deadpool-4.jpg",
        "deadpool-5.jpg",
    ],
    # Logos, icons, overlays
    "transparent": [
        "deadpool-9.png",
        "deadpool-10.png",
        "deadpool-11.png",
        "deadpool-12.png",
        "deadpool-13.png",
    ],
}


class CatalogError(ValueError):
    pass


def qualified_name(category: str, filename: str) -> str:
    return f"{category}/{filename}"


class Catalog:
    """Read-only mapping of replacement category to candidate filenames."""

    def __init__(self, categories: Mapping[str, Iterable[str]]):
        frozen: Dict[str, Tuple[str, ...]] = {}
        owners: Dict[str, str] = {}
        for name in CATEGORIES:
            files = tuple(categories.get(name, ()))
            if not files:
                raise CatalogError(f"Category '{name}' has no replacement images")
            for filename in files:
                if filename in owners and owners[filename] != name:
                    raise CatalogError(f"'{filename}' is listed under both '{owners[filename]}' and '{name}'")
                owners[filename] = name
            frozen[name] = files
        unknown = set(categories) - set(CATEGORIES)
        if unknown:
            raise CatalogError(f"Unknown categories: {', '.join(sorted(unknown))}")
        self._categories = MappingProxyType(frozen)

    @classmethod
    def default(cls) -> "Catalog":
        return cls(DEFAULT_CATEGORIES)

    @classmethod
    def from_directory(cls, root: Path) -> "Catalog":
        categories: Dict[str, List[str]] = {}
        for name in CATEGORIES:
            folder = root / name
            if not folder.is_dir():
                raise CatalogError(f"Missing category folder: {folder}")
            categories[name] = sorted(
                p.name for p in folder.iterdir()
                if p.is_file() and p.suffix.lower() in RASTER_EXTENSIONS
            )
        return cls(categories)

    @property
    def categories(self) -> Mapping[str, Tuple[str, ...]]:
        return self._categories

    def files(self, category: str) -> Tuple[str, ...]:
        return self._categories[category]

    def __contains__(self, qualified: str) -> bool:
        category, _, filename = qualified.partition("/")
        return filename in self._categories.get(category, ())

    def __len__(self) -> int:
        return sum(len(files) for files in self._categories.values())


class RecencyWindow:
    """FIFO of the most recently chosen qualified names; oldest falls out first."""

    def __init__(self, capacity: int = DEFAULT_RECENT_HISTORY, items: Iterable[str] = ()):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items = deque(items, maxlen=capacity)

    def push(self, qualified: str) -> None:
        self._items.append(qualified)

    def items(self) -> List[str]:
        return list(self._items)

    def __contains__(self, qualified: str) -> bool:
        return qualified in self._items

    def __len__(self) -> int:
        return len(self._items)
