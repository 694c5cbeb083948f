import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def now_iso() -> str:
    return datetime.now().isoformat()


def safe_filename(value: str) -> str:
    return re.sub(r"[^\w\-]", "_", value)


def write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def parse_offset(value: Optional[str]) -> int:
    # Mirrors parseInt(value) || 0 for computed style offsets ("12.5px" -> 12, "auto" -> 0).
    if not value:
        return 0
    match = _LEADING_INT.match(str(value))
    if not match:
        return 0
    return int(match.group(1))


def parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def ratio(width: float, height: float) -> float:
    if height <= 0:
        return 0.0
    return width / height


def parse_srcset(srcset: Optional[str]) -> List[Tuple[str, str]]:
    """Split a srcset attribute into (url, descriptor) pairs.

    A URL runs up to the next whitespace, so commas inside it (data: URLs)
    stay put. A trailing comma on the URL ends the entry without a
    descriptor. Descriptor whitespace is collapsed to single spaces.
    """
    entries: List[Tuple[str, str]] = []
    if not srcset:
        return entries
    pos, end = 0, len(srcset)
    while pos < end:
        while pos < end and (srcset[pos].isspace() or srcset[pos] == ","):
            pos += 1
        if pos >= end:
            break
        start = pos
        while pos < end and not srcset[pos].isspace():
            pos += 1
        url = srcset[start:pos]
        if url.endswith(","):
            entries.append((url.rstrip(","), ""))
            continue
        start = pos
        while pos < end and srcset[pos] != ",":
            pos += 1
        entries.append((url, " ".join(srcset[start:pos].split())))
    return entries
