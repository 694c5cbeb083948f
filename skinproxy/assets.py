from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from .catalog import Catalog, qualified_name
from .config import DEFAULT_ASSET_PREFIX


class CatalogAssets:
    """Serves catalog images to the page under the asset prefix.

    Requests for anything outside the catalog (or when no image folder is
    configured) answer 404, which makes the executor's preload fail and the
    original image stay in place.
    """

    def __init__(self, catalog: Catalog, root: Optional[Path], prefix: str = DEFAULT_ASSET_PREFIX):
        self.catalog = catalog
        self.root = root
        self.prefix = prefix if prefix.endswith("/") else prefix + "/"
        self.served = 0
        self.missing = 0

    @property
    def pattern(self) -> str:
        return f"**{self.prefix}**"

    async def install(self, page) -> None:
        await page.route(self.pattern, self.handle)

    def resolve(self, url: str) -> Optional[Path]:
        path = unquote(urlparse(url).path)
        idx = path.find(self.prefix)
        if idx < 0 or self.root is None:
            return None
        category, _, filename = path[idx + len(self.prefix):].partition("/")
        if not filename or "/" in filename or "\\" in filename:
            return None
        if qualified_name(category, filename) not in self.catalog:
            return None
        file_path = self.root / category / filename
        return file_path if file_path.is_file() else None

    async def handle(self, route) -> None:
        file_path = self.resolve(route.request.url)
        if file_path is None:
            self.missing += 1
            await route.fulfill(status=404, body="")
            return
        self.served += 1
        await route.fulfill(path=str(file_path))
