#!/usr/bin/env python3
"""
Image Skin - Session Runner
Loads a target page in Chromium via Playwright and swaps its large display
images for catalog images while the page is open.
"""

import argparse
import asyncio
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright, Browser

from .assets import CatalogAssets
from .catalog import Catalog, CatalogError, RecencyWindow
from .classifier import LayoutClassifier
from .common import ensure_dir, now_iso, safe_filename, write_json
from .config import DEFAULT_ASSET_PREFIX, SkinConfig
from .executor import ReplacementExecutor
from .pipeline import ObservationPipeline
from .selector import CategorySelector
from .transparency import TransparencyDetector, page_fetcher


DEFAULT_VIEWPORT = {"width": 1440, "height": 900}

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

# Shutdown grace period for images still in flight once the watch window ends.
DRAIN_TIMEOUT_S = 10.0


def parse_viewport(raw: Optional[str]) -> Dict[str, int]:
    if not raw or "x" not in raw.lower():
        return dict(DEFAULT_VIEWPORT)
    width_str, height_str = raw.lower().split("x", 1)
    try:
        return {"width": int(width_str), "height": int(height_str)}
    except ValueError:
        return dict(DEFAULT_VIEWPORT)


def load_catalog(images_dir: Optional[Path]) -> Catalog:
    if images_dir and images_dir.is_dir():
        return Catalog.from_directory(images_dir)
    return Catalog.default()


class ImageSkinner:
    def __init__(
        self,
        url: str,
        output_dir: str,
        config: Optional[SkinConfig] = None,
        images_dir: Optional[str] = None,
        viewport: Optional[Dict[str, int]] = None,
        watch_seconds: float = 5.0,
        headed: bool = False,
        screenshot: bool = False,
        seed: Optional[int] = None,
        asset_prefix: str = DEFAULT_ASSET_PREFIX,
        verbose: bool = False,
    ):
        self.url = url
        self.config = config or SkinConfig.from_url(url)
        self.viewport = viewport or dict(DEFAULT_VIEWPORT)
        self.watch_seconds = watch_seconds
        self.headed = headed
        self.screenshot = screenshot
        self.verbose = verbose

        self.output_dir = Path(output_dir)
        self.screenshots_dir = self.output_dir / "screenshots"
        for path in [self.output_dir, self.screenshots_dir]:
            ensure_dir(path)

        self.images_dir = Path(images_dir) if images_dir else None
        self.catalog = load_catalog(self.images_dir)
        self.assets = CatalogAssets(
            self.catalog,
            self.images_dir if self.images_dir and self.images_dir.is_dir() else None,
            prefix=asset_prefix,
        )
        self.selector = CategorySelector(
            self.catalog,
            window=RecencyWindow(),
            rng=random.Random(seed),
            verbose=verbose,
        )
        self.classifier = LayoutClassifier(self.config)
        self.executor = ReplacementExecutor(asset_prefix=asset_prefix, verbose=verbose)

        self.pipeline: Optional[ObservationPipeline] = None
        self.limits: List[str] = []
        self.screenshot_paths: List[str] = []
        self.started_at = now_iso()

    async def run(self) -> Dict[str, Any]:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=not self.headed)
            try:
                await self.skin_page(browser)
            finally:
                await browser.close()

        report = self.build_report()
        report_path = self.output_dir / "report.json"
        write_json(report_path, report)

        summary = report["summary"]
        print("\n✅ Skin session complete")
        print(f"Images evaluated: {summary.get('evaluated', 0)}, replaced: {summary.get('swapped', 0)}")
        print(f"Report: {report_path}")
        return report

    async def skin_page(self, browser: Browser) -> None:
        stage = "init"
        context = await browser.new_context(
            viewport=self.viewport,
            device_scale_factor=1,
            user_agent=USER_AGENT,
        )
        page = await context.new_page()
        detector = TransparencyDetector(page_fetcher(page), verbose=self.verbose)
        self.pipeline = ObservationPipeline(
            self.classifier,
            detector,
            self.selector,
            self.executor,
            verbose=self.verbose,
        )

        try:
            stage = "routes"
            await self.assets.install(page)
            stage = "attach"
            await self.pipeline.attach(page)

            stage = "goto"
            print(f"🌐 Loading {self.url}")
            await page.goto(self.url, wait_until="domcontentloaded", timeout=60000)
            try:
                stage = "wait_networkidle"
                await page.wait_for_load_state("networkidle", timeout=15000)
            except Exception:
                self.limits.append("Network did not go idle within 15s")

            stage = "watch"
            print(f"👀 Watching for images for {self.watch_seconds:g}s")
            await page.wait_for_timeout(self.watch_seconds * 1000)

            stage = "drain"
            pending = await self.pipeline.drain(timeout=DRAIN_TIMEOUT_S)
            if pending:
                self.limits.append(f"{pending} images still waiting for load/error at shutdown")

            if self.screenshot:
                stage = "screenshot"
                # Let the cross-fade finish.
                await page.wait_for_timeout(500)
                await self.capture(page, "skinned")
        except Exception as exc:
            self.limits.append(f"Skin session failed at {stage}: {exc}")
            print(f"❌ Failed at {stage}: {exc}")
        finally:
            await self.pipeline.close()
            await context.close()

    async def capture(self, page, label: str) -> None:
        path = self.screenshots_dir / f"{safe_filename(label)}.png"
        await page.screenshot(path=str(path), full_page=True)
        self.screenshot_paths.append(str(path.relative_to(self.output_dir)))

    def build_report(self) -> Dict[str, Any]:
        pipeline = self.pipeline
        return {
            "url": self.url,
            "started_at": self.started_at,
            "finished_at": now_iso(),
            "viewport": self.viewport,
            "config": {
                "aggressive": self.config.aggressive,
                "min_score": self.config.min_score,
                "min_width": self.config.min_width,
                "min_height": self.config.min_height,
            },
            "catalog": {
                "source": str(self.assets.root) if self.assets.root else "default",
                "size": len(self.catalog),
                "served": self.assets.served,
                "missing": self.assets.missing,
            },
            "summary": pipeline.summary() if pipeline else {},
            "images": pipeline.records if pipeline else [],
            "errors": pipeline.errors if pipeline else [],
            "screenshots": self.screenshot_paths,
            "notes": self.limits,
        }


async def main_async(args: argparse.Namespace) -> None:
    config = SkinConfig.from_url(args.url).with_overrides(
        aggressive=args.aggressive,
        min_score=args.min_score,
        min_width=args.min_width,
        min_height=args.min_height,
    )
    skinner = ImageSkinner(
        url=args.url,
        output_dir=args.output,
        config=config,
        images_dir=args.images,
        viewport=parse_viewport(args.viewport),
        watch_seconds=args.watch,
        headed=args.headed,
        screenshot=args.screenshot,
        seed=args.seed,
        asset_prefix=args.asset_prefix,
        verbose=args.verbose,
    )
    if skinner.assets.root is None:
        print("⚠️  No image folder found; replacements will fail to preload and pages stay untouched")
    await skinner.run()


def main() -> None:
    parser = argparse.ArgumentParser(description="Replace large display images on a web page with catalog images")
    parser.add_argument("url", help="Target page URL (may carry aggressive/minScore/minWidth/minHeight query options)")
    parser.add_argument("--images", "-i", default="./images", help="Folder with wide/, tall/, square/ and transparent/ subfolders")
    parser.add_argument("--output", "-o", default="./skin-output", help="Output directory for the report and screenshots")
    parser.add_argument("--viewport", help="Viewport size, e.g. 1440x900")
    parser.add_argument("--aggressive", action="store_true", help="Lower score and size thresholds to replace more images")
    parser.add_argument("--min-score", type=int, help="Minimum classification score")
    parser.add_argument("--min-width", type=int, help="Minimum rendered width in px")
    parser.add_argument("--min-height", type=int, help="Minimum rendered height in px")
    parser.add_argument("--watch", type=float, default=5.0, help="Seconds to keep observing the page for new images")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--screenshot", action="store_true", help="Save a full-page screenshot of the skinned page")
    parser.add_argument("--seed", type=int, help="Seed for replacement selection")
    parser.add_argument("--asset-prefix", default=DEFAULT_ASSET_PREFIX, help="URL path prefix the catalog images are served under")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print per-image diagnostics")

    args = parser.parse_args()
    try:
        asyncio.run(main_async(args))
    except (CatalogError, ValueError) as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
