import asyncio
from typing import Any, Dict, List, Optional, Set

from .classifier import LayoutClassifier
from .executor import ReplacementExecutor
from .selector import CategorySelector
from .snapshot import PROCESSED_ATTRIBUTE, take_snapshot
from .transparency import TransparencyDetector


BINDING_NAME = "__skinImageAdded"

# Installed on every document of the top frame; reports each <img> that is
# inserted after load, including images nested in inserted containers.
OBSERVER_INIT_JS = """(() => {
    if (window.top !== window || window.__skinObserverInstalled) return;
    window.__skinObserverInstalled = true;
    const report = img => {
        try { window.__skinImageAdded(img); } catch (e) {}
    };
    const start = () => {
        const observer = new MutationObserver(mutations => {
            mutations.forEach(mutation => {
                mutation.addedNodes.forEach(node => {
                    if (node.nodeType !== 1) return;
                    if (node.tagName === 'IMG') {
                        report(node);
                    } else if (node.querySelectorAll) {
                        node.querySelectorAll('img').forEach(report);
                    }
                });
            });
        });
        observer.observe(document.body || document.documentElement, { childList: true, subtree: true });
    };
    if (document.readyState === 'loading') {
        document.addEventListener('DOMContentLoaded', start);
    } else {
        start();
    }
})();"""

DECODE_STATE_JS = """(img, marker) => ({
    processed: img.hasAttribute(marker),
    complete: !!img.complete,
    natural_width: img.naturalWidth || 0,
})"""

# A complete image with a source but no pixels already failed; its error
# event will not fire again. A complete image without any source is still
# waiting for one (lazy loaders) and keeps listening.
WAIT_FOR_DECODE_JS = """img => new Promise(resolve => {
    if (img.complete && img.naturalWidth > 0) {
        resolve('load');
        return;
    }
    if (img.complete && (img.currentSrc || img.getAttribute('src'))) {
        resolve('error');
        return;
    }
    img.addEventListener('load', () => resolve('load'), { once: true });
    img.addEventListener('error', () => resolve('error'), { once: true });
})"""

CLAIM_JS = """(img, marker) => {
    if (img.hasAttribute(marker)) return false;
    img.setAttribute(marker, 'true');
    return true;
}"""


class ObservationPipeline:
    """Drives every <img> on a page through classify -> select -> swap once.

    Each image runs as its own asyncio task: wait for load or error, take a
    layout snapshot, classify, mark the element as processed, then (when
    eligible) test transparency, pick a replacement and apply it. Failures
    stay inside the image's task and are collected in ``errors``.
    """

    def __init__(
        self,
        classifier: LayoutClassifier,
        detector: TransparencyDetector,
        selector: CategorySelector,
        executor: ReplacementExecutor,
        verbose: bool = False,
    ):
        self.classifier = classifier
        self.detector = detector
        self.selector = selector
        self.executor = executor
        self.verbose = verbose

        self.tasks: Set[asyncio.Future] = set()
        self.records: List[Dict[str, Any]] = []
        self.errors: List[str] = []
        self.discovered = 0
        self.awaiting_decode = 0

    async def attach(self, page) -> None:
        await page.expose_binding(BINDING_NAME, self.on_image_added, handle=True)
        await page.add_init_script(OBSERVER_INIT_JS)
        page.on("domcontentloaded", self.on_domcontentloaded)

    def on_image_added(self, source, handle) -> None:
        element = handle.as_element() if handle else None
        if element is None:
            return
        self.schedule(element)

    def on_domcontentloaded(self, page) -> None:
        self.spawn(self.sweep(page))

    def spawn(self, coro) -> asyncio.Future:
        task = asyncio.ensure_future(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def schedule(self, element) -> asyncio.Future:
        self.discovered += 1
        return self.spawn(self.run_guarded(element))

    async def sweep(self, page) -> int:
        try:
            images = await page.query_selector_all("img")
        except Exception as exc:
            self.errors.append(f"sweep: {exc}")
            return 0
        for element in images:
            self.schedule(element)
        if self.verbose:
            print(f"🔎 Sweep found {len(images)} images")
        return len(images)

    async def run_guarded(self, element) -> None:
        try:
            await self.process_image(element)
        except Exception as exc:
            self.errors.append(f"image: {exc}")
            if self.verbose:
                print(f"   ⚠️  Image pipeline failed: {exc}")

    async def process_image(self, element) -> None:
        state = await element.evaluate(DECODE_STATE_JS, PROCESSED_ATTRIBUTE)
        if state.get("processed"):
            return
        if not (state.get("complete") and state.get("natural_width", 0) > 0):
            # No timeout: an image that never fires load or error stays here.
            self.awaiting_decode += 1
            try:
                await element.evaluate(WAIT_FOR_DECODE_JS)
            finally:
                self.awaiting_decode -= 1
        await self.evaluate_image(element)

    async def evaluate_image(self, element) -> Optional[Dict[str, Any]]:
        snapshot = await take_snapshot(element)
        if snapshot.processed:
            return None
        verdict = self.classifier.evaluate(snapshot)
        claimed = await element.evaluate(CLAIM_JS, PROCESSED_ATTRIBUTE)
        if not claimed:
            return None

        record: Dict[str, Any] = {
            "src": snapshot.src[:300],
            "width": round(snapshot.width, 1),
            "height": round(snapshot.height, 1),
            "score": verdict.score,
            "reason": verdict.reason,
            "eligible": verdict.eligible,
        }
        self.records.append(record)
        if self.verbose:
            print(f"🖼️  {snapshot.src[:80]} {snapshot.width:.0f}x{snapshot.height:.0f} score={verdict.score} ({verdict.reason})")
        if not verdict.eligible:
            return record

        transparent = await self.detector.has_transparency(snapshot.src, snapshot.srcset, snapshot.base_url)
        selection = self.selector.select(snapshot, transparent)
        swapped = await self.executor.apply(element, selection.category, selection.filename)
        record.update({
            "transparent": transparent,
            "category": selection.category,
            "filename": selection.filename,
            "swapped": swapped,
        })
        return record

    async def drain(self, timeout: Optional[float] = None) -> int:
        """Wait for in-flight images; returns how many are still pending."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            pending = [t for t in self.tasks if not t.done()]
            if not pending:
                return 0
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return len(pending)
            await asyncio.wait(pending, timeout=remaining)

    async def close(self) -> int:
        pending = [t for t in self.tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)

    def summary(self) -> Dict[str, Any]:
        eligible = [r for r in self.records if r.get("eligible")]
        categories: Dict[str, int] = {}
        for r in eligible:
            if r.get("swapped"):
                categories[r["category"]] = categories.get(r["category"], 0) + 1
        return {
            "discovered": self.discovered,
            "evaluated": len(self.records),
            "eligible": len(eligible),
            "swapped": sum(categories.values()),
            "by_category": categories,
            "recent": self.selector.window.items(),
            "errors": len(self.errors),
        }
