import asyncio
import random

import pytest

from skinproxy.catalog import Catalog
from skinproxy.classifier import LayoutClassifier
from skinproxy.executor import ReplacementExecutor
from skinproxy.pipeline import BINDING_NAME, OBSERVER_INIT_JS, ObservationPipeline
from skinproxy.selector import CategorySelector
from skinproxy.snapshot import SNAPSHOT_JS
from skinproxy.transparency import TransparencyDetector


@pytest.fixture
def make_pipeline(image_bytes):
    def factory(payload=None):
        body = payload if payload is not None else image_bytes(size=(40, 30), fmt="JPEG", mode="RGB")

        async def fetch(url):
            return body

        return ObservationPipeline(
            LayoutClassifier(),
            TransparencyDetector(fetch),
            CategorySelector(Catalog.default(), rng=random.Random(3)),
            ReplacementExecutor(),
        )

    return factory


def test_eligible_image_is_swapped(make_pipeline, fake_image):
    pipeline = make_pipeline()
    element = fake_image()
    record = asyncio.run(pipeline.evaluate_image(element))
    assert record["eligible"] is True
    assert record["category"] == "square"
    assert record["transparent"] is False
    assert record["swapped"] is True
    assert element.processed
    assert element.swaps[0]["src"].startswith("/__skin/images/square/")


def test_transparent_source_picks_transparent_category(make_pipeline, fake_image, image_bytes):
    pipeline = make_pipeline(image_bytes(alpha_pixels=[(0, 0, 0), (5, 5, 10)]))
    record = asyncio.run(pipeline.evaluate_image(fake_image(src="https://site.test/photos/cut-out.png")))
    assert record["category"] == "transparent"
    assert record["filename"].endswith(".png")


def test_ineligible_image_is_marked_but_untouched(make_pipeline, fake_image):
    pipeline = make_pipeline()
    element = fake_image(width=60, height=60)
    record = asyncio.run(pipeline.evaluate_image(element))
    assert record["eligible"] is False
    assert record["reason"] == "too-small"
    assert element.processed
    assert element.preloaded == []
    assert pipeline.selector.window.items() == []


def test_processed_once_under_duplicate_reports(make_pipeline, fake_image):
    pipeline = make_pipeline()
    element = fake_image()

    async def run():
        await asyncio.gather(*(pipeline.process_image(element) for _ in range(3)))
        await pipeline.process_image(element)

    asyncio.run(run())
    assert len(element.swaps) == 1
    assert len(pipeline.records) == 1


def test_waits_for_decode_before_evaluating(make_pipeline, fake_image):
    pipeline = make_pipeline()

    async def run():
        event = asyncio.Event()
        element = fake_image(complete=False, natural_width=0, decode_event=event)
        pipeline.schedule(element)
        for _ in range(5):
            await asyncio.sleep(0)
        assert pipeline.awaiting_decode == 1
        assert pipeline.records == []
        event.set()
        assert await pipeline.drain() == 0
        return element

    element = asyncio.run(run())
    assert element.waited == 1
    assert pipeline.awaiting_decode == 0
    assert len(pipeline.records) == 1


def test_failed_load_is_still_evaluated(make_pipeline, fake_image):
    pipeline = make_pipeline()
    element = fake_image(complete=True, natural_width=0, decode_outcome="error", width=0, height=0)
    asyncio.run(pipeline.process_image(element))
    assert element.waited == 1
    assert pipeline.records[0]["reason"] == "too-small"


def test_one_failing_image_does_not_stop_others(make_pipeline, fake_image):
    pipeline = make_pipeline()
    broken = fake_image(fail_on=SNAPSHOT_JS)
    healthy = fake_image()

    async def run():
        pipeline.schedule(broken)
        pipeline.schedule(healthy)
        await pipeline.drain()

    asyncio.run(run())
    assert len(pipeline.errors) == 1
    assert "Execution context" in pipeline.errors[0]
    assert len(healthy.swaps) == 1
    assert pipeline.summary()["swapped"] == 1


def test_stalled_decode_stays_pending_until_close(make_pipeline, fake_image):
    pipeline = make_pipeline()

    async def run():
        element = fake_image(complete=False, natural_width=0, decode_event=asyncio.Event())
        pipeline.schedule(element)
        pending = await pipeline.drain(timeout=0.05)
        cancelled = await pipeline.close()
        return pending, cancelled

    pending, cancelled = asyncio.run(run())
    assert pending == 1
    assert cancelled == 1
    assert pipeline.records == []


def test_attach_installs_binding_observer_and_sweep(make_pipeline, fake_page):
    pipeline = make_pipeline()
    page = fake_page()
    asyncio.run(pipeline.attach(page))
    assert page.binding_handle_flags[BINDING_NAME] is True
    assert page.init_scripts == [OBSERVER_INIT_JS]
    assert BINDING_NAME in OBSERVER_INIT_JS
    assert "domcontentloaded" in page.listeners


def test_sweep_and_observer_feed_the_same_entry_point(make_pipeline, fake_page, fake_image, fake_handle):
    pipeline = make_pipeline()
    first, second, added = fake_image(), fake_image(), fake_image()
    page = fake_page([first, second])

    async def run():
        await pipeline.attach(page)
        page.listeners["domcontentloaded"](page)
        page.bindings[BINDING_NAME]({"page": page}, fake_handle(added))
        page.bindings[BINDING_NAME]({"page": page}, fake_handle(None))
        await pipeline.drain()

    asyncio.run(run())
    assert pipeline.discovered == 3
    assert all(img.processed for img in (first, second, added))
    assert pipeline.summary()["evaluated"] == 3
