"""Tests for the blocking and future-based analysis API."""

import queue
import threading

import numpy as np
import pytest

from food_imaging.processing.image_buffer import ImageBuffer
from food_imaging.processing.pipeline import KernelPipeline
from food_imaging.processing.results import AdvancedFoodAnalysis, EdgeMap, FreshnessAnalysis
from food_imaging.services.analysis_service import CancellationToken, FoodImageAnalyzer
from food_imaging.utils.errors import AcceleratorUnavailable, AnalysisCancelled, InvalidImage

TIMEOUT = 10


class TestBlockingAPI:

    def test_enhance(self, analyzer, sample_image_uint8):
        result = analyzer.enhance(sample_image_uint8)
        assert isinstance(result, ImageBuffer)
        assert result.size == (100, 100)
        assert result.pixels.min() >= 0.0 and result.pixels.max() <= 1.0

    def test_analyze_food(self, analyzer, solid_red):
        result = analyzer.analyze_food(solid_red)
        assert isinstance(result, AdvancedFoodAnalysis)
        assert result.freshness_score == pytest.approx(0.8, abs=1e-6)
        assert result.processing_time >= 0.0

    def test_detect_freshness(self, analyzer, sample_image_uint8):
        result = analyzer.detect_freshness(sample_image_uint8)
        assert isinstance(result, FreshnessAnalysis)
        assert 0.0 <= result.freshness_score <= 1.0
        assert len(result.indicators) == 3

    def test_detect_edges(self, analyzer, sample_image_uint8):
        result = analyzer.detect_edges(sample_image_uint8)
        assert isinstance(result, EdgeMap)
        assert (result.width, result.height) == (100, 100)
        # quadrant borders are edges, quadrant interiors are flat
        assert result.strength[25, 25] == pytest.approx(0.0, abs=1e-6)
        assert result.strength[25, 49] > 0.0

    def test_empty_image(self, analyzer):
        with pytest.raises(InvalidImage):
            analyzer.detect_edges(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_cancelled_token(self, analyzer, solid_red):
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(AnalysisCancelled):
            analyzer.enhance(solid_red, token=token)


class TestSubmit:

    def test_future_result(self, analyzer, solid_red):
        future = analyzer.submit("detect_freshness", solid_red)
        assert isinstance(future.result(timeout=TIMEOUT), FreshnessAnalysis)

    @pytest.mark.parametrize("operation", FoodImageAnalyzer.OPERATIONS)
    def test_callback_receives_result(self, analyzer, random_image, operation):
        done = threading.Event()
        received = {}

        def callback(result, error):
            received["result"], received["error"] = result, error
            done.set()

        analyzer.submit(operation, random_image, callback=callback)
        assert done.wait(TIMEOUT)
        assert received["error"] is None
        assert received["result"] is not None

    def test_callback_receives_error(self, analyzer):
        done = threading.Event()
        received = {}

        def callback(result, error):
            received["result"], received["error"] = result, error
            done.set()

        future = analyzer.submit("enhance", np.zeros((0, 4, 4)), callback=callback)
        assert done.wait(TIMEOUT)
        assert received["result"] is None
        assert isinstance(received["error"], InvalidImage)
        assert isinstance(future.exception(timeout=TIMEOUT), InvalidImage)

    def test_deliver_marshals_to_caller_thread(self, analyzer, solid_red):
        pending = queue.Queue()
        seen = []

        def callback(result, error):
            seen.append((threading.current_thread(), result, error))

        analyzer.submit("detect_edges", solid_red, callback=callback, deliver=pending.put)
        invoke = pending.get(timeout=TIMEOUT)
        assert seen == []
        invoke()

        thread, result, error = seen[0]
        assert thread is threading.current_thread()
        assert isinstance(result, EdgeMap)
        assert error is None

    def test_cancelled_token(self, analyzer, solid_red):
        token = CancellationToken()
        token.cancel()
        future = analyzer.submit("analyze_food", solid_red, token=token)
        with pytest.raises(AnalysisCancelled):
            future.result(timeout=TIMEOUT)

    def test_cancel_queued_future(self, host_pipeline, solid_red, monkeypatch):
        analyzer = FoodImageAnalyzer(host_pipeline, max_workers=1)
        release = threading.Event()
        started = threading.Event()

        def blocking_enhance(pixels, token=None):
            started.set()
            release.wait(TIMEOUT)
            return "first"

        monkeypatch.setattr(analyzer, "enhance", blocking_enhance)
        received = []
        try:
            first = analyzer.submit("enhance", solid_red)
            assert started.wait(TIMEOUT)
            second = analyzer.submit("detect_edges", solid_red,
                                     callback=lambda r, e: received.append((r, e)))
            assert second.cancel()
            assert received and received[0][0] is None
            assert isinstance(received[0][1], AnalysisCancelled)
        finally:
            release.set()
            analyzer.shutdown()
        assert first.result(timeout=TIMEOUT) == "first"

    def test_unknown_operation(self, analyzer, solid_red):
        with pytest.raises(ValueError):
            analyzer.submit("segment", solid_red)

    def test_unavailable_accelerator(self, solid_red):
        done = threading.Event()
        received = {}

        def callback(result, error):
            received["error"] = error
            done.set()

        with FoodImageAnalyzer(KernelPipeline(backends=("bogus",))) as analyzer:
            analyzer.submit("detect_freshness", solid_red, callback=callback)
            assert done.wait(TIMEOUT)
        assert isinstance(received["error"], AcceleratorUnavailable)


def test_concurrent_requests(analyzer, random_image):
    """Many in-flight requests all complete and agree."""
    futures = [analyzer.submit("detect_freshness", random_image) for _ in range(10)]
    scores = {f.result(timeout=TIMEOUT).freshness_score for f in futures}
    assert len(scores) == 1
