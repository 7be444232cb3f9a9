"""
Unit Tests: Observability

Tests:
    - Counter / Gauge / Histogram and Prometheus export
    - Metrics toggle (shared versus private collector)
    - JSON log formatting with transfer context
    - Progress event fan-out
"""

import io
import json
import logging

import pytest

from objectmesh.core.config import TransferConfig
from objectmesh.observability.logging import (
    ContextFilter,
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    current_context,
)
from objectmesh.observability.metrics import MetricsCollector, TransferMetrics, collector_for
from objectmesh.observability.progress import (
    CallbackProgressListener,
    ProgressEvent,
    ProgressEventType,
    RecordingProgressListener,
    publish_progress,
)
from objectmesh.storage.memory import InMemoryObjectStore
from objectmesh.transfer.download import Downloader


class TestMetrics:
    """Tests for the metrics registry."""

    def test_counter(self):
        collector = MetricsCollector()
        counter = collector.counter("requests_total", ("method",))
        counter.inc(method="GET")
        counter.inc(2, method="GET")
        assert counter.get(method="GET") == 3
        assert counter.get(method="PUT") == 0
        with pytest.raises(ValueError):
            counter.inc(-1, method="GET")

    def test_get_or_create(self):
        collector = MetricsCollector()
        assert collector.gauge("g") is collector.gauge("g")

    def test_histogram(self):
        collector = MetricsCollector()
        histogram = collector.histogram("latency", buckets=[0.1, 1.0])
        histogram.observe(0.05)
        histogram.observe(0.5)
        histogram.observe(5.0)
        (data,) = list(histogram.collect())
        assert data["count"] == 3
        assert data["buckets"] == [(0.1, 1), (1.0, 2), (float("inf"), 3)]

    def test_export_prometheus(self):
        collector = MetricsCollector()
        metrics = TransferMetrics(collector)
        metrics.part_done("download", 100, 0.2)
        metrics.part_failed("upload")
        metrics.inflight.inc(direction="download")

        text = collector.export_prometheus()

        assert 'transfer_parts_total{direction="download",outcome="ok"} 1.0' in text
        assert 'transfer_parts_total{direction="upload",outcome="error"} 1.0' in text
        assert 'transfer_bytes_total{direction="download"} 100.0' in text
        assert 'transfer_part_seconds_bucket{le="0.25",direction="download"} 1' in text
        assert 'transfer_part_seconds_count{direction="download"} 1' in text
        assert 'transfer_inflight{direction="download"} 1.0' in text

    def test_singleton(self):
        assert MetricsCollector.get_instance() is MetricsCollector.get_instance()

    def test_gauge_set(self):
        gauge = MetricsCollector().gauge("transfer_inflight", ("direction",))
        gauge.set(4, direction="upload")
        gauge.dec(direction="upload")
        assert gauge.get(direction="upload") == 3

    def test_collector_for(self):
        assert collector_for(True) is MetricsCollector.get_instance()
        assert collector_for(False) is not MetricsCollector.get_instance()

    @pytest.mark.asyncio
    async def test_disabled_metrics_stay_out_of_shared_registry(self, tmp_path):
        """Test transfers with metrics off never touch the process-wide collector."""
        shared = TransferMetrics(MetricsCollector.get_instance())
        before = shared.parts.get(direction="download", outcome="ok")
        store = InMemoryObjectStore()
        await store.put_object("obj", b"x" * 250)
        private = collector_for(False)
        config = TransferConfig(part_size=100, min_part_size=1)

        result = await Downloader(store, config, private).download_file("obj", str(tmp_path / "out"))

        assert result.is_ok()
        assert shared.parts.get(direction="download", outcome="ok") == before
        histogram = private.histogram("transfer_part_seconds")
        assert histogram.count(direction="download") == 3


class TestLogging:
    """Tests for structured logging."""

    def _logger(self, formatter, stream):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        logger = logging.getLogger("objectmesh.tests.logging")
        logger.handlers[:] = [handler]
        logger.propagate = False
        logger.setLevel(logging.DEBUG)
        return logger

    def test_json_includes_context_and_extras(self):
        stream = io.StringIO()
        self._logger(JsonFormatter(), stream)
        log = StructuredLogger("objectmesh.tests.logging")

        with StructuredLogger.context(transfer_id="t-1", object_key="obj"):
            log.info("part done", part_index=3)

        record = json.loads(stream.getvalue())
        assert record["message"] == "part done"
        assert record["level"] == "INFO"
        assert record["transfer_id"] == "t-1"
        assert record["object_key"] == "obj"
        assert record["part_index"] == 3

    def test_context_is_restored(self):
        with StructuredLogger.context(transfer_id="outer"):
            with StructuredLogger.context(object_key="k"):
                assert current_context() == {"transfer_id": "outer", "object_key": "k"}
            assert current_context() == {"transfer_id": "outer"}
        assert current_context() == {}

    def test_text_output_carries_context(self):
        stream = io.StringIO()
        logger = self._logger(logging.Formatter("%(ctx)s %(message)s"), stream)
        logger.handlers[0].addFilter(ContextFilter())

        with StructuredLogger.context(transfer_id="t-2"):
            logger.info("hello")

        assert stream.getvalue().strip() == "transfer_id=t-2 hello"

    def test_log_level_from_name(self):
        assert LogLevel.from_name("warning") is LogLevel.WARNING


class TestProgress:
    """Tests for progress publishing."""

    def test_publish_delivers_event(self):
        listener = RecordingProgressListener()
        publish_progress(listener, ProgressEventType.DATA, 50, 200)
        assert listener.events == [ProgressEvent(ProgressEventType.DATA, 50, 200)]
        assert listener.events[0].fraction == 0.25

    def test_raising_listener_is_logged(self, caplog):
        def explode(event):
            raise RuntimeError("listener bug")

        with caplog.at_level(logging.ERROR, logger="objectmesh.observability.progress"):
            publish_progress(CallbackProgressListener(explode), ProgressEventType.STARTED, 0, 10)

        assert "Progress listener raised" in caplog.text

    def test_no_listener(self):
        publish_progress(None, ProgressEventType.COMPLETED, 10, 10)

    def test_empty_transfer_fraction(self):
        assert ProgressEvent(ProgressEventType.COMPLETED, 0, 0).fraction == 1.0
        assert ProgressEvent(ProgressEventType.STARTED, 0, 0).fraction == 0.0
