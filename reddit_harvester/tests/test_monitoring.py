"""Tests for the Prometheus metrics exporter."""

import unittest
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from reddit_harvester.models.fetch import FetchResult
from reddit_harvester.models.job import FetchFilters, SortMode, TimeRange
from reddit_harvester.models.records import RetrievalMethod
from reddit_harvester.monitoring.metrics import PrometheusExporter, RequestTimer
from reddit_harvester.sources.base import SourceAdapter


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestPrometheusExporter(unittest.TestCase):
    """Test cases for the PrometheusExporter class."""

    def setUp(self):
        self.exporter = PrometheusExporter(port=9999)

    @patch("reddit_harvester.monitoring.metrics.start_http_server")
    def test_start_server_once(self, mock_start):
        self.exporter.start_server()
        self.exporter.start_server()

        mock_start.assert_called_once_with(9999)
        self.assertTrue(self.exporter.server_started)

    @patch("reddit_harvester.monitoring.metrics.start_http_server", side_effect=OSError("port in use"))
    def test_start_server_failure_logged(self, mock_start):
        self.exporter.start_server()

        self.assertFalse(self.exporter.server_started)

    def test_counters(self):
        before = sample("reddit_harvester_records_collected_total", community="metrics_test", data_type="post")
        self.exporter.record_collected("metrics_test", "post", 3)
        self.exporter.record_collected("metrics_test", "post", 0)
        after = sample("reddit_harvester_records_collected_total", community="metrics_test", data_type="post")
        self.assertEqual(after - before, 3)

        before = sample("reddit_harvester_adapter_results_total", method="fallback-feed", status="timeout")
        self.exporter.record_adapter_result("fallback-feed", "timeout")
        after = sample("reddit_harvester_adapter_results_total", method="fallback-feed", status="timeout")
        self.assertEqual(after - before, 1)

    def test_consecutive_failures_gauge(self):
        self.exporter.set_consecutive_failures("fallback-archive", 4)

        self.assertEqual(sample("reddit_harvester_adapter_consecutive_failures", method="fallback-archive"), 4)

    def test_request_timer(self):
        with self.exporter.time_request("primary") as timer:
            pass

        self.assertIsInstance(timer, RequestTimer)
        self.assertIsNotNone(timer.duration)


class _EchoAdapter(SourceAdapter):
    name = "anonymous"
    method = RetrievalMethod.FALLBACK_ANONYMOUS

    async def _fetch(self, community, filters):
        return FetchResult.ok(self.method, [])


class TestAdapterInstrumentation:
    """Adapters report their results and durations to the exporter."""

    @pytest.mark.asyncio
    async def test_fetch_is_instrumented(self, config):
        exporter = PrometheusExporter()
        before = sample("reddit_harvester_adapter_results_total", method="fallback-anonymous", status="ok")
        count_before = sample("reddit_harvester_adapter_request_duration_seconds_count", method="fallback-anonymous")

        adapter = _EchoAdapter(session=None, config=config, prometheus_exporter=exporter)
        result = await adapter.fetch_community("science", FetchFilters(TimeRange.DAY, SortMode.TOP, 5))

        assert result.is_ok
        assert sample("reddit_harvester_adapter_results_total", method="fallback-anonymous", status="ok") - before == 1
        assert sample("reddit_harvester_adapter_request_duration_seconds_count",
                      method="fallback-anonymous") - count_before == 1
