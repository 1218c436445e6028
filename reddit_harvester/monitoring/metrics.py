"""Prometheus metrics for monitoring the Reddit harvester."""

import logging
import time
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Define metrics
RECORDS_COLLECTED = Counter(
    "reddit_harvester_records_collected_total",
    "Number of posts and comments kept in harvested corpora",
    ["community", "data_type"],
)

ADAPTER_RESULTS = Counter(
    "reddit_harvester_adapter_results_total",
    "Source adapter calls by retrieval method and result status",
    ["method", "status"],
)

COMMUNITY_OUTCOMES = Counter(
    "reddit_harvester_community_outcomes_total",
    "Per-community outcomes by the method that produced them",
    ["method"],
)

JOBS_FINISHED = Counter(
    "reddit_harvester_jobs_finished_total",
    "Harvest jobs by terminal state",
    ["state"],
)

CONSECUTIVE_FAILURES = Gauge(
    "reddit_harvester_adapter_consecutive_failures",
    "Consecutive community failures of a source adapter within the current job",
    ["method"],
)

REQUEST_DURATION = Histogram(
    "reddit_harvester_adapter_request_duration_seconds",
    "Duration of source adapter calls in seconds",
    ["method"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)


class PrometheusExporter:
    """Prometheus metrics exporter for the Reddit harvester."""

    def __init__(self, port: int = 8000):
        """
        Initialize the Prometheus exporter.

        Args:
            port: Port to expose metrics on when running standalone
        """
        self.port = port
        self.server_started = False

    def start_server(self) -> None:
        """Start the standalone Prometheus metrics server (CLI runs only)."""
        if not self.server_started:
            try:
                start_http_server(self.port)
                self.server_started = True
                logger.info(f"Started Prometheus metrics server on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus metrics server: {str(e)}")

    def record_collected(self, community: str, data_type: str, count: int = 1) -> None:
        """
        Record kept records.

        Args:
            community: Community the records belong to
            data_type: 'post' or 'comment'
            count: Number of records
        """
        if count:
            RECORDS_COLLECTED.labels(community=community, data_type=data_type).inc(count)

    def record_adapter_result(self, method: str, status: str) -> None:
        ADAPTER_RESULTS.labels(method=method, status=status).inc()

    def record_community_outcome(self, method: str) -> None:
        COMMUNITY_OUTCOMES.labels(method=method).inc()

    def record_job_finished(self, state: str) -> None:
        JOBS_FINISHED.labels(state=state).inc()

    def set_consecutive_failures(self, method: str, count: int) -> None:
        """
        Set the consecutive failures gauge of one adapter.

        Args:
            method: Retrieval method of the adapter
            count: Number of consecutive failed communities
        """
        CONSECUTIVE_FAILURES.labels(method=method).set(count)

    def time_request(self, method: str) -> "RequestTimer":
        """
        Create a context manager for timing adapter calls.

        Args:
            method: Retrieval method of the adapter being timed

        Returns:
            RequestTimer context manager
        """
        return RequestTimer(method)


class RequestTimer:
    """Context manager for timing adapter calls."""

    def __init__(self, method: str):
        self.method = method
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> "RequestTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.duration = time.time() - self.start_time
            REQUEST_DURATION.labels(method=self.method).observe(self.duration)
