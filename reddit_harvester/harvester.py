"""Harvest service: the request handler in front of the orchestrator.

Both the API and the CLI go through ``HarvestService``. It validates the
request, resolves default communities from configuration, runs the job and
hands the corpus to the configured sink.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

import aiohttp
from pydantic import ValidationError

from reddit_harvester.collector.orchestrator import HarvestOrchestrator, HarvestResult
from reddit_harvester.collector.progress import ProgressReporter
from reddit_harvester.config import Config
from reddit_harvester.models.dtos import HarvestRequest, HarvestResponse
from reddit_harvester.models.job import HarvestJob
from reddit_harvester.sources import build_adapter_chain
from reddit_harvester.sources.base import SourceAdapter
from reddit_harvester.storage.data_sink import DataSink

logger = logging.getLogger(__name__)


class InvalidRequestError(ValueError):
    """A harvest request that cannot be turned into a job."""


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        problems.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "Invalid request: " + "; ".join(problems)


def to_response(result: HarvestResult) -> HarvestResponse:
    """Successful response for a finished job."""
    return HarvestResponse(
        success=True,
        data=[record.to_dict() for record in result.records],
        summary=result.summary.to_dict(),
        outcomes=[outcome.to_dict() for outcome in result.outcomes],
        job_id=result.job.job_id,
        state=result.state.value,
    )


class HarvestService:
    """Owns the HTTP session and adapter chain for the lifetime of a process."""

    def __init__(
        self,
        config: Config,
        sink: Optional[DataSink] = None,
        prometheus_exporter=None,
        adapters: Optional[List[SourceAdapter]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Application configuration
            sink: Optional sink every finished job is written to
            prometheus_exporter: Optional Prometheus exporter for metrics
            adapters: Pre-built adapter chain (built from config on initialize if omitted)
            session: Pre-built HTTP session; the service only closes sessions it created
        """
        self.config = config
        self.sink = sink
        self.prometheus_exporter = prometheus_exporter
        self.adapters = adapters
        self.session = session
        self._owns_session = False

    async def initialize(self) -> None:
        """Create the HTTP session and adapter chain if they were not supplied."""
        if self.adapters is None:
            if self.session is None:
                self.session = aiohttp.ClientSession()
                self._owns_session = True
            self.adapters = build_adapter_chain(self.session, self.config, self.prometheus_exporter)
        logger.info(f"Harvest service ready with {len(self.adapters)} source adapters")

    async def cleanup(self) -> None:
        """Close the HTTP session if this service created it."""
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None
            self._owns_session = False

    async def __aenter__(self) -> "HarvestService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    def resolve_job(self, request: HarvestRequest) -> HarvestJob:
        """
        Turn a validated request into a job.

        Raises:
            InvalidRequestError: if no communities were given and none are configured
        """
        communities = request.communities or self.config.default_communities(request.fast_mode)
        if not communities:
            raise InvalidRequestError("No communities requested and no default communities configured")
        try:
            return HarvestJob(
                communities=tuple(communities),
                time_range=request.time_range,
                sort_mode=request.sort_mode,
                posts_per_community=request.posts_per_community,
                fast_mode=request.fast_mode,
            )
        except ValueError as e:
            raise InvalidRequestError(str(e)) from e

    def parse_request(self, payload: Union[HarvestRequest, Dict[str, Any]]) -> HarvestRequest:
        """
        Validate a raw request body.

        Raises:
            InvalidRequestError: if the body does not match the request schema
        """
        if isinstance(payload, HarvestRequest):
            return payload
        try:
            return HarvestRequest.model_validate(payload)
        except ValidationError as e:
            raise InvalidRequestError(_format_validation_error(e)) from e

    async def run_job(
        self,
        job: HarvestJob,
        user_id: str = "anonymous",
        progress_reporter: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> HarvestResult:
        """Run a resolved job and persist its corpus."""
        if self.adapters is None:
            await self.initialize()

        orchestrator = HarvestOrchestrator(
            self.adapters,
            self.config.harvest,
            progress_reporter=progress_reporter,
            prometheus_exporter=self.prometheus_exporter,
        )
        result = await orchestrator.run(job, cancel_event=cancel_event)

        if self.sink is not None:
            try:
                written = await asyncio.to_thread(self.sink.write, user_id, job, result.records, result.summary)
            except Exception as e:
                logger.error(f"Job {job.job_id}: persisting {len(result.records)} records failed: {str(e)}",
                             exc_info=True)
            else:
                logger.info(f"Job {job.job_id}: {written} records persisted for user {user_id}")
        return result

    async def harvest(
        self,
        payload: Union[HarvestRequest, Dict[str, Any]],
        progress_reporter: Optional[ProgressReporter] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> HarvestResponse:
        """
        Handle one harvest request end to end.

        Only a structurally invalid request yields ``success=False``. A job in
        which every community failed is still a success with an empty corpus.

        Args:
            payload: Request body (dict or already validated request)
            progress_reporter: Optional observer for batch progress
            cancel_event: Optional event the caller sets to cancel the job

        Returns:
            The response object
        """
        try:
            request = self.parse_request(payload)
            job = self.resolve_job(request)
        except InvalidRequestError as e:
            logger.warning(f"Rejected harvest request: {e}")
            return HarvestResponse(success=False, error=str(e))

        result = await self.run_job(job, request.user_id, progress_reporter, cancel_event)
        return to_response(result)
