"""
Harvest API endpoints.

``POST /harvest`` runs a job and answers with the corpus and summary.
``POST /harvest/stream`` runs the same job but streams progress as
server-sent events before the final result.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from reddit_harvester.collector.progress import QueueProgressReporter
from reddit_harvester.harvester import HarvestService, InvalidRequestError, to_response
from reddit_harvester.models.dtos import HarvestResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def get_harvest_service(request: Request) -> HarvestService:
    """Dependency returning the service created in the application lifespan."""
    return request.app.state.harvest_service


def _json(response: HarvestResponse, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump(by_alias=True))


def _sse(event: str, data: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def stream_job_done(reporter: QueueProgressReporter, job_id: str) -> Callable[[asyncio.Task], None]:
    """
    Build the done-callback of a streamed job.

    It closes the progress stream and logs the job's exception, since the
    task is never awaited once the client has left.
    """

    def done(task: asyncio.Task) -> None:
        reporter.close()
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Streamed job {job_id} failed: {error}", exc_info=error)

    return done


@router.post("/harvest")
async def harvest(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    service: HarvestService = Depends(get_harvest_service),
) -> JSONResponse:
    """
    Run a harvest job.

    Returns 400 with ``success: false`` for a structurally invalid request.
    Upstream failures never fail the request; they show up in the summary.
    """
    response = await service.harvest(payload or {})
    return _json(response, status_code=200 if response.success else 400)


@router.post("/harvest/stream")
async def harvest_stream(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    service: HarvestService = Depends(get_harvest_service),
):
    """
    Run a harvest job, streaming ``progress`` events and a final ``result`` event.

    Disconnecting cancels the job cooperatively: the current batch finishes
    and the remaining communities are skipped.
    """
    try:
        request = service.parse_request(payload or {})
        job = service.resolve_job(request)
    except InvalidRequestError as e:
        return _json(HarvestResponse(success=False, error=str(e)), status_code=400)

    reporter = QueueProgressReporter()
    cancel_event = asyncio.Event()

    task = asyncio.create_task(service.run_job(job, request.user_id, reporter, cancel_event))
    task.add_done_callback(stream_job_done(reporter, job.job_id))

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for event in reporter.events():
                yield _sse("progress", event.to_dict())
            try:
                result = await task
            except Exception as e:
                yield _sse("error", {"success": False, "error": str(e)})
                return
            yield _sse("result", to_response(result).model_dump(by_alias=True))
        finally:
            if not task.done():
                logger.info(f"Client left the stream of job {job.job_id}; cancelling")
                cancel_event.set()

    return StreamingResponse(event_stream(), media_type="text/event-stream")
