"""Progress events emitted by the batch orchestrator and their consumers."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    BATCH_START = "batch_start"
    BATCH_COMPLETE = "batch_complete"


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of job progress at a batch boundary. ``batch_index`` is 1-based."""

    type: ProgressEventType
    batch_index: int
    total_batches: int
    processed_count: int
    total_count: int
    communities: List[str] = field(default_factory=list)
    elapsed_sec: float = 0.0
    eta_sec: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "batchIndex": self.batch_index,
            "totalBatches": self.total_batches,
            "processedCount": self.processed_count,
            "totalCount": self.total_count,
            "communities": list(self.communities),
            "elapsedSec": round(self.elapsed_sec, 2),
            "etaSec": round(self.eta_sec, 2) if self.eta_sec is not None else None,
        }


def estimate_eta(elapsed_sec: float, completed_batches: int, total_batches: int) -> Optional[float]:
    """
    Extrapolate the remaining time from the average duration of completed batches.

    Args:
        elapsed_sec: Time since the job started
        completed_batches: Batches finished so far
        total_batches: Batches in the job

    Returns:
        Seconds remaining, or None before the first batch has finished
    """
    if completed_batches <= 0:
        return None
    remaining = max(total_batches - completed_batches, 0)
    return elapsed_sec / completed_batches * remaining


class ProgressReporter:
    """Observer notified by the orchestrator. The default implementation ignores events."""

    def report(self, event: ProgressEvent) -> None:
        pass


class LoggingProgressReporter(ProgressReporter):
    """Writes each event to the log."""

    def report(self, event: ProgressEvent) -> None:
        if event.type is ProgressEventType.BATCH_START:
            logger.info(
                f"Batch {event.batch_index}/{event.total_batches} starting: {', '.join(event.communities)}"
            )
        else:
            eta = f", ETA {event.eta_sec:.1f}s" if event.eta_sec is not None else ""
            logger.info(
                f"Batch {event.batch_index}/{event.total_batches} complete: "
                f"{event.processed_count}/{event.total_count} communities{eta}"
            )


class CallbackProgressReporter(ProgressReporter):
    """Forwards each event to a plain callable."""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def report(self, event: ProgressEvent) -> None:
        self.callback(event)


class QueueProgressReporter(ProgressReporter):
    """
    Pushes events onto an asyncio queue for a consumer to pull.

    The producer calls ``close()`` when the job ends; ``events()`` then stops
    after draining the queue.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 0):
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def report(self, event: ProgressEvent) -> None:
        self.queue.put_nowait(event)

    def close(self) -> None:
        self.queue.put_nowait(self._CLOSED)

    async def events(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self.queue.get()
            if item is self._CLOSED:
                return
            yield item
