"""
Polling state machine for a RunPod generation job.

    IN_QUEUE -> IN_PROGRESS -> COMPLETED | FAILED

The remote status string drives the loop; nothing is inferred locally.
Unrecognized statuses count as still waiting. The loop waits one interval
before every poll and gives up after ``max_polls`` non-terminal answers.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Union

from hunyuan_portal.core.config import DEFAULT_MAX_POLLS, DEFAULT_POLL_INTERVAL, Settings
from hunyuan_portal.core.errors import (
    JobCompletedWithoutResultError,
    JobFailedError,
    JobTimeoutError,
)
from hunyuan_portal.core.logger import get_logger
from hunyuan_portal.models.response_models import GenerationResult, JobState, JobStatus

logger = get_logger(__name__)

FAILED_MESSAGE = "Task failed"

# Sync or async; async callbacks are awaited before the next poll.
ProgressCallback = Callable[[str], Union[None, Awaitable[None]]]
Sleep = Callable[[float], Awaitable[None]]


async def notify(callback: Optional[ProgressCallback], message: str) -> None:
    if callback is None:
        return
    outcome = callback(message)
    if inspect.isawaitable(outcome):
        await outcome


def _format_duration(seconds: float) -> str:
    if seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


class JobPoller:
    def __init__(
        self,
        client,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            client: Anything with ``async get_status(job_id) -> JobStatus``
            interval: Seconds to wait before each poll
            max_polls: Polls allowed before giving up
            sleep: Awaitable used for the wait (tests pass a no-op)
        """
        if interval < 0:
            raise ValueError("interval must be >= 0")
        if max_polls < 1:
            raise ValueError("max_polls must be >= 1")
        self.client = client
        self.interval = interval
        self.max_polls = max_polls
        self._sleep = sleep

    @classmethod
    def from_settings(cls, client, settings: Settings, **kwargs) -> "JobPoller":
        return cls(client, interval=settings.poll_interval, max_polls=settings.max_polls, **kwargs)

    @property
    def budget_seconds(self) -> float:
        return self.interval * self.max_polls

    async def wait(self, job_id: str, on_progress: Optional[ProgressCallback] = None) -> GenerationResult:
        """
        Poll ``job_id`` until it reaches a terminal state.

        Returns:
            The worker's output exactly as reported by RunPod

        Raises:
            JobFailedError: The job reported FAILED
            JobCompletedWithoutResultError: COMPLETED arrived without output
            JobTimeoutError: ``max_polls`` polls without a terminal state
            RemoteAPIError: A status request failed; the loop stops at once
        """
        attempts = 0

        while attempts < self.max_polls:
            await self._sleep(self.interval)
            attempts += 1

            await notify(on_progress, f"Checking status... (attempt {attempts}/{self.max_polls})")
            status: JobStatus = await self.client.get_status(job_id)
            elapsed = attempts * self.interval
            state = status.state

            if state is JobState.COMPLETED:
                if status.output is None:
                    logger.error(f"Job {job_id} completed without output")
                    raise JobCompletedWithoutResultError(job_id, "Task completed without a result")
                await notify(on_progress, "Task completed successfully!")
                logger.info(f"Job {job_id} completed after {attempts} polls")
                return status.output

            if state is JobState.FAILED:
                message = status.error or FAILED_MESSAGE
                logger.error(f"Job {job_id} failed: {message}")
                raise JobFailedError(job_id, message)

            if state is JobState.IN_PROGRESS:
                await notify(on_progress, f"Task in progress... ({elapsed:g}s elapsed)")
            elif state is JobState.IN_QUEUE:
                await notify(on_progress, f"Task in queue... ({elapsed:g}s elapsed)")
            else:
                logger.debug(f"Job {job_id} reported unrecognized status {status.status!r}")

        logger.error(f"Job {job_id} timed out after {attempts} polls")
        raise JobTimeoutError(
            job_id, f"Task timed out after {_format_duration(self.budget_seconds)}"
        )
