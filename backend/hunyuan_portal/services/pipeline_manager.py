"""
Orchestrator for one remote generation.

Responsibilities:
- Validate the request before anything leaves the process
- Submit the job to the RunPod worker
- Follow it to a terminal state, reporting progress along the way
"""

from typing import Optional

from hunyuan_portal.core.logger import get_logger
from hunyuan_portal.models.request_models import GenerationRequest, validate_generation_request
from hunyuan_portal.models.response_models import GenerationResult
from hunyuan_portal.services.job_poller import JobPoller, ProgressCallback, notify
from hunyuan_portal.services.runpod_client import RunPodClient

logger = get_logger(__name__)


class GenerationPipeline:
    def __init__(self, client: RunPodClient, poller: JobPoller):
        self.client = client
        self.poller = poller
        self.task_id: Optional[str] = None

    async def run(
        self,
        request: GenerationRequest,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GenerationResult:
        """
        Executes submit + poll for a single request.
        """
        validate_generation_request(request)

        await notify(on_progress, "Starting task...")
        self.task_id = await self.client.submit(request)
        await notify(on_progress, f"Task started with ID: {self.task_id}. Checking status...")

        return await self.poller.wait(self.task_id, on_progress)
