"""
RunPod client for the Hunyuan3D serverless worker.

Async wrapper around the two endpoints the portal needs:
- POST {endpoint}/run           start a generation job
- GET  {endpoint}/status/{id}   observe a job

Non-success responses are raised as RemoteAPIError and never retried.
"""

from typing import Dict, Optional

import httpx

from hunyuan_portal.core.config import Settings, get_settings
from hunyuan_portal.core.errors import InvalidRemoteResponseError, RemoteAPIError
from hunyuan_portal.core.logger import get_logger
from hunyuan_portal.models.request_models import GenerationRequest, validate_generation_request
from hunyuan_portal.models.response_models import JobStatus

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 60.0


class RunPodClient:
    def __init__(
        self,
        endpoint_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            endpoint_url: ``https://api.runpod.ai/v2/<endpoint_id>``
            api_key: RunPod API key, sent as a bearer token
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.endpoint_url = endpoint_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "RunPodClient":
        """
        Raises:
            ConfigurationError: If the endpoint id or API key is missing
        """
        settings = (settings or get_settings()).require_runpod()
        return cls(settings.runpod_endpoint_url, settings.runpod_api_key, **kwargs)

    async def __aenter__(self) -> "RunPodClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def submit(self, request: GenerationRequest) -> str:
        """
        Start a generation job.

        Returns:
            Job id issued by RunPod

        Raises:
            InvalidRequestError: Before any network call, for a bad request
            RemoteAPIError: If RunPod answers with a non-success status
            InvalidRemoteResponseError: If the answer carries no job id
        """
        validate_generation_request(request)

        client = self._get_client()
        response = await client.post(
            f"{self.endpoint_url}/run",
            headers=self._headers,
            json=request.to_payload(),
        )
        if response.is_error:
            logger.error(f"RunPod API error: {response.text}")
            raise RemoteAPIError(response.status_code, response.reason_phrase)

        try:
            body = response.json()
        except ValueError as e:
            raise InvalidRemoteResponseError("RunPod API returned a body that is not JSON") from e

        job_id = body.get("id") if isinstance(body, dict) else None
        if not job_id:
            logger.error(f"RunPod run response without job id: {response.text}")
            raise InvalidRemoteResponseError("RunPod API response did not include a job id")

        logger.info(f"Started RunPod job {job_id} (workflow={request.workflow})")
        return job_id

    async def get_status(self, job_id: str) -> JobStatus:
        """
        Fetch the current status of a job.

        Raises:
            RemoteAPIError: If RunPod answers with a non-success status
        """
        client = self._get_client()
        response = await client.get(
            f"{self.endpoint_url}/status/{job_id}",
            headers=self._headers,
        )
        if response.is_error:
            logger.error(f"RunPod status API error: {response.text}")
            raise RemoteAPIError(
                response.status_code, response.reason_phrase, context="RunPod status API error"
            )

        return JobStatus.from_runpod(response.json())
