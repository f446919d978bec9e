import copy
import json

import boto3
from botocore.config import Config
import httpx
import pytest

from hunyuan_portal.core.config import RUNPOD_VARS, STORAGE_VARS
from hunyuan_portal.core.r2_client import R2Client
from hunyuan_portal.core.storage import StorageManager
from hunyuan_portal.services.runpod_client import RunPodClient

ENDPOINT_URL = "https://api.runpod.test/v2/endpoint-123"
BUCKET = "hunyuan-models"

SAMPLE_OUTPUT = {
    "status": "success",
    "workflow_type": "enhanced",
    "output_files": [
        {
            "filename": "shoe_base_00001_.glb",
            "download_url": "https://pub-example.r2.dev/models/enhanced/shoe_base.glb",
            "file_type": "base_mesh",
            "full_path": "/app/output/3D/shoe_base_00001_.glb",
            "uploaded_to_r2": True,
        },
        {
            "filename": "shoe_textured_final_00001_.glb",
            "download_url": "https://pub-example.r2.dev/models/enhanced/shoe_textured.glb",
            "file_type": "textured_mesh",
            "full_path": "/app/output/3D/shoe_textured_final_00001_.glb",
            "uploaded_to_r2": True,
        },
    ],
    "mesh_stats": {"original_faces": 424712, "processed_faces": 20000, "final_faces": 20000},
    "texture_info": {"generated_views": 6, "texture_size": 1024},
    "processing_time": 193.24,
    "r2_configured": True,
}


@pytest.fixture
def clean_env(monkeypatch):
    """Environment with no RunPod or R2 configuration."""
    for name in RUNPOD_VARS + STORAGE_VARS + ("R2_ENDPOINT_URL", "HUNYUAN_POLL_INTERVAL", "HUNYUAN_MAX_POLLS"):
        monkeypatch.delenv(name, raising=False)
    R2Client.reset()
    yield monkeypatch
    R2Client.reset()


@pytest.fixture
def configured_env(clean_env):
    clean_env.setenv("RUNPOD_ENDPOINT_ID", "endpoint-123")
    clean_env.setenv("RUNPOD_API_KEY", "rp-secret")
    clean_env.setenv("CLOUDFLARE_ACCOUNT_ID", "acct")
    clean_env.setenv("R2_ACCESS_KEY_ID", "AKIDEXAMPLE")
    clean_env.setenv("R2_SECRET_ACCESS_KEY", "secret-example")
    clean_env.setenv("R2_BUCKET_NAME", BUCKET)
    clean_env.setenv("HUNYUAN_POLL_INTERVAL", "0")
    return clean_env


class RecordingRunPod:
    """
    httpx MockTransport standing in for the RunPod endpoint.

    ``statuses`` are returned in order by the status route; the last one
    repeats once the list is exhausted.
    """

    def __init__(self, job_id="job-1", statuses=None, run_status_code=200, status_code=200, run_response=None):
        self.job_id = job_id
        self.run_response = run_response
        self.statuses = list(statuses or [])
        self.run_status_code = run_status_code
        self.status_code = status_code
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST" and request.url.path.endswith("/run"):
            if self.run_status_code != 200:
                return httpx.Response(self.run_status_code, text="upstream unavailable")
            if self.run_response is not None:
                return httpx.Response(200, json=self.run_response)
            return httpx.Response(200, json={"id": self.job_id, "status": "IN_QUEUE"})

        if self.status_code != 200:
            return httpx.Response(self.status_code, text="status lookup failed")
        body = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return httpx.Response(200, json=body)

    @property
    def status_calls(self):
        return [r for r in self.requests if "/status/" in r.url.path]

    def run_body(self):
        posts = [r for r in self.requests if r.method == "POST"]
        return json.loads(posts[0].content) if posts else None

    def client(self) -> RunPodClient:
        return RunPodClient(ENDPOINT_URL, "rp-secret", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="auto",
        endpoint_url="https://acct.r2.cloudflarestorage.com",
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="secret-example",
        config=Config(signature_version="s3v4"),
    )


@pytest.fixture
def storage(s3_client):
    return StorageManager(s3_client, BUCKET)


async def _no_sleep(_seconds):
    return None


@pytest.fixture
def instant_sleep():
    return _no_sleep


@pytest.fixture
def fake_runpod():
    """Factory for RecordingRunPod instances."""
    return RecordingRunPod


@pytest.fixture
def sample_output():
    return copy.deepcopy(SAMPLE_OUTPUT)
