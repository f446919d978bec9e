"""
Pydantic models for API response schemas.

Responsibilities:
- Mirror the RunPod status payload and the worker's generation result
- Define the storage listing and signed URL responses
- Ensure consistent (camelCase) API output
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FAILED_FALLBACK_MESSAGE = "Task failed without specific error message"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobState(str, Enum):
    IN_QUEUE = "IN_QUEUE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ==================== GENERATION RESULT ====================

# Output of a completed worker job, passed on exactly as the worker sent it.
# Usual keys: status, workflow_type, output_files (filename, download_url,
# file_type, full_path, uploaded_to_r2), mesh_stats (original_faces,
# processed_faces, final_faces), texture_info (generated_views,
# texture_size), processing_time and r2_configured.
GenerationResult = Dict[str, Any]


# ==================== JOB STATUS ====================

class StartJobResponse(CamelModel):
    task_id: str


class JobStatus(CamelModel):
    """
    One observation of a remote job.

    ``status`` keeps the raw remote string, enumerated or not.
    """
    status: Optional[str] = None
    task_id: Optional[str] = None
    delay_time: Optional[float] = None
    execution_time: Optional[float] = None
    output: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def from_runpod(cls, data: Dict[str, Any]) -> "JobStatus":
        status = cls(
            status=data.get("status"),
            task_id=data.get("id"),
            delay_time=data.get("delayTime"),
            execution_time=data.get("executionTime"),
        )
        if status.status == JobState.COMPLETED.value and data.get("output"):
            status.output = data["output"]
        elif status.status == JobState.FAILED.value:
            status.error = data.get("error") or FAILED_FALLBACK_MESSAGE
        return status

    @property
    def state(self) -> Optional[JobState]:
        try:
            return JobState(self.status)
        except ValueError:
            return None

    def to_payload(self) -> Dict[str, Any]:
        """camelCase body with ``output``/``error`` only when they apply."""
        payload: Dict[str, Any] = {
            "status": self.status,
            "taskId": self.task_id,
            "delayTime": self.delay_time,
            "executionTime": self.execution_time,
        }
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        return payload


# ==================== STORAGE ====================

class StorageFile(CamelModel):
    key: str
    last_modified: Optional[datetime] = None
    size: int = 0
    etag: Optional[str] = None


class FileListing(CamelModel):
    files: List[StorageFile] = Field(default_factory=list)
    has_more: bool = False
    next_token: Optional[str] = None


class SessionListing(CamelModel):
    sessions: Dict[str, List[StorageFile]] = Field(default_factory=dict)
    has_more: bool = False
    next_token: Optional[str] = None


class SignedUrlResponse(CamelModel):
    key: str
    url: str
    expires_in: int
    expires_at: str
