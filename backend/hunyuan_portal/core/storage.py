"""
R2 Storage helper functions for generated artifacts.

Handles all interactions with the bucket the worker uploads into:
- Paginated listing of stored files
- Presigned (time-limited) download URLs
- Fetching raw file bytes with a derived content type
- Grouping and filtering listings for the model browser
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import quote, urlparse

from botocore.exceptions import BotoCoreError, ClientError

from hunyuan_portal.core.config import Settings, get_settings
from hunyuan_portal.core.errors import StorageError, StorageFileNotFoundError
from hunyuan_portal.core.logger import logger
from hunyuan_portal.core.r2_client import get_r2
from hunyuan_portal.models.response_models import FileListing, StorageFile

MODEL_EXTENSIONS = (".glb", ".gltf", ".obj", ".ply", ".stl")

CONTENT_TYPES = {
    "glb": "model/gltf-binary",
    "gltf": "model/gltf+json",
    "obj": "text/plain",
    "mtl": "text/plain",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

SESSION_PATTERN = re.compile(r"^(.+?)_(?:base|textured|final|enhanced)")

FILE_ROUTE = "/r2/file"


@dataclass
class StoredObject:
    key: str
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


class StorageManager:
    """Handles file access on the R2 bucket."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StorageManager":
        """
        Raises:
            ConfigurationError: If any R2 variable is missing
        """
        settings = (settings or get_settings()).require_storage()
        return cls(get_r2(), settings.r2_bucket_name)

    def list_files(
        self,
        prefix: Optional[str] = None,
        max_results: int = 100,
        continuation_token: Optional[str] = None,
    ) -> FileListing:
        """
        List files in the bucket with optional prefix filtering.

        Args:
            prefix: Only return keys starting with this prefix
            max_results: Page size
            continuation_token: Token from a previous page

        Returns:
            FileListing with files, has_more and next_token
        """
        params = {"Bucket": self.bucket, "MaxKeys": max_results}
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self.client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing R2 files: {e}")
            raise StorageError(f"Failed to list R2 files: {e}") from e

        files = [
            StorageFile(
                key=obj["Key"],
                last_modified=obj.get("LastModified"),
                size=obj.get("Size", 0),
                etag=obj.get("ETag"),
            )
            for obj in response.get("Contents", [])
        ]

        return FileListing(
            files=files,
            has_more=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken"),
        )

    def get_file_url(self, key: str, expires_in: int = 3600) -> str:
        """
        Generate a presigned URL for downloading a file.

        ``expires_in`` is passed through as given; R2 enforces its own bounds.
        """
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating presigned URL for {key}: {e}")
            raise StorageError(f"Failed to generate presigned URL: {e}") from e

    def fetch_file(self, path: str) -> StoredObject:
        """
        Download a file's bytes.

        Args:
            path: Object key; a single leading slash is ignored

        Raises:
            StorageFileNotFoundError: If the key does not exist
            StorageError: For any other storage failure
        """
        key = path[1:] if path.startswith("/") else path
        logger.info(f"Fetching file from R2: {key}")

        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise StorageFileNotFoundError(key) from e
            logger.error(f"Error fetching file {key} from R2: {e}")
            raise StorageError("Failed to fetch file from R2 storage") from e
        except BotoCoreError as e:
            logger.error(f"Error fetching file {key} from R2: {e}")
            raise StorageError("Failed to fetch file from R2 storage") from e

        body = response.get("Body")
        if body is None:
            raise StorageFileNotFoundError(key, "File not found")

        return StoredObject(key=key, data=body.read(), content_type=content_type_for(key))


def is_configured(settings: Optional[Settings] = None) -> bool:
    """True when every R2 variable is set."""
    return (settings or get_settings()).is_storage_configured()


def content_type_for(key: str) -> str:
    """Content type derived from the file extension."""
    extension = key.rsplit(".", 1)[-1].lower() if "." in key else ""
    return CONTENT_TYPES.get(extension, DEFAULT_CONTENT_TYPE)


def _key_of(file: Union[StorageFile, str]) -> str:
    return file if isinstance(file, str) else file.key


def filter_3d_models(files: Iterable[StorageFile]) -> List[StorageFile]:
    """Keep only 3D model files."""
    return [f for f in files if _key_of(f).lower().endswith(MODEL_EXTENSIONS)]


def session_name(key: str) -> str:
    """
    Generation session a file belongs to.

    Files are named like ``<output_name>_base.glb`` or
    ``<output_name>_textured_final.glb``; anything else is its own session.
    """
    filename = key.split("/")[-1]
    match = SESSION_PATTERN.match(filename)
    if match:
        return match.group(1)
    return re.sub(r"\.[^.]+$", "", filename)


def group_files_by_session(files: Iterable[Union[StorageFile, str]]) -> Dict[str, list]:
    """Group files by generation session/output name, keeping listing order."""
    grouped: Dict[str, list] = {}
    for file in files:
        grouped.setdefault(session_name(_key_of(file)), []).append(file)
    return grouped


def file_proxy_path(download_url: str) -> str:
    """
    Route on this backend that streams the object behind a public bucket URL.

    ``https://pub-x.r2.dev/models/a.glb`` -> ``/r2/file?path=%2Fmodels%2Fa.glb``
    """
    path = urlparse(download_url).path
    if not path:
        return download_url
    return f"{FILE_ROUTE}?path={quote(path, safe='')}"
