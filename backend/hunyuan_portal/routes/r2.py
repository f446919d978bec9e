"""
R2 artifact endpoints.

Responsibilities:
- List generated files (optionally only 3D models, optionally grouped by session)
- Issue presigned download URLs
- Stream a stored file through the backend with the right content type
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from hunyuan_portal.core.errors import ConfigurationError, PortalError
from hunyuan_portal.core.logger import logger
from hunyuan_portal.core.storage import StorageManager, filter_3d_models, group_files_by_session
from hunyuan_portal.models.response_models import FileListing, SessionListing, SignedUrlResponse

router = APIRouter(prefix="/r2", tags=["R2"])

CACHE_CONTROL = "public, max-age=31536000"


def get_storage() -> StorageManager:
    """Storage manager for one request; configuration is checked first."""
    try:
        return StorageManager.from_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/list")
async def list_files(
    prefix: Optional[str] = None,
    max_results: int = Query(50, alias="maxResults"),
    continuation_token: Optional[str] = Query(None, alias="continuationToken"),
    filter_models: bool = Query(False, alias="filterModels"),
    group_by_sessions: bool = Query(False, alias="groupBySessions"),
    storage: StorageManager = Depends(get_storage),
):
    """
    List files in the bucket.

    Returns:
        files (or sessions when groupBySessions=true), hasMore, nextToken
    """
    try:
        listing = storage.list_files(prefix or None, max_results, continuation_token or None)
        files = listing.files

        if filter_models:
            files = filter_3d_models(files)

        if group_by_sessions:
            result = SessionListing(
                sessions=group_files_by_session(files),
                has_more=listing.has_more,
                next_token=listing.next_token,
            )
        else:
            result = FileListing(files=files, has_more=listing.has_more, next_token=listing.next_token)

        return result.model_dump(mode="json", by_alias=True)

    except PortalError as e:
        logger.error(f"Error listing R2 files: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error listing R2 files: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/url")
async def get_file_url(
    key: Optional[str] = None,
    expires_in: int = Query(3600, alias="expiresIn"),
    storage: StorageManager = Depends(get_storage),
):
    """
    Presigned download URL for ``key``, valid for ``expiresIn`` seconds.
    """
    if not key:
        raise HTTPException(status_code=400, detail="key parameter is required")

    try:
        url = storage.get_file_url(key, expires_in)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

        return SignedUrlResponse(
            key=key,
            url=url,
            expires_in=expires_in,
            expires_at=expires_at.isoformat(),
        ).model_dump(by_alias=True)

    except PortalError as e:
        logger.error(f"Error generating R2 file URL: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating R2 file URL: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/file")
async def get_file(
    path: Optional[str] = None,
    storage: StorageManager = Depends(get_storage),
):
    """
    Streams a stored file; used by the viewer to load models same-origin.
    """
    if not path:
        raise HTTPException(status_code=400, detail="File path is required")

    try:
        stored = storage.fetch_file(path)

    except PortalError as e:
        logger.error(f"Error fetching file from R2: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error fetching file from R2: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch file from R2 storage")

    return Response(
        content=stored.data,
        media_type=stored.content_type,
        headers={
            "Cache-Control": CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET",
            "Access-Control-Allow-Headers": "Content-Type",
        },
    )
