"""
Browser over the generated 3D models stored in R2.

Responsibilities:
- Load model files grouped by generation session
- Resolve signed download URLs, reusing those already issued in this session
"""

from typing import Dict, List, Optional

from hunyuan_portal.core.logger import get_logger
from hunyuan_portal.core.storage import StorageManager, filter_3d_models, group_files_by_session
from hunyuan_portal.models.response_models import StorageFile
from hunyuan_portal.services.url_cache import SignedUrlCache

logger = get_logger(__name__)


class ModelBrowser:
    def __init__(
        self,
        storage: StorageManager,
        cache: Optional[SignedUrlCache] = None,
        expires_in: int = 3600,
    ):
        self.storage = storage
        self.cache = cache if cache is not None else SignedUrlCache()
        self.expires_in = expires_in

    def load_sessions(self, prefix: Optional[str] = None, max_results: int = 50) -> Dict[str, List[StorageFile]]:
        """Model files of one listing page, grouped by session."""
        listing = self.storage.list_files(prefix=prefix, max_results=max_results)
        models = filter_3d_models(listing.files)
        sessions = group_files_by_session(models)
        logger.info(f"Loaded {len(models)} models in {len(sessions)} sessions")
        return sessions

    def model_url(self, key: str) -> str:
        return self.cache.get_or_sign(
            key, lambda k: self.storage.get_file_url(k, self.expires_in)
        )
