"""
Application configuration settings.

Responsibilities:
- Load environment variables (and a local .env file when present)
- Describe the RunPod endpoint and R2 bucket credentials
- Configure polling, logging and API settings

Values are read when a Settings object is built, so every request sees the
current environment.
"""

import os
from typing import List, Optional

from dotenv import load_dotenv

from hunyuan_portal.core.errors import ConfigurationError

load_dotenv()

DEFAULT_RUNPOD_API_BASE = "https://api.runpod.ai/v2"
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_POLLS = 120

RUNPOD_VARS = ("RUNPOD_ENDPOINT_ID", "RUNPOD_API_KEY")
STORAGE_VARS = (
    "CLOUDFLARE_ACCOUNT_ID",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET_NAME",
)


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


class Settings:
    PROJECT_NAME: str = "Hunyuan3D Portal"

    def __init__(self):
        # RunPod serverless endpoint
        self.runpod_endpoint_id = _env("RUNPOD_ENDPOINT_ID")
        self.runpod_api_key = _env("RUNPOD_API_KEY")
        self.runpod_api_base = (_env("RUNPOD_API_BASE") or DEFAULT_RUNPOD_API_BASE).rstrip("/")

        # Cloudflare R2 bucket
        self.cloudflare_account_id = _env("CLOUDFLARE_ACCOUNT_ID")
        self.r2_access_key_id = _env("R2_ACCESS_KEY_ID")
        self.r2_secret_access_key = _env("R2_SECRET_ACCESS_KEY")
        self.r2_bucket_name = _env("R2_BUCKET_NAME")
        self.r2_endpoint_override = _env("R2_ENDPOINT_URL")

        # Polling
        self.poll_interval = float(_env("HUNYUAN_POLL_INTERVAL") or DEFAULT_POLL_INTERVAL)
        self.max_polls = int(_env("HUNYUAN_MAX_POLLS") or DEFAULT_MAX_POLLS)

        cors = _env("CORS_ORIGINS") or "*"
        self.cors_origins: List[str] = [o.strip() for o in cors.split(",") if o.strip()]

    @property
    def r2_endpoint_url(self) -> Optional[str]:
        if self.r2_endpoint_override:
            return self.r2_endpoint_override
        if not self.cloudflare_account_id:
            return None
        return f"https://{self.cloudflare_account_id}.r2.cloudflarestorage.com"

    @property
    def runpod_endpoint_url(self) -> str:
        return f"{self.runpod_api_base}/{self.runpod_endpoint_id}"

    @staticmethod
    def missing(names) -> List[str]:
        return [name for name in names if _env(name) is None]

    def is_runpod_configured(self) -> bool:
        return not self.missing(RUNPOD_VARS)

    def is_storage_configured(self) -> bool:
        return not self.missing(STORAGE_VARS)

    def require_runpod(self) -> "Settings":
        """
        Raises:
            ConfigurationError: If the endpoint id or API key is missing
        """
        if not self.is_runpod_configured():
            raise ConfigurationError(
                "RUNPOD_API_KEY and RUNPOD_ENDPOINT_ID environment variables are required"
            )
        return self

    def require_storage(self) -> "Settings":
        """
        Raises:
            ConfigurationError: If any R2 variable is missing
        """
        missing = self.missing(STORAGE_VARS)
        if missing:
            raise ConfigurationError(
                "R2 storage is not properly configured. "
                f"Missing environment variables: {', '.join(missing)}"
            )
        return self


def get_settings() -> Settings:
    return Settings()
