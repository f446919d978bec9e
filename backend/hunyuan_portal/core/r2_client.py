"""
Cloudflare R2 client initialization and configuration.

This module provides a singleton boto3 S3 client pointed at the R2
endpoint, shared by the storage helpers throughout the application.
"""

from typing import Optional

import boto3
from botocore.config import Config

from hunyuan_portal.core.config import Settings, get_settings
from hunyuan_portal.core.logger import logger


class R2Client:
    """Singleton wrapper for the R2 (S3-compatible) client."""

    _instance = None

    @classmethod
    def get_client(cls, settings: Optional[Settings] = None):
        """
        Get or create the R2 client instance.

        Returns:
            boto3 S3 client

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        if cls._instance is None:
            settings = (settings or get_settings()).require_storage()
            cls._instance = create_r2_client(settings)
            logger.info("R2 client initialized successfully")

        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the client instance (useful for testing)."""
        cls._instance = None


def create_r2_client(settings: Settings):
    return boto3.client(
        "s3",
        region_name="auto",
        endpoint_url=settings.r2_endpoint_url,
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        config=Config(signature_version="s3v4"),
    )


# Convenience function for getting the client
def get_r2():
    """Get the R2 client instance."""
    return R2Client.get_client()
