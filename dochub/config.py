# This module loads the service configuration from environment variables
# Values come from the process environment, or from the .env file at the repository root
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT_ENV = Path(__file__).resolve().parents[1] / ".env"


class Settings(BaseModel):
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    bucket_prefix: str = ""

    admin_key: Optional[str] = None

    link_start_skew_minutes: int = 5
    link_ttl_minutes: int = 10

    archive_max_workers: int = 32
    archive_name_prefix: str = "dochub"

    api_prefix: str = "/api"
    port: int = 8000
    log_level: str = "INFO"

    # This builds the settings from environment variables (after loading .env)
    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(dotenv_path=ROOT_ENV)
        return cls(
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            aws_region=os.getenv("AWS_S3_REGION", "us-east-1"),
            endpoint_url=os.getenv("AWS_S3_ENDPOINT_URL") or None,
            bucket_prefix=os.getenv("S3_BUCKET_PREFIX", ""),
            admin_key=os.getenv("ADMIN_KEY") or None,
            link_start_skew_minutes=int(os.getenv("LINK_START_SKEW_MINUTES", "5")),
            link_ttl_minutes=int(os.getenv("LINK_TTL_MINUTES", "10")),
            archive_max_workers=int(os.getenv("ARCHIVE_MAX_WORKERS", "32")),
            archive_name_prefix=os.getenv("ARCHIVE_NAME_PREFIX", "dochub"),
            api_prefix=os.getenv("API_PREFIX", "/api"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
