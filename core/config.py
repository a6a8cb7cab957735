"""
Application configuration using Pydantic Settings
"""

import os
from pydantic_settings import BaseSettings
from typing import Any, Dict, Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Database
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_NAME: str = "postgres"
    DB_SEARCH_PATH: str = "etl,public"
    DB_POOL_MAX: int = 10
    DB_IDLE_TIMEOUT: int = 30000  # ms
    DB_CONNECT_TIMEOUT: int = 2000  # ms
    DB_POOL_TIMEOUT: float = 30.0  # seconds to wait for a free connection
    DB_SSL: bool = False
    DB_SSL_REJECT_UNAUTHORIZED: bool = True

    # Object storage
    AWS_REGION: str = "us-east-1"
    S3_BUCKET: str = "dev-incisive-data-csv"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "./logs"

    # ETL Configuration
    BATCH_SIZE: int = 100
    DELETE_SOURCE_AFTER_PROCESSING: bool = True
    ETL_SCHEDULE_MINUTES: int = 30
    MAX_RETRIES: int = 3

    # Pipeline source paths (base prefix in the bucket, no trailing slash)
    SOURCEPATH: Optional[str] = None
    PRODUCT_CATALOG_SOURCEPATH: Optional[str] = None
    DENTAL_GROUPS_SOURCEPATH: Optional[str] = None
    DENTAL_PRACTICES_SOURCEPATH: Optional[str] = None
    LAB_PRODUCT_MAPPING_SOURCEPATH: Optional[str] = None
    LAB_PRACTICE_MAPPING_SOURCEPATH: Optional[str] = None
    PRODUCT_LAB_MARKUP_SOURCEPATH: Optional[str] = None
    PRODUCT_LAB_REV_SHARE_SOURCEPATH: Optional[str] = None

    # Salesforce
    SF_LOGIN_URL: str = "https://login.salesforce.com"
    SF_CLIENT_ID: Optional[str] = None
    SF_CLIENT_SECRET: Optional[str] = None
    SF_API_VERSION: str = "59.0"

    # MagicTouch
    MAGICTOUCH_BASE_URL: Optional[str] = None
    MAGICTOUCH_USER_ID: Optional[str] = None
    MAGICTOUCH_PASSWORD: Optional[str] = None
    EXPORT_MODE: str = "INC"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def source_path(self, env_key: str) -> Optional[str]:
        """
        Resolve a pipeline's base source path.

        Declared fields win; keys for pipelines added later are read
        straight from the process environment.
        """
        value = getattr(self, env_key, None)
        if value is None:
            value = os.environ.get(env_key)
        if value is None:
            return None
        value = value.strip().strip("/")
        return value or None

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the asyncpg driver"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        credentials = ""
        if self.DB_USER:
            credentials = quote_plus(self.DB_USER)
            if self.DB_PASSWORD:
                credentials += ":" + quote_plus(self.DB_PASSWORD)
            credentials += "@"

        return (
            f"postgresql+asyncpg://{credentials}"
            f"{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    def s3_client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``boto3.client("s3", ...)``"""
        kwargs: Dict[str, Any] = {"region_name": self.AWS_REGION}

        # Explicit credentials if provided, otherwise the default chain
        if self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY:
            kwargs["aws_access_key_id"] = self.AWS_ACCESS_KEY_ID
            kwargs["aws_secret_access_key"] = self.AWS_SECRET_ACCESS_KEY

        if self.S3_ENDPOINT_URL:
            kwargs["endpoint_url"] = self.S3_ENDPOINT_URL

        return kwargs


settings = Settings()
