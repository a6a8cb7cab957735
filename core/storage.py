"""
S3 object storage access shared by every pipeline and extractor.

boto3 is synchronous; each call runs in a worker thread so the event loop
is free while waiting on the network. Calls are still awaited one at a
time by the orchestrator.
"""

import asyncio
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import Settings, settings as default_settings
from core.exceptions import StorageError, StorageObjectNotFoundError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class PipelinePaths(NamedTuple):
    """Source, processed and logs prefixes of one pipeline"""
    source: str
    processed: str
    logs: str


def build_pipeline_paths(base_path: Optional[str]) -> Optional[PipelinePaths]:
    """
    Build the three prefixes from a base path.

    ``orders/incoming`` -> ``orders/incoming/``,
    ``orders/incoming/processed/`` and ``orders/incoming/logs/``.
    """
    if not base_path:
        return None
    base = base_path.strip("/")
    return PipelinePaths(
        source=f"{base}/",
        processed=f"{base}/processed/",
        logs=f"{base}/logs/",
    )


class S3Storage:
    """
    Async facade over an S3 bucket.

    Operations:
    - Listing with pagination and prefix exclusion
    - Existence check, download, upload
    - Copy-then-delete move and delete
    - Folder placeholder creation
    """

    def __init__(self, bucket: str, client: Any = None, config: Optional[Settings] = None):
        config = config or default_settings
        self.bucket = bucket
        self.client = client or boto3.client("s3", **config.s3_client_kwargs())

        if config.AWS_ACCESS_KEY_ID and config.AWS_SECRET_ACCESS_KEY:
            logger.info("S3Storage: Using AWS credentials from environment variables")
        else:
            logger.info("S3Storage: Using AWS credentials from default credential chain")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "S3Storage":
        config = config or default_settings
        return cls(bucket=config.S3_BUCKET, config=config)

    async def _call(self, operation: str, **kwargs) -> Dict[str, Any]:
        method = getattr(self.client, operation)
        return await asyncio.to_thread(method, Bucket=self.bucket, **kwargs)

    def _error(self, message: str, error: Exception, **context) -> StorageError:
        return StorageError(
            message,
            context={"bucket": self.bucket, **context},
            original_exception=error,
        )

    async def ensure_prefix_exists(self, prefix: str) -> None:
        """Create an empty ``prefix`` placeholder object if nothing lives under it"""
        try:
            response = await self._call("list_objects_v2", Prefix=prefix, MaxKeys=1)
            if not response.get("Contents"):
                await self._call("put_object", Key=prefix, Body=b"")
                logger.info(f"S3Storage: Folder created {self.bucket}/{prefix}")
        except (BotoCoreError, ClientError) as e:
            raise self._error("Error ensuring folder exists", e, prefix=prefix, operation="put")

    async def exists(self, key: str) -> bool:
        try:
            await self._call("head_object", Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                return False
            raise self._error("Error checking file existence", e, key=key, operation="head")
        except BotoCoreError as e:
            raise self._error("Error checking file existence", e, key=key, operation="head")

    async def get_object(self, key: str) -> bytes:
        """Download an object's full body"""
        try:
            response = await self._call("get_object", Key=key)
            body = response["Body"]
            try:
                data = await asyncio.to_thread(body.read)
            finally:
                body.close()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in NOT_FOUND_CODES:
                raise StorageObjectNotFoundError(
                    f"File not found in S3: {key}",
                    context={"bucket": self.bucket, "key": key},
                    original_exception=e,
                )
            raise self._error("Error getting file", e, key=key, operation="get")
        except BotoCoreError as e:
            raise self._error("Error getting file", e, key=key, operation="get")

        logger.info(f"S3Storage: File retrieved {key} ({len(data)} bytes)")
        return data

    async def list_files(
        self,
        prefix: str,
        exclude_prefixes: Sequence[str] = (),
        suffix: str = ".csv",
    ) -> List[str]:
        """
        List keys under ``prefix`` ending with ``suffix``.

        Skips the prefix placeholder itself and anything under
        ``exclude_prefixes``. Follows continuation tokens until the listing
        is exhausted. Keys are returned in listing order.
        """
        keys: List[str] = []
        continuation_token: Optional[str] = None

        try:
            while True:
                kwargs: Dict[str, Any] = {"Prefix": prefix}
                if continuation_token:
                    kwargs["ContinuationToken"] = continuation_token

                response = await self._call("list_objects_v2", **kwargs)

                for obj in response.get("Contents", []):
                    key = obj["Key"]
                    if key == prefix or not key.lower().endswith(suffix):
                        continue
                    if any(key.startswith(excluded) for excluded in exclude_prefixes):
                        continue
                    keys.append(key)

                if not response.get("IsTruncated"):
                    break
                continuation_token = response.get("NextContinuationToken")

        except (BotoCoreError, ClientError) as e:
            raise self._error("Error listing files", e, prefix=prefix, operation="list")

        logger.info(f"S3Storage: Files listed under {prefix}: {len(keys)}")
        return keys

    async def put_object(self, key: str, body: bytes, content_type: str = "text/csv") -> str:
        try:
            await self._call("put_object", Key=key, Body=body, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise self._error("Error uploading file", e, key=key, operation="put")

        logger.info(f"S3Storage: Uploaded {self.bucket}/{key} ({len(body)} bytes)")
        return key

    async def delete_object(self, key: str) -> None:
        try:
            await self._call("delete_object", Key=key)
        except (BotoCoreError, ClientError) as e:
            raise self._error("Error deleting file", e, key=key, operation="delete")

        logger.info(f"S3Storage: File deleted {self.bucket}/{key}")

    async def copy_then_delete(self, source_key: str, dest_key: str) -> str:
        """Move an object: copy to ``dest_key``, then delete ``source_key``"""
        try:
            await self._call(
                "copy_object",
                Key=dest_key,
                CopySource={"Bucket": self.bucket, "Key": source_key},
            )
        except (BotoCoreError, ClientError) as e:
            raise self._error(
                "Error copying file", e, key=source_key, dest_key=dest_key, operation="copy"
            )

        logger.info(f"S3Storage: File copied {source_key} -> {dest_key}")
        await self.delete_object(source_key)
        return dest_key

    async def close(self) -> None:
        """Release the underlying HTTP connection pool"""
        close = getattr(self.client, "close", None)
        if close is not None:
            await asyncio.to_thread(close)
