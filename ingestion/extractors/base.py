"""
Base class for extractors that pull records from an HTTP API and drop
them as a CSV into a pipeline's source prefix.

This module provides:
- Exponential backoff retry logic for transient failures
- Circuit breaker pattern to prevent cascading failures
- Rate limiting protection (HTTP 429 with Retry-After)
- Upload of the extracted rows in the audit CSV format
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from core.config import Settings, settings as default_settings
from core.exceptions import (
    APIExtractionError,
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
)
from core.storage import S3Storage, build_pipeline_paths
from ingestion import audit
from schemas.results import ExtractionResult

logger = logging.getLogger(__name__)


def _retry_after(response: httpx.Response, default: float) -> float:
    """Seconds from a numeric Retry-After header; HTTP-date or missing falls back to ``default``"""
    try:
        return max(0.0, float(response.headers["Retry-After"]))
    except (KeyError, ValueError):
        return default


class BaseExtractor(ABC):
    """
    Extract rows from an external API and upload them as CSV.

    Subclasses implement ``fetch_rows``; ``extract`` handles the empty
    case, the destination key and the upload.

    Attributes:
        name: Extractor name used on the command line
        env_key: Setting holding the target pipeline's base source path
        file_prefix: Uploaded file name prefix
        max_retries: Maximum number of attempts per request (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: 30.0)
    """

    name: str = ""
    env_key: str = ""
    file_prefix: str = ""

    def __init__(
        self,
        storage: S3Storage,
        config: Optional[Settings] = None,
        max_retries: Optional[int] = None,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.config = config or default_settings
        self.max_retries = max_retries or self.config.MAX_RETRIES
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.transport = transport

        # Circuit breaker state
        self._circuit_breaker_failures = 0
        self._circuit_breaker_threshold = 5
        self._circuit_breaker_open_until: Optional[datetime] = None
        self._circuit_breaker_timeout = 60  # seconds

    @abstractmethod
    async def fetch_rows(self, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        """Fetch and flatten source records into CSV rows"""
        pass

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def _is_circuit_open(self) -> bool:
        """Check if circuit breaker is open."""
        if self._circuit_breaker_open_until is None:
            return False

        if datetime.utcnow() >= self._circuit_breaker_open_until:
            logger.info(f"Circuit breaker reset for {self.name}")
            self._circuit_breaker_failures = 0
            self._circuit_breaker_open_until = None
            return False

        return True

    def _record_failure(self):
        """Record a failure and potentially open circuit breaker."""
        self._circuit_breaker_failures += 1

        if self._circuit_breaker_failures >= self._circuit_breaker_threshold:
            self._circuit_breaker_open_until = datetime.utcnow() + timedelta(
                seconds=self._circuit_breaker_timeout
            )
            logger.warning(
                f"Circuit breaker opened for {self.name}. "
                f"Will retry after {self._circuit_breaker_timeout} seconds."
            )

    def _record_success(self):
        self._circuit_breaker_failures = 0
        self._circuit_breaker_open_until = None

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic and exponential backoff.

        Retries 5xx responses, timeouts, network errors and 429 (honouring
        Retry-After). 401/403/404 fail immediately.

        Raises:
            AuthenticationError: HTTP 401 or 403
            ResourceNotFoundError: HTTP 404
            RateLimitError: Still rate limited after the last attempt
            NetworkError: Server or network errors after the last attempt
            APIExtractionError: Circuit open or other HTTP errors
        """
        if self._is_circuit_open():
            raise APIExtractionError(
                f"Circuit breaker is open for {self.name}",
                context={
                    "extractor": self.name,
                    "api_url": url,
                    "open_until": self._circuit_breaker_open_until.isoformat(),
                },
            )

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            delay = self.retry_delay * (2 ** attempt)

            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: {method} {url}")
                response = await client.request(method, url, timeout=self.timeout, **kwargs)

            except httpx.TimeoutException as e:
                if not last_attempt:
                    logger.warning(f"Request timeout. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Request timeout after {self.max_retries} retries",
                    context={"api_url": url, "extractor": self.name, "retry_count": attempt + 1},
                    original_exception=e,
                )

            except httpx.NetworkError as e:
                if not last_attempt:
                    logger.warning(f"Network error. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Network error after {self.max_retries} retries",
                    context={"api_url": url, "extractor": self.name, "retry_count": attempt + 1},
                    original_exception=e,
                )

            if response.status_code in (401, 403):
                self._record_failure()
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={
                        "status_code": response.status_code,
                        "api_url": url,
                        "extractor": self.name,
                        "response_body": response.text[:500],
                    },
                )

            if response.status_code == 404:
                self._record_failure()
                raise ResourceNotFoundError(
                    f"Resource not found: {url}",
                    context={"status_code": 404, "api_url": url, "extractor": self.name},
                )

            if response.status_code == 429:
                retry_after = _retry_after(response, delay)
                if not last_attempt:
                    logger.warning(f"Rate limited. Retrying after {retry_after} seconds")
                    await asyncio.sleep(retry_after)
                    continue
                self._record_failure()
                raise RateLimitError(
                    f"Rate limit exceeded for {url}",
                    context={
                        "status_code": 429,
                        "api_url": url,
                        "extractor": self.name,
                        "retry_count": attempt + 1,
                    },
                    retry_after=retry_after,
                )

            if response.status_code >= 500:
                if not last_attempt:
                    logger.warning(
                        f"Server error {response.status_code}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Server error after {self.max_retries} retries",
                    context={
                        "status_code": response.status_code,
                        "api_url": url,
                        "extractor": self.name,
                        "retry_count": attempt + 1,
                        "response_body": response.text[:500],
                    },
                )

            if response.status_code >= 400:
                self._record_failure()
                raise APIExtractionError(
                    f"HTTP {response.status_code} from {url}",
                    context={
                        "status_code": response.status_code,
                        "api_url": url,
                        "extractor": self.name,
                        "response_body": response.text[:500],
                    },
                )

            self._record_success()
            return response

        raise APIExtractionError(
            "Max retries exceeded",
            context={"api_url": url, "extractor": self.name},
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise APIExtractionError(
                "Failed to parse JSON response",
                context={"api_url": str(response.request.url), "response_body": response.text[:500]},
                original_exception=e,
            )

    def destination_key(self, timestamp: Optional[str] = None) -> str:
        """``<source prefix><file_prefix>-<timestamp>.csv``"""
        paths = build_pipeline_paths(self.config.source_path(self.env_key))
        if paths is None:
            raise ConfigurationError(
                f"Environment variable {self.env_key} not set",
                context={"setting": self.env_key, "extractor": self.name},
            )
        return f"{paths.source}{self.file_prefix}-{timestamp or audit.key_timestamp()}.csv"

    async def extract(self) -> ExtractionResult:
        """
        Fetch rows and upload them to the target pipeline's source prefix.

        Returns:
            ExtractionResult; ``skipped`` is set when the source had no rows

        Raises:
            ConfigurationError: Destination path or credentials missing
            ExtractionError: The API could not be read
            StorageError: The upload failed
        """
        started = time.perf_counter()
        logger.info(f"{self.__class__.__name__}: Starting extraction {self.name}")

        key = self.destination_key()

        async with self._client() as client:
            rows = await self.fetch_rows(client)

        if not rows:
            logger.warning(f"{self.__class__.__name__}: No records found, skipping upload")
            return ExtractionResult(
                extractor=self.name,
                skipped=True,
                duration_seconds=time.perf_counter() - started,
            )

        await self.storage.put_object(key, audit.render_csv(rows))

        duration = time.perf_counter() - started
        logger.info(
            f"{self.__class__.__name__}: Extraction completed {self.name}: "
            f"{len(rows)} rows -> {self.storage.bucket}/{key} ({duration:.2f}s)"
        )
        return ExtractionResult(
            extractor=self.name,
            record_count=len(rows),
            key=key,
            duration_seconds=duration,
        )
