"""
Process-level wiring: storage client, database pool, orchestrator and
extractors, plus the run/extract entry points the CLI and scheduler use.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from core.config import Settings, settings as default_settings
from core.database import create_engine_from_settings, create_session_factory
from core.exceptions import ConfigurationError, ETLException
from core.storage import S3Storage
from ingestion.engine import PipelineEngine
from ingestion.extractors import PIPELINE_EXTRACTORS, create_extractor
from ingestion.registry import PipelineRegistry
from ingestion.runner import Orchestrator, ShutdownFlag
from schemas.results import CombinedSummary, ExtractionResult, PipelineRunSummary

logger = logging.getLogger(__name__)


class ETLService:
    """
    Owns the process-wide resources and releases them on ``close``.

    Resources:
    - One S3 client
    - One database engine (bounded connection pool)
    - One orchestrator sharing both
    """

    def __init__(
        self,
        storage: S3Storage,
        db_engine: Optional[AsyncEngine],
        orchestrator: Orchestrator,
        config: Optional[Settings] = None,
        shutdown: Optional[ShutdownFlag] = None,
    ):
        self.storage = storage
        self.db_engine = db_engine
        self.orchestrator = orchestrator
        self.config = config or default_settings
        self.shutdown = shutdown if shutdown is not None else orchestrator.shutdown

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        registry: Optional[PipelineRegistry] = None,
        shutdown: Optional[ShutdownFlag] = None,
    ) -> "ETLService":
        config = config or default_settings
        shutdown = shutdown if shutdown is not None else ShutdownFlag()

        storage = S3Storage.from_settings(config)
        db_engine = create_engine_from_settings(config)
        engine = PipelineEngine(create_session_factory(db_engine), batch_size=config.BATCH_SIZE)
        orchestrator = Orchestrator(
            storage=storage,
            engine=engine,
            registry=registry or PipelineRegistry.default(),
            config=config,
            shutdown=shutdown,
        )
        return cls(storage, db_engine, orchestrator, config=config, shutdown=shutdown)

    async def extract(self, name: str, **kwargs) -> ExtractionResult:
        """
        Run one extractor.

        Raises:
            ConfigurationError: Unknown extractor or missing settings
            ExtractionError: The source API failed
        """
        extractor = create_extractor(name, self.storage, self.config, **kwargs)
        return await extractor.extract()

    async def run_extractor_for_pipeline(self, pipeline: str) -> Optional[ExtractionResult]:
        """Run the pipeline's feeding extractor, if any; failures never stop the ETL run"""
        name = PIPELINE_EXTRACTORS.get(pipeline)
        if name is None:
            return None

        logger.info(f"Running extractor {name} before pipeline {pipeline}")
        try:
            return await self.extract(name)
        except ConfigurationError as e:
            logger.warning(f"Extractor {name} not configured, continuing with ETL: {e}")
            error = str(e)
        except ETLException as e:
            logger.error(f"Extractor failed for {pipeline}, continuing with ETL: {e}")
            error = str(e)
        return ExtractionResult(extractor=name, success=False, error=error)

    async def run_pipeline(self, name: str, with_extractor: bool = True) -> PipelineRunSummary:
        definition = self.orchestrator.registry.get(name)
        if with_extractor:
            await self.run_extractor_for_pipeline(definition.name)
        return await self.orchestrator.process_pipeline(definition.name)

    async def run_all(self, with_extractors: bool = True) -> CombinedSummary:
        if with_extractors:
            for pipeline in self.orchestrator.available_pipelines():
                if self.shutdown.requested:
                    break
                await self.run_extractor_for_pipeline(pipeline)
        return await self.orchestrator.process_all_pipelines()

    async def close(self) -> None:
        """Dispose of the connection pool and the S3 client"""
        if self.db_engine is not None:
            await self.db_engine.dispose()
            logger.info("Database pool closed")
        await self.storage.close()
        logger.info("Storage client closed")
