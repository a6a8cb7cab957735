"""
ETL pipeline components for lab orders and reference data.

Modules:
    audit: CSV parsing, audit CSV rendering and audit object keys
    engine: Per-file transactional execution of a pipeline definition
    registry: Pipeline lookup by name
    runner: Orchestrator that discovers files and writes audit output
    service: Process-wide wiring of storage, database pool and extractors
    scheduler: APScheduler integration for periodic runs

Subpackages:
    pipelines: Pipeline definitions (orders, CRM and product reference data)
    transformers: Header normalization, validation and value parsing
    extractors: Salesforce and MagicTouch extractors feeding source prefixes

Architecture:
    Each pipeline owns a source prefix in the bucket. For every CSV under it:

    1. Parse - Download and parse the file
    2. Load - Normalize, map, validate and insert every row in one
       transaction, one savepoint per row, then run the post-process step
    3. Audit - Upload a processed copy of the valid rows and a log of
       every row with its status, then delete the source file

    A bad row never fails its file and a failed file never stops the
    pipeline; only startup errors end the process.

Usage:
    from ingestion.service import ETLService

    service = ETLService.from_settings()
    try:
        summary = await service.run_all()
    finally:
        await service.close()
"""

__all__ = [
    "audit",
    "engine",
    "registry",
    "runner",
    "service",
    "scheduler",
]
