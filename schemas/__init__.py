"""
Pydantic schemas for processing results.

Schemas:
    results: Row, file, pipeline and extraction outcomes

Usage:
    from schemas import RowOutcome, FileProcessingResult, PipelineRunSummary

Example:
    outcome = RowOutcome(
        status=RowStatus.ERROR,
        row_number=2,
        source_record={"CaseID": "", "ProductID": "P1"},
        reason="Missing required fields: caseid",
        missing_fields=["caseid"],
    )
    assert not outcome.is_valid
"""

from schemas.results import (
    RowStatus,
    RowOutcome,
    FileProcessingResult,
    FileResult,
    PipelineRunSummary,
    CombinedSummary,
    ExtractionResult,
)

__all__ = [
    "RowStatus",
    "RowOutcome",
    "FileProcessingResult",
    "FileResult",
    "PipelineRunSummary",
    "CombinedSummary",
    "ExtractionResult",
]
