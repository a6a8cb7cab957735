"""
Pydantic schemas for row, file and pipeline processing results
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class RowStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class RowOutcome(BaseModel):
    """
    Final verdict for one source row.

    ``source_record`` holds the row exactly as parsed, with the original
    headers, so audit files can be written in the source's own shape.
    """

    status: RowStatus
    row_number: int = Field(..., ge=1)
    source_record: Dict[str, str]
    reason: str = ""
    missing_fields: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    @property
    def is_valid(self) -> bool:
        return self.status == RowStatus.SUCCESS


class FileProcessingResult(BaseModel):
    """
    Engine output for one file.

    Outcomes are kept in input order; ``success`` is False only when the
    file transaction was rolled back.
    """

    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    outcomes: List[RowOutcome] = Field(default_factory=list)
    duration_seconds: float = 0.0
    success: bool = True
    error: Optional[str] = None

    @property
    def valid_rows(self) -> List[RowOutcome]:
        return [o for o in self.outcomes if o.is_valid]

    @property
    def invalid_rows(self) -> List[RowOutcome]:
        return [o for o in self.outcomes if not o.is_valid]


class FileResult(BaseModel):
    """Orchestrator record for one source file"""

    file_key: str
    success: bool
    skipped: bool = False
    total_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None
    processed_key: Optional[str] = None
    log_key: Optional[str] = None
    source_deleted: bool = False


class PipelineRunSummary(BaseModel):
    """Outcome of one pipeline run over every file in its source prefix"""

    pipeline: str
    configured: bool = True
    success: bool = True
    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    skipped_files: int = 0
    interrupted: bool = False
    error: Optional[str] = None
    files: List[FileResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    duration_seconds: float = 0.0

    def add_file(self, result: FileResult) -> None:
        self.files.append(result)
        self.total_files += 1
        if result.skipped:
            self.skipped_files += 1
        elif result.success:
            self.successful_files += 1
        else:
            self.failed_files += 1

    @property
    def total_rows(self) -> int:
        return sum(f.total_rows for f in self.files)

    @property
    def total_errors(self) -> int:
        return sum(f.error_count for f in self.files)


class CombinedSummary(BaseModel):
    """Outcome of running every registered pipeline"""

    pipelines: List[PipelineRunSummary] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total_files(self) -> int:
        return sum(p.total_files for p in self.pipelines)

    @property
    def successful_files(self) -> int:
        return sum(p.successful_files for p in self.pipelines)

    @property
    def failed_files(self) -> int:
        return sum(p.failed_files for p in self.pipelines)

    @property
    def skipped_files(self) -> int:
        return sum(p.skipped_files for p in self.pipelines)

    @property
    def success(self) -> bool:
        return all(p.success for p in self.pipelines)


class ExtractionResult(BaseModel):
    """Outcome of one extractor run"""

    extractor: str
    success: bool = True
    skipped: bool = False
    record_count: int = 0
    key: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0
