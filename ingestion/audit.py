"""
CSV reading and the audit CSV format.

Audit files (processed copies, per-row logs, extractor output) are
comma-delimited with every field double-quoted, header included.
Embedded quotes are doubled and line breaks inside a value are collapsed
to a single space, so each record occupies exactly one line.
"""

import csv
import io
import logging
import re
import warnings
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from core.exceptions import CSVParseError
from schemas.results import RowOutcome

logger = logging.getLogger(__name__)

LOG_STATUS_COLUMN = "etl_status"
LOG_REASON_COLUMN = "etl_reason"
LOG_MISSING_COLUMN = "missingFields"
LOG_COLUMNS = (LOG_STATUS_COLUMN, LOG_REASON_COLUMN, LOG_MISSING_COLUMN)

_LINE_BREAK = re.compile(r"\r?\n")


def key_timestamp(now: Optional[datetime] = None) -> str:
    """
    ISO-8601 UTC timestamp safe for object keys.

    ``2024-01-01T10:00:00.000Z`` becomes ``2024-01-01T10-00-00-000Z``.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def _read(data: bytes, **kwargs) -> pd.DataFrame:
    return pd.read_csv(
        io.BytesIO(data),
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        encoding="utf-8-sig",
        skip_blank_lines=True,
        **kwargs,
    )


def parse_csv(data: bytes, file_key: str = "") -> List[Dict[str, str]]:
    """
    Parse a CSV file with a header row into records.

    Every value stays a string, blanks included; a missing trailing field
    reads as "". A file with no content or only a header has zero rows.
    A header repeated in the same file keeps one key, holding the last
    value. Values past the last header column are dropped with a warning.

    Raises:
        CSVParseError: Malformed CSV, or a header that clashes with the
            log file's status columns
    """
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", pd.errors.ParserWarning)
            df = _read(data, index_col=False)
        # pandas renames repeated headers (``a.1``); keep the file's own names
        headers = [str(h) for h in _read(data, header=None, nrows=1).iloc[0]]
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        raise CSVParseError(
            "Failed to parse CSV file",
            context={"file_key": file_key},
            original_exception=e,
        )

    reserved = [h for h in headers if h in LOG_COLUMNS]
    if reserved:
        raise CSVParseError(
            f"Header uses reserved log column(s): {', '.join(reserved)}",
            context={"file_key": file_key},
        )

    if any(issubclass(w.category, pd.errors.ParserWarning) for w in caught):
        logger.warning(f"CSV {file_key}: rows longer than the header, extra values dropped")

    records: List[Dict[str, str]] = []
    for values in df.itertuples(index=False, name=None):
        record: Dict[str, str] = {}
        for header, value in zip(headers, values):
            record[header] = value if isinstance(value, str) else ""
        records.append(record)
    return records


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return _LINE_BREAK.sub(" ", str(value))


def render_csv(records: Sequence[Dict[str, Any]]) -> bytes:
    """
    Render records as an audit CSV.

    The header comes from the first record's keys; later records are
    written in that column order. No records renders as empty content.
    """
    if not records:
        return b""

    columns = list(records[0].keys())
    rows = [[_cell(record.get(column)) for column in columns] for record in records]

    df = pd.DataFrame(rows, columns=columns, dtype=object)
    content = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return content.encode("utf-8")


def log_record(outcome: RowOutcome) -> Dict[str, str]:
    """Source record plus its ETL status columns"""
    record = dict(outcome.source_record)
    record[LOG_STATUS_COLUMN] = outcome.status.value
    record[LOG_REASON_COLUMN] = outcome.reason
    record[LOG_MISSING_COLUMN] = ", ".join(outcome.missing_fields)
    return record


def render_log_csv(outcomes: Sequence[RowOutcome]) -> bytes:
    """One line per source row, in file order"""
    return render_csv([log_record(o) for o in outcomes])


def render_processed_csv(outcomes: Sequence[RowOutcome]) -> bytes:
    """Valid rows only, original columns"""
    return render_csv([dict(o.source_record) for o in outcomes if o.is_valid])


def processed_key(processed_prefix: str, file_key: str, timestamp: str) -> str:
    return f"{processed_prefix}{timestamp}_{file_name(file_key)}"


def log_key(logs_prefix: str, file_key: str, timestamp: str) -> str:
    return f"{logs_prefix}{base_name(file_key)}_log_{timestamp}.csv"


def file_name(file_key: str) -> str:
    return file_key.rsplit("/", 1)[-1]


def base_name(file_key: str) -> str:
    name = file_name(file_key)
    if name.lower().endswith(".csv"):
        name = name[:-4]
    return name
