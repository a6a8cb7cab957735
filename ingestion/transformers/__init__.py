"""
Row transformation helpers: header normalization, validation and value parsing
"""

from ingestion.transformers.normalizer import normalize_key, normalize_record, find_missing_fields
from ingestion.transformers.values import (
    clean_str,
    parse_int,
    parse_float,
    parse_bool,
    parse_date,
    row_hash,
)

__all__ = [
    "normalize_key",
    "normalize_record",
    "find_missing_fields",
    "clean_str",
    "parse_int",
    "parse_float",
    "parse_bool",
    "parse_date",
    "row_hash",
]
