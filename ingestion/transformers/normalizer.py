"""
Header normalization and required-field validation
"""

import re
from typing import Any, Dict, List, Mapping, Sequence

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


def normalize_key(key: str) -> str:
    """
    Lower-case a header and drop every non-alphanumeric character.

    ``"Lab Product ID"`` -> ``"labproductid"``, ``"CaseId"`` -> ``"caseid"``.
    Applying it twice gives the same result as applying it once.
    """
    return _NON_ALPHANUMERIC.sub("", str(key).lower())


def normalize_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize every key of a source record.

    Headers that collapse to the same key keep the value of the last one.
    """
    normalized: Dict[str, Any] = {}
    for key, value in record.items():
        normalized[normalize_key(key)] = value
    return normalized


def find_missing_fields(mapped: Mapping[str, Any], required_fields: Sequence[str]) -> List[str]:
    """Required fields that are absent, None or an empty string, in declared order"""
    return [
        field for field in required_fields
        if mapped.get(field) is None or mapped.get(field) == ""
    ]
