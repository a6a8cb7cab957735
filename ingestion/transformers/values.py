"""
Value parsing helpers shared by pipeline row mappers.

Every helper returns ``None`` for blank input and for input it cannot
parse; required-field validation then reports the field as missing
instead of letting a bad value reach the database.
"""

import hashlib
import json
import math
from datetime import date, datetime
from typing import Any, Dict, Optional

TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}

DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%m-%d-%Y",
)


def clean_str(value: Any) -> Optional[str]:
    """Strip whitespace; blank becomes None"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_float(value: Any) -> Optional[float]:
    """Safely parse float value; NaN and infinity are rejected"""
    value = clean_str(value)
    if value is None:
        return None
    try:
        number = float(value.replace(",", ""))
    except (ValueError, TypeError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_int(value: Any) -> Optional[int]:
    """Safely parse int value; accepts "10.0" but not "10.5" """
    number = parse_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_bool(value: Any) -> Optional[bool]:
    value = clean_str(value)
    if value is None:
        return None
    value = value.lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return None


def parse_date(value: Any) -> Optional[date]:
    """Parse the date formats lab exports use, falling back to ISO-8601"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    value = clean_str(value)
    if value is None:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def row_hash(record: Dict[str, Any]) -> str:
    """
    Content hash of a mapped record.

    Keys are sorted and values rendered with ``str`` so the same business
    row always hashes the same, whatever column order the file used.
    """
    payload = json.dumps(record, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
