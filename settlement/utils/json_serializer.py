"""
JSON-safe conversion for audit snapshots and other JSON columns
"""
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively convert a snapshot into values a JSON column can store.

    Decimals become strings so money and day counts keep their exact value;
    dates and datetimes become ISO 8601 strings; enum members their value.
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return sanitize_for_json(value.model_dump())
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(item) for item in value]
    return str(value)
