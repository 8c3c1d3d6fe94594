"""Enum/string normalisation for status and type columns."""
from enum import Enum


def enum_to_str(v):
    """
    Plain string value of an enum member or string, None unchanged.

    Status columns are stored as strings: rows read back hold str, while
    attributes assigned in the current transaction may still hold members.
    """
    if v is None:
        return None
    return v.value if isinstance(v, Enum) else str(v)
