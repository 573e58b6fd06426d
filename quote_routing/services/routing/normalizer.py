"""Postal code normalization."""

import re
from typing import Optional

_FOUR_DIGITS = re.compile(r"(\d{4})")


def normalize_postal_code(raw_postal_code: Optional[str]) -> Optional[str]:
    """Extract the canonical 4-digit postal code from free text.

    Both plain codes ("1870") and the CPA format ("B1871ABC") are accepted:
    the first run of four digits wins.

    Args:
        raw_postal_code: Value typed by the customer

    Returns:
        The 4-digit code, or None when the input holds no such run
    """
    value = str(raw_postal_code).strip().upper() if raw_postal_code is not None else ""
    if not value:
        return None

    match = _FOUR_DIGITS.search(value)
    return match.group(1) if match else None
