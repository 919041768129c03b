"""
Value coercion helpers shared by the row schema and the aggregation service.

Upstream extracts routinely carry blanks, "N/A" strings, thousands separators
and NaN cells in their metric columns. Scoring must stay resilient to those
defects, so numeric coercion never raises: anything that is not a finite
number becomes 0.0.
"""

from typing import Any, Optional

import numpy as np


def parse_numeric(value: Any) -> float:
    """
    Coerce a metric cell to a finite float, defaulting to 0.0.

    Args:
        value: Raw cell value (number, numeric string, None, NaN, ...).

    Returns:
        The parsed value, or 0.0 when it is missing, non-numeric or non-finite.

    Example:
        >>> parse_numeric("1,234.5")
        1234.5
        >>> parse_numeric("n/a")
        0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return 0.0
        value = text

    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0

    if not np.isfinite(number):
        return 0.0

    return number


def normalize_category(value: Any) -> Optional[str]:
    """
    Normalize a categorical cell to a string, keeping whitespace intact.

    Missing cells (None, NaN) become None so that the compliance analyzer
    classifies them as unmapped.
    """
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    return str(value)
