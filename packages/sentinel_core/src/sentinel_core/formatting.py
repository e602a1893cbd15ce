"""Number and unit formatting for alert messages."""

import math

_BYTE_UNITS = "KMGTPE"


def format_decimal(value: float) -> str:
    """Format without trailing zeros or a dangling decimal point (50.10 -> "50.1")."""
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def percentile_suffix(percentile: float) -> str:
    """Ordinal suffix for a percentile value.

    Works on the digit string of the formatted value, so 50.12 reads as
    "5012" (-> "th") and 50.21 as "5021" (-> "st").
    """
    digits = format_decimal(percentile).replace(".", "").lstrip("-")
    if digits[-2:] in ("11", "12", "13"):
        return "th"
    last = digits[-1]
    if last == "1":
        return "st"
    if last == "2":
        return "nd"
    if last == "3":
        return "rd"
    return "th"


def percentile_with_suffix(percentile: float) -> str:
    """e.g. 95 -> "95th", 99.9 -> "99.9th"."""
    return format_decimal(percentile) + percentile_suffix(percentile)


def display_six_digits_of_precision(value: float) -> str:
    """Round to six significant digits with thousands separators."""
    if value == 0:
        return "0"
    magnitude = math.floor(math.log10(abs(value)))
    decimals = max(0, 5 - magnitude)
    text = f"{value:,.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def with_unit(value: float, unit: str) -> str:
    """Pluralize ``unit`` unless ``value`` is exactly 1."""
    text = f"{display_six_digits_of_precision(value)} {unit}"
    return text if value == 1 else text + "s"


def format_bytes(num_bytes: float) -> str:
    """Human readable byte size using 1024-based units."""
    if num_bytes == 1:
        return "1 byte"
    if num_bytes < 1024:
        return f"{display_six_digits_of_precision(num_bytes)} bytes"
    exponent = min(int(math.log(num_bytes, 1024)), len(_BYTE_UNITS))
    scaled = num_bytes / 1024**exponent
    return f"{scaled:.1f} {_BYTE_UNITS[exponent - 1]}B"
