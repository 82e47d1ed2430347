"""Free-form input coercion: numeric parsing with bounds and text sanitization"""

import math
import re

from smart_advisor.domain.exceptions import InvalidNumber

MAX_NAME_LENGTH = 50

_NON_NUMERIC = re.compile(r"[^0-9.]")
_MARKUP_CHARS = re.compile(r"[<>'\"&]")


def sanitize_numeric_text(raw: str | None) -> str:
    """
    Strip everything but digits and one decimal point.

    A leading minus sign is preserved so negative returns stay expressible;
    any decimal point after the first is dropped.

    Example:
        "€ 1.234.5x" -> "1.2345"
        "-3.5%"      -> "-3.5"
    """
    if raw is None:
        return ""
    text = str(raw).strip()
    negative = text.startswith("-")
    digits = _NON_NUMERIC.sub("", text)

    head, dot, tail = digits.partition(".")
    cleaned = head + dot + tail.replace(".", "")
    return f"-{cleaned}" if negative and cleaned else cleaned


def _parse(raw: str | None) -> float | None:
    cleaned = sanitize_numeric_text(raw)
    if cleaned in ("", "-", ".", "-."):
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _in_bounds(value: float, minimum: float | None, maximum: float | None) -> bool:
    if minimum is not None and value < minimum:
        return False
    if maximum is not None and value > maximum:
        return False
    return True


def parse_number(
    raw: str | None,
    minimum: float | None = None,
    maximum: float | None = None,
    default: float = 0.0,
) -> float:
    """Display-mode parse: never raises, falls back to `default`"""
    value = _parse(raw)
    if value is None or not _in_bounds(value, minimum, maximum):
        return default
    return value


def coerce_number(
    raw: str | None,
    minimum: float | None = None,
    maximum: float | None = None,
    field: str = "value",
) -> float:
    """
    Validated parse for inputs gating a calculation.

    Raises:
        InvalidNumber: When the input is empty, unparsable, non-finite or
            outside [minimum, maximum]
    """
    value = _parse(raw)
    if value is None:
        raise InvalidNumber(field, "a number is required")
    if not _in_bounds(value, minimum, maximum):
        if minimum is not None and maximum is not None:
            reason = f"must be between {minimum:g} and {maximum:g}"
        elif minimum is not None:
            reason = f"must be at least {minimum:g}"
        else:
            reason = f"must be at most {maximum:g}"
        raise InvalidNumber(field, reason)
    return value


def is_valid_number(raw: str | None, minimum: float | None = None, maximum: float | None = None) -> bool:
    """True when `raw` is empty (still being typed) or a number within bounds"""
    if sanitize_numeric_text(raw) == "":
        return True
    value = _parse(raw)
    return value is not None and _in_bounds(value, minimum, maximum)


def sanitize_text(value: str | None, max_length: int = MAX_NAME_LENGTH) -> str:
    """Trim, strip markup-significant characters and cap the length"""
    if value is None:
        return ""
    cleaned = _MARKUP_CHARS.sub("", str(value).strip())
    return cleaned[:max_length].strip()
