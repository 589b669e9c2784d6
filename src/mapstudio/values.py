"""Value parsing and display formatting for data-row cells."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from .geography import format_country, format_state
from .models import ColumnSchema, DataRow


_COMPACT_RE = re.compile(r"^(\d+(\.\d+)?)([KMB])$", re.IGNORECASE)
_COMPACT_MULTIPLIERS = {"K": 1_000.0, "M": 1_000_000.0, "B": 1_000_000_000.0}
_NUMERIC_NOISE_RE = re.compile(r"[,$%]")
_LEADING_FLOAT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")

_MONTHS_SHORT = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_MONTHS_LONG = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_FALLBACK_DATE_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%d %B %Y", "%B %d, %Y", "%b %d, %Y", "%d %b %Y")

NUMBER_FORMATS = ("raw", "comma", "compact", "currency", "percent", "0-decimals", "1-decimal", "2-decimals")
DATE_FORMATS = (
    "yyyy-mm-dd",
    "mm/dd/yyyy",
    "dd/mm/yyyy",
    "mmm-dd-yyyy",
    "mmmm-dd-yyyy",
    "dd-mmm-yyyy",
    "yyyy",
    "mmm-yyyy",
    "mm/dd/yy",
    "dd/mm/yy",
)
DEFAULT_FORMATS = {
    "number": "raw",
    "date": "yyyy-mm-dd",
    "state": "abbreviated",
    "coordinate": "raw",
    "country": "raw",
    "text": "raw",
}


@dataclass(frozen=True, slots=True)
class NumericBounds:
    min: float
    max: float


def parse_compact_number(value: str) -> float | None:
    """Parse compact notation such as `1.5K`, `20m` or `3B`."""
    match = _COMPACT_RE.match(value)
    if match is None:
        return None
    number = float(match.group(1))
    if not math.isfinite(number):
        return None
    return number * _COMPACT_MULTIPLIERS[match.group(3).upper()]


def get_numeric_value(value: Any) -> float | None:
    """Best-effort numeric reading of a cell; None when the cell is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    compact = parse_compact_number(text)
    if compact is not None:
        return compact

    cleaned = _NUMERIC_NOISE_RE.sub("", text)
    # Leading-number semantics: "12 units" reads as 12.
    match = _LEADING_FLOAT_RE.match(cleaned)
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def get_numeric_bounds(rows: Sequence[DataRow], column: str) -> NumericBounds:
    if not column or not rows:
        return NumericBounds(0.0, 100.0)
    values = [v for v in (get_numeric_value(row.get(column)) for row in rows) if v is not None]
    if not values:
        return NumericBounds(0.0, 100.0)
    return NumericBounds(min(values), max(values))


def get_unique_values(rows: Iterable[DataRow], column: str) -> list[str]:
    """Distinct non-blank values of `column` in first-seen order."""
    if not column:
        return []
    seen: dict[str, None] = {}
    for row in rows:
        value = row.get(column)
        if value is None:
            continue
        text = js_string(value).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def get_sorted_unique_values(rows: Iterable[DataRow], column: str) -> list[str]:
    return sorted(get_unique_values(rows, column))


def js_string(value: Any) -> str:
    """String form of a cell as the host layer displays it (`1500.0` -> `1500`)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def format_number(value: Any, fmt: str) -> str:
    number = get_numeric_value(value)
    if number is None:
        return js_string(value)

    if fmt == "comma":
        return _grouped(number, _fraction_digits(number))
    if fmt == "compact":
        magnitude = abs(number)
        if magnitude >= 1e9:
            return f"{number / 1e9:.1f}B"
        if magnitude >= 1e6:
            return f"{number / 1e6:.1f}M"
        if magnitude >= 1e3:
            return f"{number / 1e3:.1f}K"
        return js_string(number)
    if fmt == "currency":
        sign = "-" if number < 0 else ""
        return f"{sign}${_grouped(abs(number), 2)}"
    if fmt == "percent":
        return f"{number * 100:.0f}%"
    if fmt == "0-decimals":
        return _grouped(float(math.floor(number + 0.5)), 0)
    if fmt == "1-decimal":
        return _grouped(number, 1)
    if fmt == "2-decimals":
        return _grouped(number, 2)
    return js_string(number)


def _fraction_digits(number: float) -> int:
    text = repr(abs(number))
    if "e" in text or "." not in text:
        return 0
    fraction = text.split(".", 1)[1].rstrip("0")
    return len(fraction)


def _grouped(number: float, decimals: int) -> str:
    text = f"{number:,.{decimals}f}"
    if text.startswith("-") and float(text[1:].replace(",", "")) == 0:
        return text[1:]
    return text


def parse_date_value(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    match = _ISO_DATE_RE.match(text)
    if match is not None:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for pattern in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    return None


def format_date(value: Any, fmt: str) -> str:
    if value is None or value == "":
        return ""
    parsed = parse_date_value(value)
    if parsed is None:
        return js_string(value)

    y, m, d = parsed.year, parsed.month, parsed.day
    short = _MONTHS_SHORT[m - 1]
    if fmt == "mm/dd/yyyy":
        return f"{m}/{d}/{y}"
    if fmt == "dd/mm/yyyy":
        return f"{d:02d}/{m:02d}/{y}"
    if fmt == "mmm-dd-yyyy":
        return f"{short} {d:02d}, {y}"
    if fmt == "mmmm-dd-yyyy":
        return f"{_MONTHS_LONG[m - 1]} {d:02d}, {y}"
    if fmt == "dd-mmm-yyyy":
        return f"{d:02d} {short} {y}"
    if fmt == "yyyy":
        return str(y)
    if fmt == "mmm-yyyy":
        return f"{short} {y}"
    if fmt == "mm/dd/yy":
        return f"{m}/{d}/{y % 100:02d}"
    if fmt == "dd/mm/yy":
        return f"{d:02d}/{m:02d}/{y % 100:02d}"
    return parsed.isoformat()


def default_format(column_type: str) -> str:
    return DEFAULT_FORMATS.get(column_type, "raw")


def format_column_value(value: Any, column: str, columns: ColumnSchema, geography: str) -> str:
    """Format one cell according to its column's declared type and display format."""
    column_type = columns.type_of(column)
    fmt = columns.format_of(column) or default_format(column_type)
    if column_type == "number":
        return format_number(value, fmt)
    if column_type == "date":
        return format_date(value, fmt)
    if column_type == "state":
        return format_state(value, fmt, geography)
    if column_type == "country":
        return format_country(value, fmt)
    return js_string(value)


def render_label_text(template: str, row: DataRow | None, columns: ColumnSchema, geography: str) -> str:
    """Expand `{column}` placeholders in `template` against `row`.

    Missing cells expand to nothing; newlines become `<br/>` so the label engine
    sees one line-break convention. Returns "" when there is no template or row.
    """
    if not template or row is None:
        return ""

    def _substitute(match: re.Match[str]) -> str:
        column = match.group(1)
        value = row.get(column)
        if value is None:
            return ""
        return format_column_value(value, column, columns, geography)

    return _PLACEHOLDER_RE.sub(_substitute, template).replace("\n", "<br/>")
