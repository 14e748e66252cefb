from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Mapping

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S %Z",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M%p",
    "%Y-%m-%dT%H:%M:%S",
)


def first_non_empty(row: Mapping[str, str], *keys: str) -> str:
    for key in keys:
        value = row.get(key.lower())
        if value is not None and value.strip():
            return value
    return ""


def parse_decimal(value: str | None) -> Decimal:
    """Parse a number column; empty means zero, thousands separators are dropped."""
    if value is None:
        return Decimal("0")
    text = value.strip().replace(",", "")
    if not text:
        return Decimal("0")

    try:
        result = Decimal(text)
    except InvalidOperation:
        # Currency symbols, units and other decoration around the number.
        cleaned = "".join(ch for ch in text if ch.isdigit() or ch in ".-")
        try:
            result = Decimal(cleaned)
        except InvalidOperation as err:
            raise ValueError(f"unable to parse number: {value!r}") from err

    if not result.is_finite():
        raise ValueError(f"unable to parse number: {value!r}")
    return result


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse the timestamp layouts seen in exchange exports; naive values are UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            raise ValueError("missing timestamp")
        parsed = _parse_timestamp_text(text)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_timestamp_text(text: str) -> datetime:
    normalized = f"{text[:-1]}+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        pass

    for layout in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, layout)
        except ValueError:
            continue
    raise ValueError(f"unable to parse time: {text!r}")
