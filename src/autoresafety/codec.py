"""Conversion between reference-code lists and their editable delimited form."""

from __future__ import annotations

from typing import Iterable

CODE_DELIMITER = ","
CODE_JOINER = ", "


def encode(codes: Iterable[str]) -> str:
    """Join reference codes into the ``"H1, H2"`` form shown in edit fields."""
    return CODE_JOINER.join(codes)


def decode(text: str | None) -> list[str]:
    """Split a delimited reference string into trimmed, non-empty codes.

    Order and duplicates are preserved; collapsing duplicates is left to the
    caller (see ``unique_codes``).
    """
    if not text:
        return []
    return [token.strip() for token in text.split(CODE_DELIMITER) if token.strip()]


def unique_codes(codes: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for code in codes:
        if code in seen:
            continue
        seen.add(code)
        ordered.append(code)
    return ordered


def coerce_codes(value: object) -> list[str]:
    """Accept either a delimited string or a sequence of codes.

    Used by model validators so records can be built from form text
    (``"A1, A2"``) as well as from wire payloads (``["A1", "A2"]``). List
    items are only trimmed; an item holding a comma stays one entry.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return decode(value)
    if isinstance(value, (list, tuple)):
        codes: list[str] = []
        for item in value:
            if item is None:
                continue
            text = str(item).strip()
            if text:
                codes.append(text)
        return codes
    raise TypeError(f"reference codes must be a string or a list of strings, got {type(value).__name__}")
