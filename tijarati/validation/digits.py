"""Locale digit normalization."""

from typing import Any

# Arabic-Indic U+0660..U+0669 and Eastern Arabic-Indic U+06F0..U+06F9
_LATIN_DIGITS = str.maketrans({
    **{chr(0x0660 + i): str(i) for i in range(10)},
    **{chr(0x06F0 + i): str(i) for i in range(10)},
})


def to_latin_digits(value: Any) -> str:
    """
    Replace Arabic-Indic and Eastern Arabic-Indic digits with ASCII digits.

    Pure and stateless. None becomes "", anything else is stringified first.
    """
    if value is None:
        return ""
    return str(value).translate(_LATIN_DIGITS)
