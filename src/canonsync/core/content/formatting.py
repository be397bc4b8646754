"""
Text normalization helpers shared by every entity's format step.

All functions are pure and idempotent: feeding their output back in returns
the same string. Canonical fingerprints depend on that.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

DEFAULT_UNITS: tuple[str, ...] = ("%",)

TERMINAL_PUNCTUATION = (".", "?", "!", ":")

_WHITESPACE_RE = re.compile(r"\s+")
_WHITESPACE_BEFORE_END_RE = re.compile(r"\s([.:?!])$")
_PERIOD_BEFORE_TERMINAL_RE = re.compile(r"\.([?!:])$")
_DOUBLE_QUOTE_RE = re.compile(r"[“”„«»]")
_SINGLE_QUOTE_RE = re.compile(r"[‘’‚]")


def _unit_regex(units: Sequence[str]) -> re.Pattern[str] | None:
    if not units:
        return None
    alternatives = "|".join(re.escape(unit) for unit in units)
    return re.compile(rf"(\d)({alternatives})")


def format_text(text: str, units: Sequence[str] = DEFAULT_UNITS) -> str:
    """
    Normalize a free-text field.

    Steps, in order:
    - trim and collapse whitespace runs to a single space
    - replace curly quotes with straight ones
    - separate units from the number they follow ("12%" -> "12 %")
    - drop whitespace before trailing punctuation, and a period sitting
      right before a trailing '?', '!' or ':'

    Example:
        >>> format_text(" test  “text” 12.34% . ")
        'test "text" 12.34 %.'
    """
    formatted = _WHITESPACE_RE.sub(" ", text.strip())
    formatted = _DOUBLE_QUOTE_RE.sub('"', formatted)
    formatted = _SINGLE_QUOTE_RE.sub("'", formatted)

    unit_re = _unit_regex(units)
    if unit_re is not None:
        formatted = unit_re.sub(r"\1 \2", formatted)

    return _clean_end(formatted)


def _clean_end(text: str) -> str:
    # Both rewrites can expose a new match for the other ("a. ?"), so run to a fixpoint.
    while True:
        cleaned = _WHITESPACE_BEFORE_END_RE.sub(r"\1", collapse_terminal_period(text))
        if cleaned == text:
            return cleaned
        text = cleaned


def collapse_terminal_period(text: str) -> str:
    """Remove a period that precedes the string's own terminal punctuation."""
    return _PERIOD_BEFORE_TERMINAL_RE.sub(r"\1", text)


def remove_end_period(text: str) -> str:
    """Drop every trailing period."""
    return text.rstrip(".")


def ensure_end_period(text: str) -> str:
    """Append a period unless the text is empty or already terminated."""
    if not text or text.endswith(TERMINAL_PUNCTUATION):
        return text
    return text + "."


def capitalize_first(text: str) -> str:
    """Upper-case the first character, leaving the rest untouched."""
    if not text:
        return text
    return text[0].upper() + text[1:]


def format_option_text(
    text: str,
    *,
    preserve_case: bool = False,
    capitalize: bool = True,
    units: Sequence[str] = DEFAULT_UNITS,
) -> str:
    """
    Format answer option text.

    Options always end with terminal punctuation. Capitalization is skipped
    when the option asks to preserve its case.

    Example:
        >>> format_option_text("  option  1 ")
        'Option 1.'
        >>> format_option_text("  option  1 ", preserve_case=True)
        'option 1.'
    """
    formatted = ensure_end_period(format_text(text, units))
    if capitalize and not preserve_case:
        formatted = capitalize_first(formatted)
    return formatted


def format_name(text: str, units: Sequence[str] = DEFAULT_UNITS) -> str:
    """Format a label such as a topic name: no end period, first letter upper."""
    # Stripping periods can leave a space at the end ("a .." -> "a "), so run to a fixpoint.
    while True:
        formatted = capitalize_first(remove_end_period(format_text(text, units)))
        if formatted == text:
            return formatted
        text = formatted


def format_optional(text: str | None) -> str | None:
    """Trim an optional field, mapping blank values to None."""
    if text is None:
        return None
    trimmed = text.strip()
    return trimmed or None


def format_tags(tags: Iterable[str]) -> list[str]:
    """Trim tags and drop the empty ones, keeping authored order."""
    return [tag.strip() for tag in tags if tag.strip()]
