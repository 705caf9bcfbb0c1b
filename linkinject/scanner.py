"""Balanced-brace scanner for ``${...}`` placeholder spans."""

from __future__ import annotations

from dataclasses import dataclass

OPEN = "${"
ALTERNATION_SEPARATOR = ",,"


@dataclass(frozen=True)
class Span:
    """One top-level ``${...}`` span found in a template."""

    match: str    # Full matched text, "${" and "}" included
    content: str  # Everything between the outer braces
    start: int    # Offset of "$" in the scanned text

    @property
    def end(self) -> int:
        return self.start + len(self.match)


def scan(text: str) -> list[Span]:
    """Return every top-level ``${...}`` span of *text*, left to right.

    Nested ``${`` sequences belong to the enclosing span's content. A span
    whose braces never balance is not emitted, and since the scan consumes
    the rest of the string looking for its close, nothing after it is
    emitted either.
    """
    spans: list[Span] = []
    i = 0
    n = len(text)
    while i < n:
        if not text.startswith(OPEN, i):
            i += 1
            continue
        start = i
        i += len(OPEN)
        depth = 1
        chars: list[str] = []
        while i < n and depth > 0:
            ch = text[i]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
            if depth > 0:
                chars.append(ch)
            i += 1
        if depth == 0:
            spans.append(Span(match=text[start:i], content="".join(chars), start=start))
    return spans


def split_top_level(content: str, separator: str = ALTERNATION_SEPARATOR) -> list[str]:
    """Split *content* on *separator* wherever it sits outside nested braces."""
    parts: list[str] = []
    depth = 0
    last = 0
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        if ch == "{":
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
        elif depth == 0 and content.startswith(separator, i):
            parts.append(content[last:i])
            i += len(separator)
            last = i
            continue
        i += 1
    parts.append(content[last:])
    return parts


def has_top_level_separator(content: str, separator: str = ALTERNATION_SEPARATOR) -> bool:
    return len(split_top_level(content, separator)) > 1
