"""OR-pattern expansion: ``${A,,B}`` groups and their cartesian product."""

from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from linkinject.scanner import ALTERNATION_SEPARATOR, OPEN, Span, has_top_level_separator, scan, split_top_level
from linkinject.template_engine import PROPERTY_PREFIX, ResolutionContext, resolve

logger = logging.getLogger(__name__)

SINGLE_LABEL = "Open"

# Innermost placeholders only: no braces or "$" inside.
_INNER_PLACEHOLDER = re.compile(r"\$\{([^${}]+)\}")


@dataclass(frozen=True)
class Candidate:
    """One fully resolved alternative of a template."""

    label: str                 # Options of the combination joined with " + "
    value: str                 # Resolved template text
    display: str = ""          # Dictionary value of the first option, else the option itself
    keys: tuple[str, ...] = ()  # Dictionary keys the combination's options reference
    missing_properties: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.missing_properties


def has_alternation(text: str) -> bool:
    """True when any top-level span of *text* holds a top-level ``,,``."""
    return any(has_top_level_separator(span.content) for span in scan(text))


def alternation_spans(text: str) -> list[Span]:
    return [span for span in scan(text) if has_top_level_separator(span.content)]


def normalize_option(option: str) -> str:
    """Wrap a bare word as ``${word}``; options with a placeholder pass through."""
    trimmed = option.strip()
    if OPEN in trimmed:
        return trimmed
    return OPEN + trimmed + "}"


def split_options(content: str) -> list[str]:
    return [normalize_option(part) for part in split_top_level(content, ALTERNATION_SEPARATOR)]


def extract_keys(text: str) -> list[str]:
    """Dictionary keys referenced by *text*, property and OR spans excluded."""
    keys: list[str] = []
    seen: set[str] = set()
    for match in _INNER_PLACEHOLDER.finditer(text):
        name = match.group(1).strip()
        if not name or name.startswith(PROPERTY_PREFIX) or ALTERNATION_SEPARATOR in name:
            continue
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        keys.append(name)
    return keys


def _substitute(text: str, spans: Sequence[Span], options: Sequence[str]) -> str:
    out: list[str] = []
    pos = 0
    for span, option in zip(spans, options):
        out.append(text[pos:span.start])
        out.append(option)
        pos = span.end
    out.append(text[pos:])
    return "".join(out)


def _display_value(option: str, context: ResolutionContext) -> str:
    keys = extract_keys(option)
    if keys:
        value = context.dictionary.lookup(keys[0])
        if value is not None:
            return value
    return option


def expand(
    text: str,
    context: ResolutionContext | Mapping[str, str],
    structural: bool = True,
) -> list[Candidate]:
    """Expand every top-level alternation group of *text*.

    Candidates enumerate the cartesian product with the first group varying
    slowest and the last group fastest. Groups nested inside an option are
    not part of the product; they stay as text in that candidate.
    """
    if not isinstance(context, ResolutionContext):
        context = ResolutionContext(dictionary=context)

    spans = alternation_spans(text)
    if not spans:
        resolution = resolve(text, context, structural)
        return [Candidate(
            label=SINGLE_LABEL,
            value=resolution.text,
            missing_properties=resolution.missing_properties,
        )]

    groups = [split_options(span.content) for span in spans]
    candidates: list[Candidate] = []
    for combination in itertools.product(*groups):
        resolution = resolve(_substitute(text, spans, combination), context, structural)
        keys = extract_keys("\n".join(combination))
        candidates.append(Candidate(
            label=" + ".join(combination),
            value=resolution.text,
            display=_display_value(combination[0], context),
            keys=tuple(keys),
            missing_properties=resolution.missing_properties,
        ))
    logger.debug(
        "Expanded %d alternation group(s) of %r into %d candidate(s)",
        len(spans), text, len(candidates),
    )
    return candidates
