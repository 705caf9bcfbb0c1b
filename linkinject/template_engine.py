"""Placeholder resolver — replaces ${KEY} and ${L:property} spans.

``${KEY}`` is looked up case-insensitively in the effective dictionary,
``${L:property}`` in the current document's frontmatter. Unknown keys and
property lookups without a usable document are left as literal text; a
property missing from present frontmatter is replaced with the empty
string and reported on the returned ``Resolution``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from linkinject.models import DEFAULT_SUBSTITUTION
from linkinject.profiles import EffectiveDictionary
from linkinject.properties import MISSING, Document, lookup_property, stringify
from linkinject.scanner import OPEN, has_top_level_separator, scan

logger = logging.getLogger(__name__)

PROPERTY_PREFIX = "L:"

_INVALID_STRUCTURAL_CHARS = re.compile(r"[/\\:]")


@dataclass(frozen=True)
class ResolutionContext:
    """Lookup tables for one resolution call."""

    dictionary: EffectiveDictionary
    document: Optional[Document] = None
    substitution: str = DEFAULT_SUBSTITUTION

    def __post_init__(self):
        if not isinstance(self.dictionary, EffectiveDictionary):
            object.__setattr__(self, "dictionary", EffectiveDictionary(self.dictionary))

    @property
    def document_name(self) -> str:
        return self.document.name if self.document else "unknown"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one template."""

    text: str
    missing_properties: tuple[str, ...] = ()
    document_name: str = "unknown"

    @property
    def ok(self) -> bool:
        return not self.missing_properties

    @property
    def message(self) -> Optional[str]:
        if self.ok:
            return None
        names = ", ".join(f'"{name}"' for name in self.missing_properties)
        return f"[{self.document_name}] Property {names} does not exist in this file."


def sanitize(value: str, substitution: str = DEFAULT_SUBSTITUTION) -> str:
    """Replace ``/``, ``\\`` and ``:`` so *value* is usable inside a link path."""
    return _INVALID_STRUCTURAL_CHARS.sub(lambda _m: substitution, value)


def resolve(
    text: str,
    context: ResolutionContext | Mapping[str, str],
    structural: bool = True,
) -> Resolution:
    """Resolve every non-alternation placeholder in *text*.

    Nested placeholders are resolved inside-out before the enclosing span
    is looked up. Spans carrying a top-level ``,,`` are left untouched;
    they belong to the expander.
    """
    if not isinstance(context, ResolutionContext):
        context = ResolutionContext(dictionary=context)
    missing: list[str] = []
    resolved = _resolve_text(text, context, structural, missing)
    return Resolution(text=resolved, missing_properties=tuple(missing), document_name=context.document_name)


def _resolve_text(text: str, context: ResolutionContext, structural: bool, missing: list[str]) -> str:
    spans = scan(text)
    if not spans:
        return text
    out: list[str] = []
    pos = 0
    for span in spans:
        out.append(text[pos:span.start])
        if has_top_level_separator(span.content):
            out.append(span.match)
        else:
            content = span.content
            if OPEN in content:
                content = _resolve_text(content, context, structural, missing)
            out.append(_replace(content, context, structural, missing))
        pos = span.end
    out.append(text[pos:])
    return "".join(out)


def _replace(content: str, context: ResolutionContext, structural: bool, missing: list[str]) -> str:
    literal = OPEN + content + "}"

    if content.startswith(PROPERTY_PREFIX):
        name = content[len(PROPERTY_PREFIX):]
        document = context.document
        if document is None or not document.has_metadata:
            return literal
        value = lookup_property(document, name)
        if value is MISSING:
            logger.debug("Property %r missing from %s", name, document.path)
            missing.append(name)
            return ""
        rendered = stringify(value)
        return sanitize(rendered, context.substitution) if structural else rendered

    value = context.dictionary.lookup(content)
    if value is None:
        return literal
    return sanitize(value, context.substitution) if structural else value
