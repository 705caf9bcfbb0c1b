"""Per-document property lookup for ``${L:property}`` placeholders."""

from __future__ import annotations

import datetime
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

STRUCTURAL_SUFFIX = ".md"
_FRONTMATTER_FENCE = "---"


class _Missing:
    """Marker for a property absent from otherwise present metadata."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class Document:
    """A document as seen by the resolver.

    ``metadata`` is the parsed frontmatter mapping, or ``None`` when the
    document has none. Only markdown documents take part in property lookup.
    """

    path: str
    metadata: Optional[Mapping[str, Any]] = None

    @property
    def name(self) -> str:
        return PurePosixPath(self.path.replace("\\", "/")).stem or "unknown"

    @property
    def is_structural(self) -> bool:
        return self.path.lower().endswith(STRUCTURAL_SUFFIX)

    @property
    def has_metadata(self) -> bool:
        return self.is_structural and self.metadata is not None


def lookup_property(document: Document, name: str) -> Any:
    """Return the value of property *name* (case-insensitive) or ``MISSING``."""
    if document.metadata is None:
        return MISSING
    wanted = name.lower()
    for key, value in document.metadata.items():
        if str(key).lower() == wanted:
            return value
    return MISSING


def stringify(value: Any) -> str:
    """Render any frontmatter value as text.

    Lists join their items with ``,``, booleans and null use their YAML
    spelling, integral floats drop the fraction, mappings become JSON.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, default=str)
    return str(value)


def parse_frontmatter(text: str) -> Optional[dict]:
    """Extract the leading ``---`` fenced YAML block of a markdown text."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != _FRONTMATTER_FENCE:
        return None
    for idx in range(1, len(lines)):
        if lines[idx].strip() == _FRONTMATTER_FENCE:
            try:
                raw = yaml.safe_load("\n".join(lines[1:idx]))
            except yaml.YAMLError as exc:
                logger.warning("Invalid frontmatter YAML, ignoring: %s", exc)
                return None
            if raw is None:
                return {}
            if not isinstance(raw, dict):
                logger.warning("Frontmatter is not a mapping (got %s), ignoring", type(raw).__name__)
                return None
            return raw
    return None


def load_document(path: str | Path) -> Document:
    """Read a document from disk, parsing its frontmatter when it has one."""
    path = Path(path)
    metadata = None
    if path.suffix.lower() == STRUCTURAL_SUFFIX:
        metadata = parse_frontmatter(path.read_text(encoding="utf-8"))
    return Document(path=str(path), metadata=metadata)
