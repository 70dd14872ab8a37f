"""Parsing of ``[[Page]]``, ``#Tag`` and ``((block-id))`` markers."""

from __future__ import annotations

import re

_PAGE_REF = re.compile(r"\[\[([^\[\]]+)\]\]")
_TAG_REF = re.compile(r"(?<![\w#\[/:])#([\w][\w\-/]*)")
_BLOCK_REF = re.compile(r"\(\(([^()\s]+)\)\)")
_ANY_PAGE_MARKUP = re.compile(r"#?\[\[[^\]]+\]\]")


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def extract_page_references(text: str) -> list[str]:
    """Return referenced page titles in order of first appearance.

    Covers ``[[Page]]``, ``#[[Multi Word]]`` and ``#Tag``.
    """
    if not text:
        return []
    found: list[tuple[int, str]] = []
    for m in _PAGE_REF.finditer(text):
        found.append((m.start(), m.group(1).strip()))
    for m in _TAG_REF.finditer(text):
        found.append((m.start(), m.group(1)))
    found.sort(key=lambda pair: pair[0])
    return _unique([title for _, title in found if title])


def extract_block_references(text: str) -> list[str]:
    """Return referenced block ids (``((id))``) in order of first appearance."""
    if not text:
        return []
    return _unique([m.group(1) for m in _BLOCK_REF.finditer(text)])


def strip_page_references(text: str) -> str:
    """Remove every ``[[...]]`` marker and trim the result."""
    return _ANY_PAGE_MARKUP.sub("", text or "").strip()


def strip_references_to(text: str, title: str) -> str:
    """Remove only the markers that point at ``title`` (case-insensitive)."""
    escaped = re.escape(title)
    stripped = re.sub(rf"#?\[\[{escaped}\]\]", "", text or "", flags=re.IGNORECASE)
    stripped = re.sub(rf"(?<![\w#\[/:])#{escaped}(?![\w\-/])", "", stripped, flags=re.IGNORECASE)
    return stripped.strip()
