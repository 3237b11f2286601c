"""Plain-text extraction for uploaded documents (.txt, .md, .pdf)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable

import pypdf
from pypdf.errors import PyPdfError

from cinechat.errors import ValidationError

_HEADING_PREFIX_RE = re.compile(r"^#+\s*")
_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")


def extract_text(path: Path) -> str:
    """Return the text content of *path*, dispatching on its extension.

    Raises:
        ValidationError: If the type is unsupported or the file cannot be decoded.
    """
    ext = path.suffix.lower()
    extractor = _EXTRACTORS.get(ext)
    if extractor is None:
        raise ValidationError(f"Unsupported file type: {ext or '(none)'}", action="extract text")
    try:
        return extractor(path)
    except UnicodeDecodeError as exc:
        raise ValidationError(
            f"{path.name} is not valid UTF-8 text", action="extract text"
        ) from exc


def _extract_plain(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _extract_markdown(path: Path) -> str:
    return clean_markdown(path.read_text(encoding="utf-8"))


def _extract_pdf(path: Path) -> str:
    """Extract all page text; pages without text (scans) are skipped."""
    try:
        reader = pypdf.PdfReader(str(path))
        parts: list[str] = []
        for page in reader.pages:
            stripped = (page.extract_text() or "").strip()
            if stripped:
                parts.append(stripped)
    except PyPdfError as exc:
        raise ValidationError(f"PDF extraction failed: {exc}", action="extract text") from exc
    return "\n\n".join(parts)


def clean_markdown(text: str) -> str:
    """Strip Markdown syntax, keeping the readable text.

    Heading markers, link targets, emphasis markers, inline backticks and
    code fence lines are removed. Blank lines are preserved so paragraph
    breaks survive for the chunker.
    """
    cleaned: list[str] = []
    for line in text.split("\n"):
        line = line.strip()
        if not line:
            cleaned.append("")
            continue
        if line.startswith("```"):
            continue
        if line.startswith("#"):
            line = _HEADING_PREFIX_RE.sub("", line).strip()
        line = _LINK_RE.sub(r"\1", line)
        for marker in ("**", "*", "__", "_", "`"):
            line = line.replace(marker, "")
        cleaned.append(line)
    return "\n".join(cleaned)


_EXTRACTORS: dict[str, Callable[[Path], str]] = {
    ".txt": _extract_plain,
    ".md": _extract_markdown,
    ".pdf": _extract_pdf,
}
