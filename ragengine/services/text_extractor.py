"""Convert uploaded document bytes into plain text for chunking.

Supported content types:

* ``text/plain`` and ``text/markdown`` -- decoded as UTF-8.
* ``application/json`` -- flattened into ``key.path: value`` lines.
* ``text/csv`` -- each row rendered as ``header: value`` lines, one
  paragraph per row.
* ``application/pdf`` -- text extracted page by page with PyMuPDF, with a
  ``[Page N]`` marker line before each page so the chunker can attach page
  numbers.

All output is passed through :func:`~ragengine.utils.text.normalize_text`.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any

import fitz  # PyMuPDF

from ragengine.utils.errors import ChunkingError
from ragengine.utils.logging import get_logger
from ragengine.utils.text import normalize_text

logger = get_logger(__name__)

_TEXT_TYPES = frozenset({"text/plain", "text/markdown", "text/x-markdown", ""})

_EXTENSION_TYPES = {
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".json": "application/json",
    ".csv": "text/csv",
    ".pdf": "application/pdf",
}


def guess_content_type(filename: str) -> str:
    """Map a file name's extension to a supported content type."""
    lowered = filename.lower()
    for extension, content_type in _EXTENSION_TYPES.items():
        if lowered.endswith(extension):
            return content_type
    return "text/plain"


def extract_text(data: bytes | str, content_type: str = "text/plain") -> str:
    """Return normalized plain text for *data* of the given *content_type*.

    Raises
    ------
    ChunkingError
        If the content type is unsupported or the payload cannot be parsed.
    """
    kind = content_type.split(";", 1)[0].strip().lower()

    if kind == "application/pdf":
        if isinstance(data, str):
            raise ChunkingError(message="PDF content must be supplied as bytes")
        return normalize_text(_pdf_text(data))

    text = data if isinstance(data, str) else data.decode("utf-8", errors="replace")

    if kind in _TEXT_TYPES:
        return normalize_text(text)
    if kind == "application/json":
        return normalize_text(_json_text(text))
    if kind == "text/csv":
        return normalize_text(_csv_text(text))

    raise ChunkingError(message=f"Unsupported content type: {content_type}")


def _pdf_text(data: bytes) -> str:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as exc:
        raise ChunkingError(message=f"Unreadable PDF: {exc}") from exc

    pages: list[str] = []
    try:
        for page_num in range(len(doc)):
            page_text = doc[page_num].get_text("text").strip()
            if page_text:
                pages.append(f"[Page {page_num + 1}]\n{page_text}")
    finally:
        doc.close()

    if not pages:
        logger.warning("pdf_no_text_extracted")
    return "\n\n".join(pages)


def _json_text(text: str) -> str:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ChunkingError(message=f"Invalid JSON document: {exc.msg}") from exc
    lines: list[str] = []
    _flatten(payload, "", lines)
    return "\n".join(lines)


def _flatten(value: Any, prefix: str, lines: list[str]) -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            _flatten(item, f"{prefix}.{key}" if prefix else str(key), lines)
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _flatten(item, f"{prefix}[{index}]", lines)
    elif value is not None:
        lines.append(f"{prefix}: {value}" if prefix else str(value))


def _csv_text(text: str) -> str:
    reader = csv.reader(io.StringIO(text))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        return ""
    header, body = rows[0], rows[1:]
    if not body:
        return ", ".join(header)
    paragraphs = []
    for row in body:
        pairs = [
            f"{header[i] if i < len(header) else f'column_{i + 1}'}: {cell}"
            for i, cell in enumerate(row)
            if cell.strip()
        ]
        paragraphs.append("\n".join(pairs))
    return "\n\n".join(paragraphs)
