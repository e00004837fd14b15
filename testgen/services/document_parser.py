"""
Document parser registry (factory) for uploaded study material.

A parser is any object with ``supported_type()`` and an async ``parse(stream)``
returning the extracted plain text.  ``DocumentParserFactory`` maps a file-type
tag (``"pdf"``, ``"docx"``, ``"pptx"``, ``"txt"``, ``"md"``) to its parser so new
formats can be added without touching call sites.

The registry is filled once at startup by ``build_parser_factory()`` and only
read afterwards.
"""
from __future__ import annotations

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Dict, FrozenSet, Iterable, List, Optional, Protocol

import fitz  # PyMuPDF
from docx import Document as DocxDocument
from pptx import Presentation
from pptx.shapes.group import GroupShape

from testgen.config import settings
from testgen.exceptions import DocumentParseError, ParserIOError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], str]


class DocumentParser(Protocol):
    """Contract every registered parser satisfies."""

    async def parse(self, stream: BinaryIO) -> str:
        ...

    def supported_type(self) -> str:
        ...


# ---------------------------------------------------------------------------
# Shared stream handling
# ---------------------------------------------------------------------------

class _StreamParser(ABC):
    """Reads the whole stream off the event loop, then extracts text from the bytes."""

    FILE_TYPE: str = ""

    def __init__(self, extractor: Optional[Extractor] = None) -> None:
        self._extractor = extractor or self._extract

    def supported_type(self) -> str:
        return self.FILE_TYPE

    async def parse(self, stream: BinaryIO) -> str:
        data = await asyncio.to_thread(self._read, stream)
        if not data:
            return ""
        text = await asyncio.to_thread(self._extractor, data)
        logger.debug("%s parser extracted %d chars", self.FILE_TYPE, len(text))
        return text

    def _read(self, stream: BinaryIO) -> bytes:
        try:
            data = stream.read()
        except (OSError, ValueError) as exc:  # ValueError: read on a closed file
            raise ParserIOError(self.FILE_TYPE, str(exc)) from exc
        if isinstance(data, str):
            return data.encode("utf-8")
        return data or b""

    @abstractmethod
    def _extract(self, data: bytes) -> str:
        """Extract plain text from the raw document bytes."""


# ---------------------------------------------------------------------------
# Plain-text formats
# ---------------------------------------------------------------------------

class TXTParser(_StreamParser):
    """Plain text; undecodable bytes are replaced rather than rejected."""

    FILE_TYPE = "txt"

    def _extract(self, data: bytes) -> str:
        return data.decode("utf-8-sig", errors="replace")


class MDParser(TXTParser):
    """Markdown is returned verbatim, markup included."""

    FILE_TYPE = "md"


# ---------------------------------------------------------------------------
# Binary formats
# ---------------------------------------------------------------------------

class PDFParser(_StreamParser):
    FILE_TYPE = "pdf"

    def _extract(self, data: bytes) -> str:
        """Return the text layer of every page, pages separated by a blank line."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise DocumentParseError(self.FILE_TYPE, str(exc)) from exc

        with doc:
            if doc.needs_pass:
                raise DocumentParseError(self.FILE_TYPE, "document is password-protected")
            pages = [page.get_text("text").strip() for page in doc]

        return "\n\n".join(p for p in pages if p)


class DOCXParser(_StreamParser):
    FILE_TYPE = "docx"

    def _extract(self, data: bytes) -> str:
        """Return paragraph text followed by table rows (cells joined with ``|``)."""
        try:
            doc = DocxDocument(io.BytesIO(data))
        except Exception as exc:
            raise DocumentParseError(self.FILE_TYPE, str(exc)) from exc

        parts: List[str] = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        return "\n".join(parts)


class PPTXParser(_StreamParser):
    FILE_TYPE = "pptx"

    def _extract(self, data: bytes) -> str:
        """Return the text of every slide in presentation order, one line per paragraph."""
        try:
            prs = Presentation(io.BytesIO(data))
        except Exception as exc:
            raise DocumentParseError(self.FILE_TYPE, str(exc)) from exc

        slide_texts: List[str] = []
        for slide in prs.slides:
            lines: List[str] = []
            for shape in slide.shapes:
                lines.extend(_shape_lines(shape))
            if lines:
                slide_texts.append("\n".join(lines))

        return "\n\n".join(slide_texts)


def _shape_lines(shape) -> List[str]:
    """Non-empty text lines of a shape: text frame paragraphs, table cells, grouped shapes."""
    lines: List[str] = []

    if shape.has_text_frame:
        for paragraph in shape.text_frame.paragraphs:
            text = paragraph.text.strip()
            if text:
                lines.append(text)

    if shape.has_table:
        for row in shape.table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))

    if isinstance(shape, GroupShape):
        for child in shape.shapes:
            lines.extend(_shape_lines(child))

    return lines


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class DocumentParserFactory:
    """Maps a file-type tag to its parser (last registration for a tag wins)."""

    def __init__(self, parsers: Optional[Iterable[DocumentParser]] = None) -> None:
        self._parsers: Dict[str, DocumentParser] = {}
        for parser in parsers or ():
            self.register(parser)

    def register(self, parser: DocumentParser) -> None:
        self._parsers[parser.supported_type()] = parser

    def create_parser(self, file_type: str) -> DocumentParser:
        """Return the parser for *file_type* (exact, case-sensitive match)."""
        try:
            return self._parsers[file_type]
        except KeyError:
            raise UnsupportedFileTypeError(file_type) from None

    def supported_types(self) -> FrozenSet[str]:
        return frozenset(self._parsers)

    def __len__(self) -> int:
        return len(self._parsers)

    def __contains__(self, file_type: object) -> bool:
        return file_type in self._parsers


def build_parser_factory(file_types: Optional[Iterable[str]] = None) -> DocumentParserFactory:
    """
    Build the registry with the built-in parsers.

    Only tags listed in *file_types* (default: ``settings.SUPPORTED_FILE_TYPES``)
    are registered; unknown tags in the list are ignored with a warning.
    """
    enabled = set(settings.SUPPORTED_FILE_TYPES if file_types is None else file_types)
    builtins: List[DocumentParser] = [PDFParser(), DOCXParser(), PPTXParser(), TXTParser(), MDParser()]

    factory = DocumentParserFactory(p for p in builtins if p.supported_type() in enabled)

    unknown = enabled - factory.supported_types()
    if unknown:
        logger.warning("No built-in parser for: %s", ", ".join(sorted(unknown)))
    logger.info("Registered document parsers: %s", ", ".join(sorted(factory.supported_types())))
    return factory
