"""
Document text-extraction endpoints.

GET  /types  — file-type tags accepted for upload.
POST /parse  — extract plain text from an uploaded document.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from testgen.config import settings
from testgen.dependencies.services import get_parser_factory
from testgen.models.schemas import ParsedDocumentResponse, SupportedTypesResponse
from testgen.services.document_parser import DocumentParserFactory

logger = logging.getLogger(__name__)

router = APIRouter()


def file_type_from_filename(filename: str) -> str:
    """``"Lecture 1.PDF"`` -> ``"pdf"``."""
    return Path(filename).suffix.lower().lstrip(".")


@router.get("/types", response_model=SupportedTypesResponse)
async def supported_types(
    parser_factory: DocumentParserFactory = Depends(get_parser_factory),
) -> SupportedTypesResponse:
    return SupportedTypesResponse(file_types=sorted(parser_factory.supported_types()))


@router.post("/parse", response_model=ParsedDocumentResponse)
async def parse_document(
    file: UploadFile = File(...),
    parser_factory: DocumentParserFactory = Depends(get_parser_factory),
) -> ParsedDocumentResponse:
    """
    Extract the text of an uploaded PDF, DOCX, PPTX, TXT or Markdown file.

    - The file type is taken from the filename extension
    - Max file size: 50 MB (configurable via MAX_FILE_SIZE)
    - Nothing is stored; the text is returned to the caller
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )

    file_type = file_type_from_filename(file.filename)
    parser = parser_factory.create_parser(file_type)

    buffer = io.BytesIO()
    file_size = 0
    while True:
        chunk = await file.read(1024 * 1024)   # 1 MB slices
        if not chunk:
            break
        file_size += len(chunk)
        if file_size > settings.MAX_FILE_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=(
                    f"File exceeds the {settings.MAX_FILE_SIZE // (1024 * 1024)} MB "
                    "size limit."
                ),
            )
        buffer.write(chunk)
    buffer.seek(0)

    text = await parser.parse(buffer)

    if not text.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Document contains no extractable text.",
        )

    logger.info("Parsed %r as %s: %d bytes -> %d chars", file.filename, file_type, file_size, len(text))

    return ParsedDocumentResponse(
        filename=file.filename,
        file_type=file_type,
        text=text,
        char_count=len(text),
    )
