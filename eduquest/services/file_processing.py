"""
File Processing Service
Validates uploaded files and extracts their text: PDFs with PyMuPDF, images
through the LLM's vision input, plain text by decoding.
FILE: eduquest/services/file_processing.py
"""
import logging
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
from pydantic import BaseModel

from eduquest.core.config import settings
from eduquest.models.generation import ContentExtraction
from eduquest.services.llm_client import LLMClientError, MediaPart, generate_content
from eduquest.utils.quiz_prompt import IMAGE_EXTRACTION_PROMPT, PDF_EXTRACTION_PROMPT

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "application/pdf",
    "text/plain",
    "text/csv",
    "text/markdown",
    "application/json",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

WORD_MIME_TYPES = {
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

MIN_TEXT_LENGTH = 10


class FileProcessingError(Exception):
    """Raised when a file cannot be validated or its text cannot be extracted"""
    pass


class ProcessedFile(BaseModel):
    text: str
    fileType: str
    filename: Optional[str] = None
    error: Optional[str] = None


def validate_file(size: int, mime_type: str, max_size: Optional[int] = None) -> Optional[str]:
    """
    Check an upload against the size limit and supported types

    Returns:
        An error message, or None when the file is acceptable
    """
    max_size = max_size or settings.max_file_size
    if size > max_size:
        return (
            f"File size ({size / 1024 / 1024:.1f}MB) exceeds maximum allowed size "
            f"({max_size / 1024 / 1024:.0f}MB)"
        )
    if mime_type not in SUPPORTED_MIME_TYPES:
        return f"File type {mime_type} is not supported"
    return None


def file_category(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "image"
    if mime_type == "application/pdf" or mime_type in WORD_MIME_TYPES:
        return "document"
    if mime_type.startswith("text/") or mime_type == "application/json":
        return "text"
    return "unknown"


def extract_text_from_pdf(content: bytes) -> Tuple[str, int]:
    """
    Extract text from PDF bytes using PyMuPDF (fitz)

    Returns:
        Tuple of (extracted_text, page_count)

    Raises:
        FileProcessingError: If the PDF is empty or invalid
    """
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except (fitz.FileDataError, RuntimeError) as e:
        logger.error(f"Invalid PDF file structure: {str(e)}")
        raise FileProcessingError(f"Invalid PDF file: {str(e)}")

    try:
        page_count = len(doc)
        if page_count == 0:
            raise FileProcessingError("PDF file is empty (no pages)")
        extracted_text = "".join(page.get_text() for page in doc)
    finally:
        doc.close()

    logger.info(f"📄 Extracted {len(extracted_text)} characters from {page_count} pages")
    return extracted_text.strip(), page_count


async def _extract_pdf(content: bytes, api_key: Optional[str]) -> str:
    try:
        text, _ = extract_text_from_pdf(content)
    except FileProcessingError as e:
        logger.warning(f"⚠️ PyMuPDF extraction failed, falling back to LLM: {e}")
        text = ""

    if len(text) >= MIN_TEXT_LENGTH:
        return text

    # Image-only or unreadable PDF
    return await generate_content(
        PDF_EXTRACTION_PROMPT,
        media=[MediaPart(mime_type="application/pdf", data=content)],
        api_key=api_key,
        json_output=False,
    )


async def extract_text(
    content: bytes,
    filename: str,
    mime_type: str,
    api_key: Optional[str] = None
) -> ProcessedFile:
    """
    Extract text from one uploaded file

    Raises:
        FileProcessingError: Unsupported type or no meaningful text
        LLMClientError: If an image/PDF needed the LLM and the call failed
    """
    if mime_type.startswith("image/"):
        text = await generate_content(
            IMAGE_EXTRACTION_PROMPT,
            media=[MediaPart(mime_type=mime_type, data=content, filename=filename)],
            api_key=api_key,
            json_output=False,
        )
        file_type = "image"
    elif mime_type == "application/pdf":
        text = await _extract_pdf(content, api_key)
        file_type = "pdf"
    elif mime_type.startswith("text/") or mime_type == "application/json":
        text = content.decode("utf-8", errors="replace")
        file_type = "text"
    elif mime_type in WORD_MIME_TYPES:
        # Raw decode; structured Word parsing is not supported
        text = content.decode("utf-8", errors="replace")
        file_type = "document"
    else:
        raise FileProcessingError(f"Unsupported file type: {mime_type}")

    text = text.strip()
    if len(text) < MIN_TEXT_LENGTH:
        raise FileProcessingError("No meaningful text could be extracted from the file")

    return ProcessedFile(text=text, fileType=file_type, filename=filename)


async def process_file(
    content: bytes,
    filename: str,
    mime_type: str,
    api_key: Optional[str] = None
) -> ProcessedFile:
    """Like extract_text, but failures are reported in the result's error field"""
    try:
        return await extract_text(content, filename, mime_type, api_key)
    except (FileProcessingError, LLMClientError) as e:
        logger.error(f"❌ Error processing file {filename}: {e}")
        return ProcessedFile(text="", fileType="error", filename=filename, error=str(e))


async def process_files(
    files: List[Tuple[str, bytes, str]],
    api_key: Optional[str] = None
) -> Tuple[str, List[ContentExtraction]]:
    """
    Extract text from several (filename, content, mime_type) uploads

    Returns:
        Tuple of (combined context text, per-file extraction summaries)
    """
    context = ""
    extracted: List[ContentExtraction] = []

    for filename, content, mime_type in files:
        processed = await process_file(content, filename, mime_type, api_key)
        extracted.append(ContentExtraction(
            filename=filename,
            fileType=processed.fileType,
            mainContent=processed.text,
            error=processed.error,
        ))
        if processed.error is None:
            label = "image" if processed.fileType == "image" else "document"
            context += f"\n\nFrom {label} {filename}:\n{processed.text}"

    logger.info(f"📎 Processed {len(files)} files ({len(context)} chars of context)")
    return context.strip(), extracted
