"""Document content extraction for CostScan.

Turns uploaded bytes into something the analysis capability can read: text
for PDFs, spreadsheets, Word documents and plain text, raw bytes for images
(sent to vision models).
"""

from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import structlog

from config.errors import CostScanError, ErrorCode
from validators.file_validator import resolve_mime_type

logger = structlog.get_logger()

# Characters of extracted text passed to the analyzer
MAX_TEXT_CHARS = 50_000

IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif")
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class ExtractedContent:
    """Analyzer input for one document."""

    file_name: str
    mime_type: str
    text: Optional[str] = None
    image: Optional[bytes] = None

    @property
    def is_image(self) -> bool:
        return self.image is not None


def _pdf_text(data: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(BytesIO(data))
    return "\n".join((page.extract_text() or "") for page in reader.pages)


def _xlsx_text(data: bytes) -> str:
    from openpyxl import load_workbook

    workbook = load_workbook(BytesIO(data), read_only=True, data_only=True)
    lines = []
    try:
        for sheet in workbook.worksheets:
            lines.append(f"# Sheet: {sheet.title}")
            for row in sheet.iter_rows(values_only=True):
                cells = ["" if value is None else str(value) for value in row]
                if any(cells):
                    lines.append("\t".join(cells).rstrip())
    finally:
        workbook.close()
    return "\n".join(lines)


def _docx_text(data: bytes) -> str:
    from docx import Document

    document = Document(BytesIO(data))
    lines = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            lines.append("\t".join(cell.text.strip() for cell in row.cells))
    return "\n".join(lines)


def _plain_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


_TEXT_EXTRACTORS = {
    "application/pdf": _pdf_text,
    XLSX_TYPE: _xlsx_text,
    DOCX_TYPE: _docx_text,
    "text/plain": _plain_text,
    "text/csv": _plain_text,
}


def extract_content(data: bytes, file_name: str, mime_type: Optional[str] = None) -> ExtractedContent:
    """Extract analyzer input from a document.

    Args:
        data: Raw file bytes.
        file_name: Original file name.
        mime_type: Declared MIME type; the extension is used when missing.

    Returns:
        ExtractedContent with either text or image bytes.

    Raises:
        CostScanError: EXTRACTION_FAILED for unsupported or unreadable files.
    """
    resolved = resolve_mime_type(file_name, mime_type)

    if resolved in IMAGE_TYPES:
        return ExtractedContent(file_name=file_name, mime_type=resolved, image=data)

    extractor = _TEXT_EXTRACTORS.get(resolved)
    if extractor is None:
        raise CostScanError(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"No extractor for {mime_type or file_name}",
            details={"fileName": file_name, "mimeType": mime_type}
        )

    try:
        text = extractor(data)
    except Exception as e:
        logger.warning("content_extraction_failed", file_name=file_name, mime_type=resolved, error=str(e))
        raise CostScanError(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Could not read {file_name}: {e}",
            details={"fileName": file_name, "mimeType": resolved}
        )

    text = text.strip()
    if not text:
        raise CostScanError(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"No readable text in {file_name}",
            details={"fileName": file_name, "mimeType": resolved}
        )

    if len(text) > MAX_TEXT_CHARS:
        logger.info("content_truncated", file_name=file_name, original_length=len(text))
        text = text[:MAX_TEXT_CHARS]

    logger.info("content_extracted", file_name=file_name, mime_type=resolved, text_length=len(text))
    return ExtractedContent(file_name=file_name, mime_type=resolved, text=text)
