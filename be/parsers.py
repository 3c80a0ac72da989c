"""Document parsing for training materials, blog references and question sheets.

PDF text extraction with an OCR fallback for scanned pages, plain
text/markdown decoding, and CSV/Excel parsing for question imports.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd
import pdfplumber
import pytesseract
from pdf2image import convert_from_bytes
from pypdf import PdfReader

from .config import settings
from .pipelines.normalization import clean_extracted_text

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Supported file types."""
    PDF = "pdf"
    TEXT = "txt"
    MARKDOWN = "md"
    CSV = "csv"
    EXCEL = "excel"
    UNKNOWN = "unknown"


class ParseError(Exception):
    """Raised when document parsing fails."""
    pass


@dataclass
class ParsedDocument:
    """Result of document parsing."""
    text: str
    file_type: FileType
    metadata: dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0


def detect_file_type(filename: str, content: bytes | None = None) -> FileType:
    """Detect file type from filename, falling back to magic numbers."""
    suffix = Path(filename.lower()).suffix

    if suffix == '.pdf':
        return FileType.PDF
    if suffix in ('.txt', '.text'):
        return FileType.TEXT
    if suffix in ('.md', '.markdown'):
        return FileType.MARKDOWN
    if suffix == '.csv':
        return FileType.CSV
    if suffix in ('.xls', '.xlsx', '.xlsm'):
        return FileType.EXCEL

    if content:
        if content.startswith(b'%PDF'):
            return FileType.PDF
        if content.startswith(b'PK\x03\x04'):  # ZIP/Office
            return FileType.EXCEL

    return FileType.UNKNOWN


def extract_text_from_pdf_native(file_obj: BinaryIO) -> tuple[str, float]:
    """Extract embedded PDF text.

    Returns:
        Tuple of (extracted_text, confidence_score)
    """
    try:
        with pdfplumber.open(file_obj) as pdf:
            text = "\n\n".join(
                page_text for page in pdf.pages if (page_text := page.extract_text())
            )
    except Exception as e:
        logger.warning(f"pdfplumber extraction failed: {e}, trying pypdf")
        try:
            file_obj.seek(0)
            reader = PdfReader(file_obj)
            text = "\n\n".join(
                page_text for page in reader.pages if (page_text := page.extract_text())
            )
            return text, 0.8 if len(text.strip()) > 100 else 0.5
        except Exception as e2:
            logger.error(f"pypdf extraction also failed: {e2}")
            return "", 0.0

    stripped = len(text.strip())
    if stripped > 100:
        return text, 0.95
    if stripped > 20:
        return text, 0.7
    return text, 0.3


def extract_text_from_pdf_ocr(file_content: bytes) -> tuple[str, float]:
    """OCR every page of a PDF with Tesseract.

    Returns:
        Tuple of (extracted_text, confidence_score)

    Raises:
        ParseError: If the PDF cannot be rasterized
    """
    try:
        images = convert_from_bytes(file_content, dpi=settings.ocr.dpi, fmt='jpeg')
    except Exception as e:
        logger.error(f"PDF rasterization failed: {e}")
        raise ParseError(f"OCR processing failed: {e}") from e

    if not images:
        logger.warning("No images extracted from PDF")
        return "", 0.0

    logger.info(f"Running OCR on {len(images)} pages")
    text_parts = []
    confidences = []

    for idx, image in enumerate(images):
        try:
            ocr_data = pytesseract.image_to_data(
                image,
                lang=settings.ocr.tesseract_lang,
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractError as e:
            logger.error(f"OCR failed for page {idx + 1}: {e}")
            continue

        words = [w for w in ocr_data['text'] if w.strip()]
        if not words:
            continue
        text_parts.append(" ".join(words))
        conf_values = [float(c) for c in ocr_data['conf'] if float(c) >= 0]
        if conf_values:
            confidences.append(sum(conf_values) / len(conf_values) / 100.0)

    text = "\n\n".join(text_parts)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    logger.info(f"OCR completed. Extracted {len(text)} chars with confidence {confidence:.2f}")
    return text, confidence


def parse_pdf(file_obj: BinaryIO, filename: str) -> ParsedDocument:
    """Parse PDF with text extraction + OCR fallback.

    Raises:
        ParseError: If no text can be extracted
    """
    text, confidence = extract_text_from_pdf_native(file_obj)
    method = "native"

    if settings.ocr.enabled and (
        confidence < settings.ocr.confidence_threshold or len(text.strip()) < 50
    ):
        logger.info(f"Native extraction confidence {confidence:.2f} too low for {filename}, trying OCR")
        file_obj.seek(0)
        text_ocr, conf_ocr = extract_text_from_pdf_ocr(file_obj.read())
        if conf_ocr > confidence or len(text_ocr) > len(text):
            text, confidence, method = text_ocr, conf_ocr, "ocr"

    text = clean_extracted_text(text)
    if not text:
        raise ParseError(f"No text could be extracted from PDF: {filename}")

    return ParsedDocument(
        text=text,
        file_type=FileType.PDF,
        confidence=confidence,
        metadata={"filename": filename, "method": method},
    )


def parse_text(content: bytes, filename: str, file_type: FileType = FileType.TEXT) -> ParsedDocument:
    """Decode a plain text or markdown upload."""
    try:
        text = content.decode('utf-8')
    except UnicodeDecodeError:
        text = content.decode('latin-1')

    text = clean_extracted_text(text)
    if not text:
        raise ParseError(f"File is empty: {filename}")
    return ParsedDocument(text=text, file_type=file_type, metadata={"filename": filename})


def parse_document(file_obj: BinaryIO, filename: str) -> ParsedDocument:
    """Parse a reference document (PDF, TXT or MD) into text.

    Raises:
        ParseError: If the type is unsupported or parsing fails
    """
    content = file_obj.read()
    file_type = detect_file_type(filename, content)

    if file_type == FileType.PDF:
        return parse_pdf(io.BytesIO(content), filename)
    if file_type in (FileType.TEXT, FileType.MARKDOWN):
        return parse_text(content, filename, file_type)
    raise ParseError(f"Unsupported file type: {filename}")


def parse_pdf_path(path: str | Path) -> ParsedDocument:
    """Parse a PDF from disk."""
    path = Path(path)
    try:
        with path.open('rb') as fh:
            return parse_pdf(fh, path.name)
    except OSError as e:
        raise ParseError(f"Failed to read {path.name}: {e}") from e


def parse_spreadsheet(file_obj: BinaryIO, filename: str) -> list[dict[str, Any]]:
    """Parse a CSV or Excel sheet into row dicts.

    Blank cells come back as None rather than NaN.

    Raises:
        ParseError: If the file is not a spreadsheet, is empty or unreadable
    """
    file_type = detect_file_type(filename)
    try:
        if file_type == FileType.CSV:
            df = pd.read_csv(file_obj, encoding='utf-8')
        elif file_type == FileType.EXCEL:
            df = pd.read_excel(file_obj, sheet_name=0, engine='openpyxl')
        else:
            raise ParseError(f"Unsupported spreadsheet type: {filename}")
    except ParseError:
        raise
    except Exception as e:
        logger.error(f"Spreadsheet parsing failed for {filename}: {e}")
        raise ParseError(f"Failed to parse {filename}: {e}") from e

    if df.empty:
        raise ParseError(f"Spreadsheet is empty: {filename}")

    logger.info(f"Parsed {filename} with {len(df)} rows and {len(df.columns)} columns")
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict('records')
