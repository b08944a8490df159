"""Format-specific text extractors for heterogeneous attachments."""

from __future__ import annotations

import csv
import io
from abc import ABC, abstractmethod
from pathlib import PurePath
from typing import Any

from chat_agent.errors import (
    DocumentError,
    ExtractionFailedError,
    NoExtractableContentError,
    UnsupportedFormatError,
)
from chat_agent.obs.log import get_logger
from chat_agent.obs.tracing import estimate_token_count
from chat_agent.types import DocumentMetadata, ExtractedText

logger = get_logger(__name__)

MAX_SHEET_ROWS = 30
MAX_SHEET_COLUMNS = 10


def file_extension(file_name: str) -> str:
    return PurePath(file_name).suffix.lower()


class Extractor(ABC):
    """Base extractor interface used by the analysis pipeline."""

    extensions: tuple[str, ...] = ()
    # Container formats: a payload below the minimum size cannot be a whole file.
    binary = False

    @abstractmethod
    def extract(self, data: bytes, *, file_type: str) -> ExtractedText:
        """Turn raw file bytes into text + format metadata."""


class PlainTextExtractor(Extractor):
    extensions = (".txt", ".md", ".markdown", ".log")

    def extract(self, data: bytes, *, file_type: str) -> ExtractedText:
        text, encoding = _decode(data)
        return ExtractedText(
            text=text,
            metadata=DocumentMetadata(file_type=file_type, encoding=encoding),
        )


class CsvExtractor(Extractor):
    """Renders each row as a labelled block so column names stay next to values."""

    extensions = (".csv",)

    def extract(self, data: bytes, *, file_type: str) -> ExtractedText:
        decoded, encoding = _decode(data)
        reader = csv.DictReader(io.StringIO(decoded))
        headers = [name for name in (reader.fieldnames or []) if name is not None and name.strip()]

        lines = ["CSV Document Content:", "", f"Headers: {', '.join(headers)}", ""]
        row_count = 0
        for row_number, row in enumerate(reader, start=1):
            values = [(name, (row.get(name) or "").strip()) for name in headers]
            if not any(value for _, value in values):
                continue
            row_count += 1
            lines.append(f"Row {row_number}:")
            lines.extend(f"  {name}: {value}" for name, value in values if value)
            lines.append("")

        if not headers and not row_count:
            raise NoExtractableContentError("CSV file has no headers and no data rows.")

        return ExtractedText(
            text="\n".join(lines),
            metadata=DocumentMetadata(file_type=file_type, headers=headers, encoding=encoding),
        )


class PdfExtractor(Extractor):
    extensions = (".pdf",)
    binary = True

    def extract(self, data: bytes, *, file_type: str) -> ExtractedText:
        from pypdf import PdfReader

        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
        return ExtractedText(
            text="\n\n".join(page.strip() for page in pages if page.strip()),
            metadata=DocumentMetadata(file_type=file_type, page_count=len(reader.pages)),
        )


class WordExtractor(Extractor):
    """Word documents via python-docx. Tables become markdown tables."""

    extensions = (".docx", ".doc")
    binary = True

    def extract(self, data: bytes, *, file_type: str) -> ExtractedText:
        from docx import Document

        document = Document(io.BytesIO(data))
        parts = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
        for table in document.tables:
            rows = [[cell.text.strip() for cell in row.cells] for row in table.rows]
            if rows:
                parts.append(_markdown_table(rows))
        return ExtractedText(
            text="\n\n".join(parts),
            metadata=DocumentMetadata(file_type=file_type),
        )


class SpreadsheetExtractor(Extractor):
    """Excel workbooks via openpyxl, each sheet rendered as a bounded markdown table."""

    extensions = (".xlsx", ".xls")
    binary = True

    def extract(self, data: bytes, *, file_type: str) -> ExtractedText:
        from openpyxl import load_workbook

        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            sheet_names = list(workbook.sheetnames)
            sections = ["Excel Document Content:", ""]
            populated = 0
            for position, name in enumerate(sheet_names, start=1):
                rows = [
                    list(row)
                    for row in workbook[name].iter_rows(values_only=True)
                    if row and any(cell is not None for cell in row)
                ]
                populated += bool(rows)
                sections.append(f'Sheet {position}: "{name}"')
                sections.append(_render_sheet(rows))
        finally:
            workbook.close()

        if not populated:
            raise NoExtractableContentError("Every sheet in the workbook is empty.")

        return ExtractedText(
            text="\n".join(sections),
            metadata=DocumentMetadata(file_type=file_type, sheet_names=sheet_names),
        )


class ExtractorRegistry:
    """Maps file extension to extractor implementation."""

    def __init__(self, extractors: list[Extractor] | None = None) -> None:
        self._extractors: dict[str, Extractor] = {}
        for extractor in extractors or [
            PdfExtractor(),
            WordExtractor(),
            PlainTextExtractor(),
            CsvExtractor(),
            SpreadsheetExtractor(),
        ]:
            self.register(extractor)

    def register(self, extractor: Extractor) -> None:
        for extension in extractor.extensions:
            self._extractors[extension.lower()] = extractor

    @property
    def supported_extensions(self) -> list[str]:
        return sorted(self._extractors)

    def supports(self, file_name: str) -> bool:
        return file_extension(file_name) in self._extractors

    def extractor_for(self, file_name: str) -> Extractor:
        extension = file_extension(file_name)
        extractor = self._extractors.get(extension)
        if extractor is None:
            raise UnsupportedFormatError(
                f"Unsupported file format: {extension or '(none)'}. "
                f"Supported: {', '.join(self.supported_extensions)}"
            )
        return extractor

    def extract(self, data: bytes, file_name: str) -> ExtractedText:
        """Extract text and metadata, raising a :class:`DocumentError` on failure."""
        extension = file_extension(file_name)
        extractor = self.extractor_for(file_name)

        try:
            extracted = extractor.extract(data, file_type=extension)
        except DocumentError:
            raise
        except Exception as exc:
            raise ExtractionFailedError(
                f"Failed to extract content from {extension} file: {exc}"
            ) from exc

        text = extracted.text.strip()
        if not text:
            raise NoExtractableContentError(
                f"No text content could be extracted from {file_name}. "
                "The file may be empty, corrupted, or image-based."
            )
        extracted.text = text
        extracted.metadata.estimated_tokens = estimate_token_count(text)
        logger.info(
            "Extracted %s: %d chars, ~%d tokens",
            file_name,
            len(text),
            extracted.metadata.estimated_tokens,
        )
        return extracted


def _decode(data: bytes) -> tuple[str, str]:
    try:
        return data.decode("utf-8-sig"), "utf-8"
    except UnicodeDecodeError:
        return data.decode("latin-1"), "latin-1"


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("|", "\\|").replace("\n", " ").strip()


def _markdown_table(rows: list[list[str]]) -> str:
    width = max(len(row) for row in rows)
    padded = [row + [""] * (width - len(row)) for row in rows]
    lines = ["| " + " | ".join(padded[0]) + " |", "| " + " | ".join("---" for _ in range(width)) + " |"]
    lines.extend("| " + " | ".join(row) + " |" for row in padded[1:])
    return "\n".join(lines)


def _render_sheet(rows: list[list[Any]]) -> str:
    if not rows:
        return "No data in this sheet\n"

    total_rows = len(rows)
    total_columns = max(len(row) for row in rows)
    table = [[_cell_text(cell) for cell in row[:MAX_SHEET_COLUMNS]] for row in rows[:MAX_SHEET_ROWS]]

    first = table[0]
    has_header = len(table) > 1 and all(cell and not _is_number(cell) for cell in first)
    if not has_header:
        width = max(len(row) for row in table)
        table = [[f"Column {i + 1}" for i in range(width)], *table]

    lines = ["", _markdown_table(table)]
    if total_rows > MAX_SHEET_ROWS:
        lines.append(f"_Showing {MAX_SHEET_ROWS} of {total_rows} rows_")
    if total_columns > MAX_SHEET_COLUMNS:
        lines.append(f"_Showing {MAX_SHEET_COLUMNS} of {total_columns} columns_")
    lines.append("")
    return "\n".join(lines)


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True
