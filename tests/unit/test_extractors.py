import io

import pytest
from docx import Document
from openpyxl import Workbook

from chat_agent.documents.extractors import ExtractorRegistry
from chat_agent.errors import ExtractionFailedError, NoExtractableContentError, UnsupportedFormatError


def test_plain_text_sets_encoding_and_token_estimate() -> None:
    extracted = ExtractorRegistry().extract("hello world, twelve".encode("utf-8"), "notes.txt")

    assert extracted.text == "hello world, twelve"
    assert extracted.metadata.encoding == "utf-8"
    assert extracted.metadata.estimated_tokens == 5


def test_latin1_fallback() -> None:
    extracted = ExtractorRegistry().extract("café olé".encode("latin-1"), "notes.md")

    assert extracted.text == "café olé"
    assert extracted.metadata.encoding == "latin-1"


def test_csv_rows_render_with_headers() -> None:
    data = b"name,email\nAda,ada@example.com\nBob,bob@example.com\n"

    extracted = ExtractorRegistry().extract(data, "people.csv")

    assert extracted.metadata.headers == ["name", "email"]
    assert extracted.text.startswith("CSV Document Content:")
    assert "Headers: name, email" in extracted.text
    assert "Row 2:\n  name: Bob\n  email: bob@example.com" in extracted.text


def test_xlsx_sheets_render_as_bounded_markdown_tables() -> None:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Budget"
    sheet.append(["Item", "Amount"])
    for i in range(40):
        sheet.append([f"line {i}", i * 10])
    buffer = io.BytesIO()
    workbook.save(buffer)

    extracted = ExtractorRegistry().extract(buffer.getvalue(), "budget.xlsx")

    assert extracted.metadata.sheet_names == ["Budget"]
    assert "| Item | Amount |" in extracted.text
    assert "line 28" in extracted.text
    assert "line 29" not in extracted.text
    assert "_Showing 30 of 41 rows_" in extracted.text


def test_docx_paragraphs_and_tables() -> None:
    document = Document()
    document.add_paragraph("Quarterly report")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Region"
    table.cell(0, 1).text = "Sales"
    table.cell(1, 0).text = "North"
    table.cell(1, 1).text = "120"
    buffer = io.BytesIO()
    document.save(buffer)

    extracted = ExtractorRegistry().extract(buffer.getvalue(), "report.docx")

    assert extracted.text.startswith("Quarterly report")
    assert "| Region | Sales |" in extracted.text
    assert "| North | 120 |" in extracted.text


def test_unknown_extension_is_unsupported() -> None:
    with pytest.raises(UnsupportedFormatError) as excinfo:
        ExtractorRegistry().extract(b"PK\x03\x04 archive bytes", "bundle.zip")

    assert ".zip" in str(excinfo.value)


def test_blank_text_has_no_extractable_content() -> None:
    with pytest.raises(NoExtractableContentError):
        ExtractorRegistry().extract(b"   \n\n   ", "empty.txt")


def test_corrupt_pdf_is_an_extraction_failure() -> None:
    with pytest.raises(ExtractionFailedError):
        ExtractorRegistry().extract(b"definitely not a pdf document", "broken.pdf")


def test_csv_without_headers_or_rows_has_no_extractable_content() -> None:
    with pytest.raises(NoExtractableContentError):
        ExtractorRegistry().extract(b"\n" * 40, "empty.csv")


def test_csv_with_headers_only_is_still_content() -> None:
    extracted = ExtractorRegistry().extract(b"name,email\n", "people.csv")

    assert extracted.metadata.headers == ["name", "email"]
    assert "Headers: name, email" in extracted.text


def test_workbook_with_only_empty_sheets_has_no_extractable_content() -> None:
    workbook = Workbook()
    workbook.active.title = "Blank"
    workbook.create_sheet("Also blank")
    buffer = io.BytesIO()
    workbook.save(buffer)

    with pytest.raises(NoExtractableContentError):
        ExtractorRegistry().extract(buffer.getvalue(), "blank.xlsx")
