"""Document metadata extraction and conversion."""

import asyncio
import csv
import html
import os
import zipfile
from pathlib import Path
from typing import Any

import mammoth
import openpyxl
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from procqueue.processing.base import ProcessingError, output_path, resolve_mimetype

PREVIEW_CHARS = 500

PDF_MIMETYPE = "application/pdf"
WORD_MARKER = "wordprocessingml.document"
SPREADSHEET_MARKER = "spreadsheetml.sheet"
TEXT_MIMETYPES = {"text/plain", "text/csv", "text/markdown"}

# Errors a malformed document can raise while being read
READ_ERRORS = (OSError, ValueError, KeyError, zipfile.BadZipFile, PyPdfError)


def _is_pdf(mimetype: str) -> bool:
    return mimetype == PDF_MIMETYPE


def _is_word(mimetype: str) -> bool:
    return WORD_MARKER in mimetype


def _is_spreadsheet(mimetype: str) -> bool:
    return SPREADSHEET_MARKER in mimetype


def _is_text(mimetype: str) -> bool:
    return mimetype in TEXT_MIMETYPES


def _read_sheet_rows(target_path: str) -> tuple[list[str], list[list[Any]]]:
    """Return sheet names and the rows of the first sheet."""
    workbook = openpyxl.load_workbook(target_path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = [
            ["" if value is None else value for value in row]
            for row in sheet.iter_rows(values_only=True)
        ]
        return list(workbook.sheetnames), rows
    finally:
        workbook.close()


def _read_text(target_path: str) -> str:
    return Path(target_path).read_text(encoding="utf-8", errors="replace")


def _read_pdf(target_path: str) -> tuple[int, str, dict[str, str]]:
    """Return page count, extracted text and the document info dictionary."""
    reader = PdfReader(target_path)
    text = "\n".join(page.extract_text() or "" for page in reader.pages)
    info = {
        str(key).lstrip("/"): str(value)
        for key, value in (reader.metadata or {}).items()
    }
    return len(reader.pages), text, info


def _read_word_text(target_path: str) -> tuple[str, list[str]]:
    with open(target_path, "rb") as handle:
        result = mammoth.extract_raw_text(handle)
    return result.value, [message.message for message in result.messages]


def _word_to_html(target_path: str) -> str:
    with open(target_path, "rb") as handle:
        return mammoth.convert_to_html(handle).value


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_CHARS:
        return text
    return f"{text[:PREVIEW_CHARS]}..."


async def extract_document_metadata(target_path: str, options: dict[str, Any]) -> dict[str, Any]:
    """
    Extract metadata from a document.

    PDFs report page count, a text preview and their info dictionary.
    Word documents report a text preview. Spreadsheets report their
    sheets and the size of the first sheet. Text files report line counts
    and a short preview.
    """
    mimetype = resolve_mimetype(target_path, options)

    def _extract() -> dict[str, Any]:
        if _is_pdf(mimetype):
            pages, text, info = _read_pdf(target_path)
            return {"pages": pages, "text": _preview(text), "info": info}

        if _is_word(mimetype):
            text, messages = _read_word_text(target_path)
            return {"text": _preview(text), "messages": messages}

        if _is_spreadsheet(mimetype):
            sheets, rows = _read_sheet_rows(target_path)
            return {
                "sheets": sheets,
                "rows": len(rows),
                "columns": len(rows[0]) if rows else 0,
            }

        if _is_text(mimetype):
            text = _read_text(target_path)
            return {
                "lines": len(text.splitlines()),
                "characters": len(text),
                "text": _preview(text),
            }

        return {"type": "document", "size": os.stat(target_path).st_size}

    try:
        metadata = await asyncio.to_thread(_extract)
    except READ_ERRORS as e:
        raise ProcessingError(f"Document metadata extraction failed: {e}") from e

    return {"mimetype": mimetype, **metadata}


def _text_to_html(text: str, mimetype: str) -> str:
    if mimetype == "text/csv":
        rows = csv.reader(text.splitlines())
        body = "\n".join(
            "<tr>" + "".join(f"<td>{html.escape(cell)}</td>" for cell in row) + "</tr>"
            for row in rows
        )
        return f"<table>\n{body}\n</table>\n"
    return f"<pre>{html.escape(text)}</pre>\n"


def _conversion_formats(mimetype: str) -> tuple[str, tuple[str, ...]]:
    """Label and accepted output formats for a document type, default first."""
    if _is_pdf(mimetype):
        return "PDFs", ("txt",)
    if _is_word(mimetype):
        return "Word documents", ("html",)
    if _is_spreadsheet(mimetype):
        return "Spreadsheets", ("csv",)
    if _is_text(mimetype):
        return "Text documents", ("html", "txt")
    raise ProcessingError(f"Document conversion not supported for {mimetype}")


async def convert_document(target_path: str, options: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a document to another format.

    Options:
    - format: txt for PDFs, html for Word documents, csv for spreadsheets,
      html or txt for text documents. Defaults to the first of these.
    """
    mimetype = resolve_mimetype(target_path, options)
    label, formats = _conversion_formats(mimetype)
    fmt = str(options.get("format") or formats[0]).lower()
    if fmt not in formats:
        raise ProcessingError(
            f"{label} can only be converted to {' or '.join(formats)}, not {fmt}"
        )
    destination = output_path(target_path, "", f".{fmt}")

    def _convert() -> None:
        if _is_spreadsheet(mimetype):
            _, rows = _read_sheet_rows(target_path)
            with open(destination, "w", encoding="utf-8", newline="") as handle:
                csv.writer(handle).writerows(rows)
            return

        if _is_pdf(mimetype):
            _, content, _ = _read_pdf(target_path)
        elif _is_word(mimetype):
            content = _word_to_html(target_path)
        else:
            text = _read_text(target_path)
            content = _text_to_html(text, mimetype) if fmt == "html" else text
        Path(destination).write_text(content, encoding="utf-8")

    try:
        await asyncio.to_thread(_convert)
    except READ_ERRORS as e:
        raise ProcessingError(f"Document conversion failed: {e}") from e

    return {
        "original_path": target_path,
        "output_path": destination,
        "format": fmt,
        "mimetype": mimetype,
    }
