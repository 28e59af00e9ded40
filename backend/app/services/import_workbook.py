from __future__ import annotations

import logging
import zipfile
from io import BytesIO

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.datavalidation import DataValidation

from app.core.exceptions import ImportFormatError
from app.services.bulk_import import IMPORT_COLUMNS, TEMPLATE_HEADERS, RawImportRow, cell_text
from app.services.snapshot import CatalogSnapshot

logger = logging.getLogger(__name__)

SESSIONS_SHEET = "Sessions"
REFERENCE_SHEET = "Reference"
TEMPLATE_VALIDATED_ROWS = 200

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def build_import_template(catalog: CatalogSnapshot) -> bytes:
    """Workbook with the upload header and a sheet of the names uploads may use."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SESSIONS_SHEET

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
    sheet.append(list(TEMPLATE_HEADERS))
    for index, column in enumerate(IMPORT_COLUMNS, start=1):
        cell = sheet.cell(row=1, column=index)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
        sheet.column_dimensions[get_column_letter(index)].width = column.width
    sheet.freeze_panes = "A2"

    reference = workbook.create_sheet(REFERENCE_SHEET)
    reference.append(["Boards", None, "Board", "Class", "Subject", None, "Teachers"])
    for cell in reference[1]:
        cell.font = Font(bold=True)

    for row_index, board in enumerate(catalog.boards, start=2):
        reference.cell(row=row_index, column=1, value=board.name)

    combo_row = 2
    for board in catalog.boards:
        for school_class in (item for item in catalog.classes if item.board_id == board.id):
            subjects = [item for item in catalog.subjects if item.class_id == school_class.id]
            for subject in subjects or [None]:
                reference.cell(row=combo_row, column=3, value=board.name)
                reference.cell(row=combo_row, column=4, value=school_class.label)
                reference.cell(row=combo_row, column=5, value=subject.name if subject else None)
                combo_row += 1

    for row_index, teacher in enumerate(catalog.teachers, start=2):
        reference.cell(row=row_index, column=7, value=teacher.name)

    for letter, width in (("A", 20), ("C", 20), ("D", 24), ("E", 24), ("G", 30)):
        reference.column_dimensions[letter].width = width

    if catalog.boards:
        board_column = get_column_letter(
            next(index for index, column in enumerate(IMPORT_COLUMNS, start=1) if column.key == "board")
        )
        validation = DataValidation(
            type="list",
            formula1=f"={REFERENCE_SHEET}!$A$2:$A${len(catalog.boards) + 1}",
            allow_blank=True,
        )
        sheet.add_data_validation(validation)
        validation.add(f"{board_column}2:{board_column}{TEMPLATE_VALIDATED_ROWS + 1}")

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def read_import_rows(content: bytes, *, max_rows: int) -> list[RawImportRow]:
    """Read data rows from an uploaded workbook after checking its header.

    File-level problems raise ImportFormatError; cell-level problems are left
    for the pipeline to report per row. Blank rows are skipped.
    """
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ImportFormatError("Upload is not a readable .xlsx workbook") from exc

    try:
        sheet = workbook[SESSIONS_SHEET] if SESSIONS_SHEET in workbook.sheetnames else workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        found = tuple(cell_text(value) for value in (header or ())[: len(TEMPLATE_HEADERS)])
        if found != TEMPLATE_HEADERS:
            raise ImportFormatError(
                "Header row does not match the session import template",
                details={"expected": list(TEMPLATE_HEADERS), "found": list(found)},
            )

        raw_rows: list[RawImportRow] = []
        for row_number, values in enumerate(rows, start=2):
            cells = tuple(values or ())[: len(IMPORT_COLUMNS)]
            if all(cell_text(value) == "" for value in cells):
                continue
            if len(raw_rows) >= max_rows:
                raise ImportFormatError(
                    f"Upload has more than {max_rows} session rows",
                    details={"max_rows": max_rows},
                )
            padded = cells + (None,) * (len(IMPORT_COLUMNS) - len(cells))
            raw_rows.append(
                RawImportRow(
                    row_number=row_number,
                    values={column.key: value for column, value in zip(IMPORT_COLUMNS, padded)},
                )
            )
    finally:
        workbook.close()

    logger.debug("Read %d session row(s) from upload", len(raw_rows))
    return raw_rows
