import logging
import pandas as pd
from fastapi import UploadFile
from io import BytesIO
from pathlib import Path
from typing import Optional
from openpyxl import load_workbook
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, Stages
from chartpilot.core.performance import track_performance
from chartpilot.core.sanitization import sanitize_filename
from chartpilot.core.schemas import TabularFile

logger = logging.getLogger(__name__)

# MIME type mapping for validation
MIME_TYPE_MAP = {
    'text/csv': '.csv',
    'application/vnd.ms-excel': '.xls',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
}

DANGEROUS_MIME_TYPES = {
    'application/x-executable',
    'application/x-sharedlib',
    'application/x-msdownload',
    'text/html',
    'application/javascript',
}


def unmerge_excel_cells(contents: bytes) -> Optional[pd.DataFrame]:
    """
    Read the largest sheet of an xlsx workbook with openpyxl.
    Merged cells are filled with the value from the top-left cell.

    Returns:
        Raw DataFrame (header row included), or None to signal the pandas fallback
    """
    try:
        wb = load_workbook(BytesIO(contents), data_only=True)

        largest_sheet = None
        largest_rows = 0
        for sheet_name in wb.sheetnames:
            ws = wb[sheet_name]
            if ws.max_row > largest_rows:
                largest_rows = ws.max_row
                largest_sheet = sheet_name

        ws = wb[largest_sheet] if largest_sheet else wb.active

        merged_ranges = list(ws.merged_cells.ranges)
        for merged_range in merged_ranges:
            top_left_value = ws.cell(merged_range.min_row, merged_range.min_col).value
            ws.unmerge_cells(str(merged_range))
            for row in range(merged_range.min_row, merged_range.max_row + 1):
                for col in range(merged_range.min_col, merged_range.max_col + 1):
                    ws.cell(row, col, top_left_value)

        if merged_ranges:
            logger.info(f"Unmerged {len(merged_ranges)} cell ranges in sheet '{largest_sheet}'")

        return pd.DataFrame(ws.values)

    except Exception as e:
        logger.warning(f"openpyxl parsing failed, falling back to pandas: {e}")
        return None


def read_excel_largest_sheet(contents: bytes) -> pd.DataFrame:
    """Read the sheet with the most rows through pandas (xlrd for .xls)."""
    excel_file = pd.ExcelFile(BytesIO(contents))
    sheets = {name: pd.read_excel(excel_file, sheet_name=name, header=None) for name in excel_file.sheet_names}
    largest_sheet = max(sheets, key=lambda name: len(sheets[name]))
    if len(sheets) > 1:
        logger.info(f"Multi-sheet Excel file detected. Selected '{largest_sheet}' from {len(sheets)} sheets")
    return sheets[largest_sheet]


def find_header_row(df: pd.DataFrame, max_scan_rows: int = 10) -> int:
    """
    Auto-detect the header row by finding the first row that looks like column headers.

    Heuristics:
    - Header rows have mostly unique, non-null string values
    - Header rows don't have mostly numeric values
    - Header rows fill most columns (a lone title cell is not a header)

    Returns:
        Row index to use as header (0 = first row is header, as expected)
    """
    if len(df) < 2:
        return 0

    scan_limit = min(max_scan_rows, len(df))
    best_header_row = 0
    best_score = 0

    for row_idx in range(scan_limit):
        row = df.iloc[row_idx]
        non_null_count = row.notna().sum()
        if non_null_count == 0:
            continue

        string_count = sum(1 for v in row if isinstance(v, str) and len(v.strip()) > 0)
        unique_count = len(set(str(v).strip().lower() for v in row if pd.notna(v)))
        numeric_count = sum(1 for v in row if isinstance(v, (int, float)) and not pd.isna(v))

        score = (
            (string_count / non_null_count) * 0.4
            + (unique_count / non_null_count) * 0.4
            + (1 - numeric_count / non_null_count) * 0.2
        ) * (non_null_count / len(row))
        # Bonus for first row (default assumption)
        if row_idx == 0:
            score += 0.1

        if score > best_score:
            best_score = score
            best_header_row = row_idx

    return best_header_row


def validate_mime_type(content_type: Optional[str], file_ext: str) -> None:
    """
    Reject obviously dangerous MIME types; a mismatched but harmless type is only logged.

    Raises:
        ChartPipelineError: (input_validation, INVALID_REQUEST)
    """
    if not content_type:
        return

    expected_ext = MIME_TYPE_MAP.get(content_type.lower())
    if expected_ext and expected_ext != file_ext:
        logger.warning(f"MIME type {content_type} doesn't match extension {file_ext}")

    if content_type.lower() in DANGEROUS_MIME_TYPES:
        raise ChartPipelineError(
            Stages.INPUT_VALIDATION,
            ErrorKinds.INVALID_REQUEST,
            f"File type '{content_type}' is not allowed. Only CSV and Excel files are supported.",
        )


def dataframe_to_table(df: pd.DataFrame) -> TabularFile:
    """Split a header-less DataFrame into a header row and plain Python cell rows."""
    df = df.dropna(how='all', axis=0).dropna(how='all', axis=1).reset_index(drop=True)
    if df.empty:
        return TabularFile(headers=[], rows=[])

    header_row = find_header_row(df)
    if header_row > 0:
        logger.info(f"Auto-detected header at row {header_row}, skipping {header_row} metadata rows")

    cells = df.astype(object).where(df.notna(), None)
    headers = cells.iloc[header_row].tolist()
    rows = cells.iloc[header_row + 1:].values.tolist()
    return TabularFile(headers=headers, rows=rows)


@track_performance("parse_upload")
async def parse_upload(file: UploadFile, contents: Optional[bytes] = None) -> TabularFile:
    """
    Parse an uploaded CSV or Excel file into a header row plus cell rows.

    Raises:
        ChartPipelineError: input_validation for unusable uploads,
            data_extraction when the content cannot be parsed
    """
    filename = file.filename or ""
    file_ext = Path(filename).suffix.lower()
    validate_mime_type(file.content_type, file_ext)

    if contents is None:
        contents = await file.read()
    if len(contents) == 0:
        raise ChartPipelineError(
            Stages.DATA_EXTRACTION,
            ErrorKinds.INSUFFICIENT_DATA,
            f"File '{sanitize_filename(filename)}' is empty",
        )

    try:
        if file_ext == '.csv':
            try:
                df = pd.read_csv(BytesIO(contents), header=None)
            except UnicodeDecodeError:
                df = pd.read_csv(BytesIO(contents), encoding='latin1', header=None)
        elif file_ext in ('.xlsx', '.xls'):
            df = unmerge_excel_cells(contents) if file_ext == '.xlsx' else None
            if df is None:
                df = read_excel_largest_sheet(contents)
        else:
            raise ChartPipelineError(
                Stages.INPUT_VALIDATION,
                ErrorKinds.INVALID_REQUEST,
                f"Unsupported file format: {file_ext or 'none'}. Supported formats: CSV, XLSX, XLS",
            )
    except ChartPipelineError:
        raise
    except pd.errors.EmptyDataError:
        raise ChartPipelineError(
            Stages.DATA_EXTRACTION,
            ErrorKinds.INSUFFICIENT_DATA,
            f"File '{sanitize_filename(filename)}' contains no data",
        )
    except Exception as e:
        logger.error(f"Error parsing file {sanitize_filename(filename)}: {e}", exc_info=True)
        raise ChartPipelineError(
            Stages.DATA_EXTRACTION,
            ErrorKinds.INVALID_REQUEST,
            "Unable to parse the file. Please ensure it is a valid CSV or Excel file.",
            {"file": sanitize_filename(filename)},
        ) from e

    table = dataframe_to_table(df)
    logger.info(f"Successfully parsed file: {sanitize_filename(filename)}, rows: {len(table.rows)}")
    return table
