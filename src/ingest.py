import csv
import io
import math
import os
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

import pandas as pd

from errors import FormatError, ReferenceDataError
from logging_setup import get_logger

logger = get_logger("ledger_convert.ingest")

FORMATS = ("xlsx", "xls", "csv")

_EXTENSIONS = {
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
    ".xls": "xls",
    ".csv": "csv",
    ".txt": "csv",
}


def detect_format(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return _EXTENSIONS.get(os.path.splitext(filename)[1].lower())


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (pd.Timestamp, datetime, date)):
        if pd.isna(value):
            return ""
        return value.strftime("%d/%m/%Y")
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return f"{value:.10f}".rstrip("0").rstrip(".")
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def _frame_rows(df: pd.DataFrame) -> List[List[str]]:
    rows = []
    for values in df.itertuples(index=False, name=None):
        row = [_cell_text(v) for v in values]
        while row and not row[-1].strip():
            row.pop()
        rows.append(row)
    return rows


def read_delimited(text: str, delimiter: str = ";") -> List[List[str]]:
    lines = text.splitlines()
    if not any(line.strip() for line in lines):
        return []
    width = max(line.count(delimiter) for line in lines) + 1
    options = dict(sep=delimiter, header=None, names=list(range(width)), dtype=str,
                   keep_default_na=False, skip_blank_lines=False, engine="python")
    try:
        df = pd.read_csv(io.StringIO(text), **options)
    except pd.errors.ParserError:
        # stray quote characters: read them as literal text
        df = pd.read_csv(io.StringIO(text), quoting=csv.QUOTE_NONE, **options)
    return _frame_rows(df)


def _read_xlsx(data: bytes, **_) -> List[List[str]]:
    df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=object, engine="openpyxl")
    return _frame_rows(df)


def _read_xls(data: bytes, **_) -> List[List[str]]:
    df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=object, engine="xlrd")
    return _frame_rows(df)


def _decode_text(data: bytes, encoding: str) -> str:
    if b"\x00" in data:
        raise ValueError("binary content is not delimited text")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode(encoding)


def _read_csv(data: bytes, encoding: str = "latin-1", delimiter: str = ";") -> List[List[str]]:
    return read_delimited(_decode_text(data, encoding), delimiter)


_READERS: Dict[str, Callable[..., List[List[str]]]] = {
    "xlsx": _read_xlsx,
    "xls": _read_xls,
    "csv": _read_csv,
}


def load_rows(data: bytes,
              filename: Optional[str] = None,
              fmt: Optional[str] = None,
              encoding: str = "latin-1",
              delimiter: str = ";") -> List[List[str]]:
    """Decode an export into rows of text cells.

    The declared (or filename-inferred) format is tried first, then the
    remaining ones in modern spreadsheet, legacy spreadsheet, delimited text
    order. Raises FormatError when none of them can read the bytes.
    """
    if not data:
        raise FormatError("Transaction export is empty")

    hint = fmt or detect_format(filename)
    if hint is not None and hint not in _READERS:
        raise FormatError(f"Unsupported export format: {hint}")
    order = [hint] + [f for f in FORMATS if f != hint] if hint else list(FORMATS)

    failures = []
    for name in order:
        try:
            rows = _READERS[name](data, encoding=encoding, delimiter=delimiter)
        except Exception as exc:  # each reader signals "not my format" differently
            failures.append(f"{name}: {exc}")
            logger.debug("Reader %s rejected export: %s", name, exc)
            continue
        logger.info("Decoded export as %s (%d rows)", name, len(rows))
        return rows

    raise FormatError("Could not decode transaction export: " + "; ".join(failures))


def load_chart_rows(data: bytes, encoding: str = "latin-1", delimiter: str = ";") -> List[List[str]]:
    if data is None:
        raise ReferenceDataError("Chart of accounts file is missing")
    if not data:
        return []
    if b"\x00" in data:
        raise ReferenceDataError("Chart of accounts file is not delimited text")
    try:
        text = data.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise ReferenceDataError(f"Could not decode chart of accounts as {encoding}") from exc
    try:
        return read_delimited(text, delimiter)
    except (ValueError, pd.errors.ParserError) as exc:
        raise ReferenceDataError("Could not parse chart of accounts") from exc
