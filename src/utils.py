import re
import unicodedata
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

SERIAL_RANGE = (35000.0, 47000.0)
EXCEL_EPOCH = datetime(1899, 12, 30)

_NON_ALNUM = re.compile(r"[^A-Z0-9 ]+")
_WHITESPACE = re.compile(r"\s+")
_NUMBER_DASH_PREFIX = re.compile(r"^\s*\d+\s*[-:]\s*(.*)$")
_NUMBER_SPACE_PREFIX = re.compile(r"^\s*\d+\s+(.*)$")
_AFTER_HYPHEN = re.compile(r"^\s*\d+\s*-\s*(.*)$")
_DMY = re.compile(r"\b\d{2}/\d{2}/\d{4}\b")
_ISO = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
_MONEY_CHARS = re.compile(r"^[0-9.,()+\- ]+$")


def normalize_text(s) -> str:
    if s is None:
        return ""
    s = unicodedata.normalize("NFD", str(s))
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Mn")
    s = s.upper()
    s = _NON_ALNUM.sub(" ", s)
    s = _WHITESPACE.sub(" ", s).strip()
    return s


def strip_leading_number(s: str) -> str:
    """'123 - NAME', '123: NAME' and '123 NAME' all become 'NAME'."""
    if not s:
        return s
    m = _NUMBER_DASH_PREFIX.match(s)
    if m:
        return m.group(1).strip()
    m = _NUMBER_SPACE_PREFIX.match(s)
    if m:
        return m.group(1).strip()
    return s


def extract_after_hyphen(cell: str) -> str:
    if not cell:
        return ""
    m = _AFTER_HYPHEN.match(cell)
    return m.group(1).strip() if m else ""


def parse_money(val) -> Optional[float]:
    """Tolerant pt-BR/en decimal parsing.

    The rightmost of ',' and '.' is the decimal point and the other one is a
    thousands separator. Parenthesized or leading-minus values are negative.
    Returns None when the text is not a number.
    """
    if val is None:
        return None
    s = str(val).strip()
    s = s.replace("R$", "").replace("\u00a0", "").replace(" ", "")
    if not s or not _MONEY_CHARS.match(s):
        return None

    neg = False
    if s.startswith("(") and s.endswith(")"):
        neg = True
        s = s[1:-1]
    if s.startswith("-"):
        neg = True
        s = s[1:]
    elif s.startswith("+"):
        s = s[1:]
    if not any(ch.isdigit() for ch in s) or not re.fullmatch(r"[0-9.,]+", s):
        return None

    last_dot = s.rfind(".")
    last_comma = s.rfind(",")
    if last_dot == -1 and last_comma == -1:
        digits = s
    else:
        decimal_sep = "," if last_comma > last_dot else "."
        thousands_sep = "." if decimal_sep == "," else ","
        s = s.replace(thousands_sep, "")
        head, _, tail = s.rpartition(decimal_sep)
        digits = head.replace(decimal_sep, "") + "." + tail

    try:
        amount = Decimal(digits).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return float(-amount if neg else amount)


def format_decimal_comma(value: float) -> str:
    return f"{value:.2f}".replace(".", ",")


def excel_serial_to_date(serial: float) -> date:
    return (EXCEL_EPOCH + timedelta(days=float(serial))).date()


def _serial_date(s: str, serial_range: Tuple[float, float]) -> Optional[date]:
    try:
        f = float(s)
    except ValueError:
        return None
    lo, hi = serial_range
    if lo < f < hi:
        return excel_serial_to_date(f)
    return None


def parse_date_day_first(s, serial_range: Tuple[float, float] = SERIAL_RANGE) -> Optional[date]:
    """Parse DD/MM/YYYY, YYYY-MM-DD (optionally followed by a time) or a
    spreadsheet serial inside serial_range."""
    if s is None:
        return None
    s = str(s).strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, "%d/%m/%Y").date()
    except ValueError:
        pass
    if len(s) >= 10:
        try:
            return datetime.strptime(s[:10], "%Y-%m-%d").date()
        except ValueError:
            pass
    return _serial_date(s, serial_range)


def find_date_in_cells(cells: Iterable[str],
                       serial_range: Tuple[float, float] = SERIAL_RANGE) -> Optional[date]:
    """Generic date scan: first cell holding an embedded date or a plausible serial."""
    for cell in cells:
        clean = str(cell or "").strip()
        if not clean:
            continue
        m = _DMY.search(clean)
        if m:
            try:
                return datetime.strptime(m.group(0), "%d/%m/%Y").date()
            except ValueError:
                pass
        m = _ISO.search(clean)
        if m:
            try:
                return datetime.strptime(m.group(0), "%Y-%m-%d").date()
            except ValueError:
                pass
        found = _serial_date(clean, serial_range)
        if found is not None:
            return found
    return None


def sanitize_field(s) -> str:
    if s is None:
        return ""
    s = str(s).strip()
    out = []
    for ch in s:
        if ch in "\r\n\t":
            continue
        if ord(ch) < 32:
            out.append(" ")
            continue
        out.append(ch)
    return "".join(out)


def non_empty_count(row) -> int:
    return sum(1 for c in row if str(c).strip())
