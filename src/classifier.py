"""Row classification for loosely structured exports.

``RowClassifier.classify`` runs an ordered chain of rules and returns one of
the tagged row kinds below. The classifier is stateless: whether a
transaction line is usable in the current context is decided by the engine.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Union

from config import ConvertConfig
from layouts import LayoutRules
from utils import find_date_in_cells, non_empty_count, parse_date_day_first

DOCUMENT_PATTERN = re.compile(r"^\s*\d+\s*-\s+.+$")
_LOOSE_DOCUMENT = re.compile(r"^\s*\d+\s*-\s*.+")

SECTION_OPEN = ("histórico", "historico")
SECTION_CLOSE = ("total do histórico", "total do historico", "total da data")

HINT_PATTERNS = {
    "document": re.compile(r"DOCUMENT|^DOC"),
    "memo": re.compile(r"HIST"),
    "principal": re.compile(r"VALOR PRINC|VL PRINC|VLR PRINC"),
    "interest": re.compile(r"JUROS"),
    "discount": re.compile(r"DESCONTO|DESC\."),
    "bank_expense": re.compile(r"DESP.*BANC|BANC.*DESP"),
    "notary_expense": re.compile(r"DESP.*CART|CART.*DESP"),
    "net": re.compile(r"VL.*LIQ|LIQ.*VL"),
    "bank": re.compile(r"BANCO|INSTITU"),
}


@dataclass(frozen=True)
class BlockHeader:
    date: date
    # classification of the rest of a row too wide to be consumed as a header
    rest: Optional["RowKind"] = None


@dataclass(frozen=True)
class SectionMarker:
    opens: bool


@dataclass(frozen=True)
class ColumnHeader:
    columns: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class CounterpartyMarker:
    text: str


@dataclass(frozen=True)
class TransactionLine:
    document_index: int


@dataclass(frozen=True)
class Noise:
    pass


RowKind = Union[BlockHeader, SectionMarker, ColumnHeader, CounterpartyMarker, TransactionLine, Noise]


def is_counterparty_marker(cell: str) -> bool:
    return bool(cell) and "PORTADOR" in cell.strip().upper()


def find_counterparty_index(row: Sequence[str]) -> int:
    for i, cell in enumerate(row):
        if is_counterparty_marker(cell):
            return i
    return -1


def find_document_index(row: Sequence[str]) -> int:
    for i, cell in enumerate(row):
        if cell and DOCUMENT_PATTERN.match(cell):
            return i
    return -1


def clean_counterparty_text(s: str) -> str:
    """Drop 'Portador do Pagamento' / 'Portador' labels and trailing colons.

    Numeric prefixes such as '7 - BANCO X' are kept for display.
    """
    if not s:
        return ""
    s = s.strip().rstrip(":")
    for label in ("PORTADOR DO PAGAMENTO", "PORTADOR"):
        if s.upper().startswith(label):
            s = s[len(label):].strip()
    return s.strip().lstrip(":").strip()


def pick_counterparty(row: Sequence[str], marker_index: int) -> str:
    if 0 <= marker_index < len(row):
        marker = row[marker_index].strip()
        if ":" in marker:
            part = marker.split(":", 1)[1].strip()
            if part and not is_counterparty_marker(part):
                cleaned = clean_counterparty_text(part)
                if cleaned:
                    return cleaned

    order = [marker_index + d for d in (1, 2, -1, -2, 3, -3, 4, -4)] + list(range(13))
    seen = set()
    for idx in order:
        if idx < 0 or idx >= len(row) or idx in seen:
            continue
        seen.add(idx)
        val = row[idx].strip()
        if not val or is_counterparty_marker(val):
            continue
        cleaned = clean_counterparty_text(val)
        if cleaned:
            return cleaned
    return ""


def loose_document_text(cell: str) -> str:
    m = _LOOSE_DOCUMENT.match(cell or "")
    return m.group(0) if m else ""


class RowClassifier:
    def __init__(self, layout: LayoutRules, cfg: Optional[ConvertConfig] = None):
        self.layout = layout
        self.cfg = cfg or ConvertConfig()
        rules: List[Callable[[Sequence[str]], Optional[RowKind]]] = []
        if layout.require_section:
            rules.append(self.section_marker)
        if layout.learn_hints:
            rules.append(self.column_header)
        rules += [self.counterparty_marker, self.transaction_line]
        self.rules = rules

    def classify(self, row: Sequence[str]) -> RowKind:
        header = self.block_header(row)
        if header is not None and self.is_header_shaped(row):
            return header
        rest = self.classify_body(row)
        if header is None:
            return rest
        return header if isinstance(rest, Noise) else replace(header, rest=rest)

    def classify_body(self, row: Sequence[str]) -> RowKind:
        for rule in self.rules:
            kind = rule(row)
            if kind is not None:
                return kind
        return Noise()

    def is_header_shaped(self, row: Sequence[str]) -> bool:
        cells = non_empty_count(row)
        return 0 < cells <= self.cfg.max_header_cells and find_document_index(row) == -1

    def date_label_index(self, row: Sequence[str]) -> int:
        for i, cell in enumerate(row[: self.cfg.early_label_columns]):
            lower = cell.strip().lower()
            if not lower:
                continue
            if any(label in lower for label in self.layout.date_labels):
                return i
            if lower.startswith(self.layout.date_prefix_labels):
                return i
        return -1

    def header_date(self, row: Sequence[str], label_index: int) -> Optional[date]:
        """Date for a label cell: text after a colon, label offsets, fixed columns, then any cell."""
        serials = self.cfg.serial_range
        label = row[label_index].strip()
        if ":" in label:
            found = parse_date_day_first(label.split(":", 1)[1], serials)
            if found is not None:
                return found
        candidates = [label_index + off for off in self.layout.date_offsets] + list(self.layout.date_columns)
        for idx in candidates:
            if 0 <= idx < len(row):
                found = parse_date_day_first(row[idx], serials)
                if found is not None:
                    return found
        return find_date_in_cells(row, serials)

    def block_header(self, row: Sequence[str]) -> Optional[BlockHeader]:
        """Date carried by a labelled row of any width, or by a lone-date row."""
        label_index = self.date_label_index(row)
        if label_index != -1:
            found = self.header_date(row, label_index)
            if found is not None:
                return BlockHeader(found)
        if self.layout.lone_date_rows and non_empty_count(row) == 1 and find_document_index(row) == -1:
            found = find_date_in_cells(row, self.cfg.serial_range)
            if found is not None:
                return BlockHeader(found)
        return None

    def section_marker(self, row: Sequence[str]) -> Optional[SectionMarker]:
        for cell in row[: self.cfg.section_marker_columns]:
            lower = cell.strip().lower()
            if not lower:
                continue
            if lower.startswith(SECTION_CLOSE):
                return SectionMarker(opens=False)
            if lower.startswith(SECTION_OPEN):
                return SectionMarker(opens=True)
        return None

    def column_header(self, row: Sequence[str]) -> Optional[ColumnHeader]:
        if find_document_index(row) != -1:
            return None
        found: Dict[str, int] = {}
        for idx, cell in enumerate(row):
            upper = cell.strip().upper()
            if not upper:
                continue
            for category, pattern in HINT_PATTERNS.items():
                if category not in found and pattern.search(upper):
                    found[category] = idx
        if len(found) >= self.cfg.hint_min_hits:
            return ColumnHeader(found)
        return None

    def counterparty_marker(self, row: Sequence[str]) -> Optional[CounterpartyMarker]:
        marker_index = find_counterparty_index(row)
        if marker_index == -1:
            return None
        return CounterpartyMarker(pick_counterparty(row, marker_index))

    def transaction_line(self, row: Sequence[str]) -> Optional[TransactionLine]:
        doc_index = find_document_index(row)
        if doc_index == -1:
            return None
        return TransactionLine(doc_index)
