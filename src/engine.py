"""Scan of normalized export rows into ledger rows.

The scan is a fold: ``LedgerEngine.step`` takes the current
``ProcessingContext`` and one row, and returns the next context plus at most
one ``LedgerRow``. Rows are fully buffered so the bounded lookbacks can read
rows that were already consumed.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from classifier import (
    BlockHeader,
    ColumnHeader,
    CounterpartyMarker,
    RowClassifier,
    RowKind,
    SectionMarker,
    TransactionLine,
    clean_counterparty_text,
    find_counterparty_index,
    loose_document_text,
    pick_counterparty,
)
from config import ConvertConfig
from layouts import HINT_CATEGORIES, MONEY, LayoutRules
from logging_setup import get_logger
from mapping import extract_field
from match import AccountMatcher, clean_prefixes
from utils import extract_after_hyphen, find_date_in_cells, non_empty_count, strip_leading_number

logger = get_logger("ledger_convert.engine")


@dataclass(frozen=True)
class ColumnHints:
    document: Optional[int] = None
    memo: Optional[int] = None
    principal: Optional[int] = None
    interest: Optional[int] = None
    discount: Optional[int] = None
    bank_expense: Optional[int] = None
    notary_expense: Optional[int] = None
    net: Optional[int] = None
    bank: Optional[int] = None

    def learn(self, found: Dict[str, int]) -> "ColumnHints":
        """First write wins: categories that already have a column keep it."""
        changes = {
            name: idx for name, idx in found.items()
            if name in HINT_CATEGORIES and getattr(self, name) is None
        }
        return replace(self, **changes) if changes else self

    def as_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class ProcessingContext:
    sentinel: str
    block_date: Optional[date] = None
    in_section: bool = False
    counterparty_description: str = ""
    counterparty_code: str = ""
    hints: ColumnHints = field(default_factory=ColumnHints)


@dataclass(frozen=True)
class LedgerRow:
    date: Optional[date]
    debit_description: str
    debit_code: str
    credit_description: str
    credit_code: str
    memo: str
    amounts: Dict[str, Optional[float]] = field(default_factory=dict)


@dataclass
class ScanStats:
    rows: int = 0
    emitted: int = 0
    block_headers: int = 0
    section_markers: int = 0
    column_headers: int = 0
    counterparty_markers: int = 0
    noise: int = 0
    skipped_outside_section: int = 0
    skipped_without_date: int = 0
    skipped_without_value: int = 0
    dates_from_lookback: int = 0
    counterparties_from_lookback: int = 0

    def record(self, event: str) -> None:
        setattr(self, event, getattr(self, event) + 1)

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Step:
    context: ProcessingContext
    row: Optional[LedgerRow] = None
    events: Tuple[str, ...] = ()


@dataclass
class ScanResult:
    rows: List[LedgerRow]
    stats: ScanStats
    context: ProcessingContext


class LedgerEngine:
    def __init__(self,
                 matcher: AccountMatcher,
                 layout: LayoutRules,
                 cfg: Optional[ConvertConfig] = None,
                 debit_prefixes: Optional[Iterable[str]] = None,
                 credit_prefixes: Optional[Iterable[str]] = None):
        self.matcher = matcher
        self.layout = layout
        self.cfg = cfg or ConvertConfig()
        self.debit_prefixes = clean_prefixes(debit_prefixes)
        self.credit_prefixes = clean_prefixes(credit_prefixes)
        self.classifier = RowClassifier(layout, self.cfg)

    def initial_context(self) -> ProcessingContext:
        return ProcessingContext(sentinel=self.matcher.sentinel,
                                 counterparty_code=self.matcher.sentinel)

    def scan(self, rows: Sequence[Sequence[str]]) -> ScanResult:
        ctx = self.initial_context()
        stats = ScanStats()
        out: List[LedgerRow] = []
        for index in range(len(rows)):
            stats.rows += 1
            step = self.step(ctx, rows, index)
            ctx = step.context
            for event in step.events:
                stats.record(event)
            if step.row is not None:
                out.append(step.row)

        logger.info(
            "Scanned %d rows (%s): %d ledger rows, %d outside section, %d without date, "
            "%d without value, %d dates from lookback",
            stats.rows, self.layout.name, stats.emitted, stats.skipped_outside_section,
            stats.skipped_without_date, stats.skipped_without_value, stats.dates_from_lookback,
        )
        return ScanResult(out, stats, ctx)

    def step(self, ctx: ProcessingContext, rows: Sequence[Sequence[str]], index: int) -> Step:
        return self.apply(ctx, self.classifier.classify(rows[index]), rows, index)

    def apply(self, ctx: ProcessingContext, kind: RowKind,
              rows: Sequence[Sequence[str]], index: int) -> Step:
        if isinstance(kind, BlockHeader):
            ctx = replace(ctx, block_date=kind.date)
            if kind.rest is None:
                return Step(ctx, events=("block_headers",))
            # wide labelled row: the date applies, then the row is handled as usual
            step = self.apply(ctx, kind.rest, rows, index)
            return replace(step, events=("block_headers",) + step.events)
        if isinstance(kind, SectionMarker):
            return Step(replace(ctx, in_section=kind.opens), events=("section_markers",))
        if isinstance(kind, ColumnHeader):
            return Step(replace(ctx, hints=ctx.hints.learn(kind.columns)), events=("column_headers",))
        if isinstance(kind, CounterpartyMarker):
            if self.layout.debit_source != "counterparty":
                return Step(ctx, events=("counterparty_markers",))
            return Step(self.with_counterparty(ctx, kind.text), events=("counterparty_markers",))
        if isinstance(kind, TransactionLine):
            return self.transaction(ctx, rows, index, kind.document_index)
        return Step(ctx, events=("noise",))

    def with_counterparty(self, ctx: ProcessingContext, text: str) -> ProcessingContext:
        text = (text or "").strip()
        if not text:
            return replace(ctx, counterparty_description="", counterparty_code=ctx.sentinel)
        code = self.matcher.resolve(text, self.debit_prefixes)
        return replace(ctx, counterparty_description=text, counterparty_code=code)

    def transaction(self, ctx: ProcessingContext, rows: Sequence[Sequence[str]],
                    index: int, doc_index: int) -> Step:
        row = rows[index]
        layout = self.layout
        if layout.require_section and not ctx.in_section:
            logger.debug("Row %d: transaction line outside Histórico block", index + 1)
            return Step(ctx, events=("skipped_outside_section",))

        events = []
        when = ctx.block_date
        if when is None:
            if layout.require_block_date:
                logger.debug("Row %d: transaction line before any block date", index + 1)
                return Step(ctx, events=("skipped_without_date",))
            when = self.lookback_date(rows, index)
            if when is not None:
                events.append("dates_from_lookback")
            else:
                when = find_date_in_cells(row, self.cfg.serial_range)

        hints = ctx.hints.as_dict()
        values = {rule.name: extract_field(row, rule, doc_index, hints) for rule in layout.fields}
        if layout.required_field and values.get(layout.required_field) is None:
            logger.debug("Row %d: no %s found", index + 1, layout.required_field)
            return Step(ctx, events=tuple(events) + ("skipped_without_value",))

        if layout.debit_source == "counterparty":
            if not ctx.counterparty_description:
                found = self.lookback_counterparty(rows, index)
                if found:
                    ctx = self.with_counterparty(ctx, found)
                    events.append("counterparties_from_lookback")
            debit_description, debit_code = ctx.counterparty_description, ctx.counterparty_code
        else:
            debit_description = values.get("description") or ""
            debit_code = self.matcher.resolve(debit_description, self.debit_prefixes)

        if layout.credit_source == "document_or_bank":
            credit_description = self.document_credit(row, doc_index, hints)
        else:
            credit_description = self.pick_bank(row, doc_index, hints)
        credit_code = self.matcher.resolve(credit_description, self.credit_prefixes)

        if layout.memo_style == "document":
            memo = self.document_memo(values, credit_description)
        else:
            memo = self.invoice_memo(row, doc_index, values)

        amounts = {rule.name: values[rule.name] for rule in layout.fields if rule.kind == MONEY}
        ledger_row = LedgerRow(
            date=when,
            debit_description=debit_description,
            debit_code=debit_code,
            credit_description=credit_description,
            credit_code=credit_code,
            memo=memo,
            amounts=amounts,
        )
        events.append("emitted")
        return Step(ctx, ledger_row, tuple(events))

    def _window(self, index: int, size: int) -> range:
        return range(index - 1, max(index - size, 0) - 1, -1)

    def lookback_date(self, rows: Sequence[Sequence[str]], index: int) -> Optional[date]:
        """Nearest date within the window of rows above index, or None."""
        for i in self._window(index, self.cfg.date_lookback_rows):
            row = rows[i]
            label_index = self.classifier.date_label_index(row)
            if label_index != -1:
                found = self.classifier.header_date(row, label_index)
            else:
                found = find_date_in_cells(row, self.cfg.serial_range)
            if found is not None:
                return found
        return None

    def lookback_counterparty(self, rows: Sequence[Sequence[str]], index: int) -> str:
        for i in self._window(index, self.cfg.counterparty_lookback_rows):
            row = rows[i]
            marker_index = find_counterparty_index(row)
            # the nearest marker decides, an empty one included
            if marker_index != -1:
                return pick_counterparty(row, marker_index)
            # a sparse row carrying a lone '<digits> - <name>' cell names the party
            if non_empty_count(row) > self.cfg.max_header_cells:
                continue
            for cell in row:
                text = loose_document_text(cell)
                if text:
                    return clean_counterparty_text(text)
        return ""

    def is_bankish(self, text: str) -> bool:
        upper = text.upper()
        return bool(upper) and any(h in upper for h in self.layout.bank_hints)

    def bank_candidates(self, row: Sequence[str], doc_index: int, hints: Dict[str, int]) -> List[int]:
        order = []
        if hints.get("bank") is not None:
            order.append(hints["bank"])
        order += [doc_index + off for off in self.layout.bank_offsets]
        order += list(self.layout.bank_columns)
        if self.layout.scan_all_for_bank:
            order += list(range(len(row) - 1, -1, -1))
        seen = set()
        out = []
        for idx in order:
            if 0 <= idx < len(row) and idx not in seen:
                seen.add(idx)
                out.append(idx)
        return out

    def pick_bank(self, row: Sequence[str], doc_index: int, hints: Dict[str, int]) -> str:
        for idx in self.bank_candidates(row, doc_index, hints):
            raw = str(row[idx]).strip()
            if not raw:
                continue
            text = raw
            if self.layout.scan_all_for_bank:
                text = strip_leading_number(raw).strip() or raw
            if self.is_bankish(text):
                return text
        return ""

    def document_credit(self, row: Sequence[str], doc_index: int, hints: Dict[str, int]) -> str:
        """Credit party of a receipt: the document's own party when it names a
        bank, else the first bank-looking cell, else the document's party."""
        cell = str(row[doc_index]).strip()
        base = strip_leading_number(extract_after_hyphen(cell)) or strip_leading_number(cell)
        base = base.strip()
        if base and self.is_bankish(base):
            return base
        return self.pick_bank(row, doc_index, hints) or base

    def document_memo(self, values: Dict[str, object], credit_description: str) -> str:
        history = str(values.get("history") or "").strip()
        document = str(values.get("document") or "").strip()
        memo = f"{history} CONFORME DOCUMENTO {document}".strip()
        if credit_description:
            memo += f" DE {credit_description}"
        return memo

    def invoice_memo(self, row: Sequence[str], doc_index: int, values: Dict[str, object]) -> str:
        description = str(values.get("description") or "").strip()
        invoice = str(values.get("invoice") or "").strip()
        if not invoice:
            invoice = self.document_number(row, doc_index)
            if not description:
                invoice = ""
        if not invoice:
            return description
        return f"{description} NF {invoice}".strip()

    @staticmethod
    def document_number(row: Sequence[str], doc_index: int) -> str:
        """First cell other than the document cell holding at least three digits."""
        for idx, cell in enumerate(row):
            if idx == doc_index:
                continue
            text = str(cell).strip()
            if sum(ch.isdigit() for ch in text) >= 3:
                return text
        return ""
