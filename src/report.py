import io
import json
import os
from typing import Dict, List, Sequence

import pandas as pd

from engine import LedgerRow, ScanStats
from layouts import LayoutRules
from utils import format_decimal_comma, sanitize_field

DATE_FORMAT = "%d/%m/%Y"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _render(row: LedgerRow, source: str) -> str:
    if source == "date":
        return row.date.strftime(DATE_FORMAT) if row.date else ""
    if source in row.amounts:
        value = row.amounts[source]
        return "" if value is None else format_decimal_comma(value)
    return str(getattr(row, source, "") or "")


def ledger_frame(rows: Sequence[LedgerRow], layout: LayoutRules) -> pd.DataFrame:
    """
    One column per output header, every cell already rendered as sanitized text.
    Money fields with default_zero render a missing value as 0,00.
    """
    output = layout.output
    default_zero = {rule.name: rule.default_zero for rule in layout.fields}
    records = []
    for row in rows:
        record = []
        for _, source in output.columns:
            if source in row.amounts and row.amounts[source] is None and default_zero.get(source):
                text = format_decimal_comma(0.0)
            else:
                text = _render(row, source)
            record.append(sanitize_field(text))
        records.append(record)
    headers = [sanitize_field(h) for h in output.headers]
    return pd.DataFrame(records, columns=headers, dtype=object)


def write_ledger(rows: Sequence[LedgerRow], layout: LayoutRules, delimiter: str = ";") -> bytes:
    df = ledger_frame(rows, layout)
    buf = io.StringIO()
    df.to_csv(buf, sep=delimiter, index=False, lineterminator="\n")
    return buf.getvalue().encode(layout.output.encoding, errors="replace")


def conversion_summary(layout: str, filename: str, stats: ScanStats,
                       sentinel_counts: Dict[str, int], match_kinds: Dict[str, int]) -> Dict:
    return {
        "layout": layout,
        "filename": filename,
        "ledger_rows": stats.emitted,
        "scan": stats.to_dict(),
        "sentinel_codes": sentinel_counts,
        "match_breakdown": match_kinds,
    }


def write_summary(outputs_dir: str, summary: Dict, name: str = "summary.json") -> str:
    ensure_dir(outputs_dir)
    path = os.path.join(outputs_dir, name)
    with open(path, "w") as f:
        json.dump(summary, f, indent=2, default=str)
    return path


def write_suggestions(outputs_dir: str, suggestions: pd.DataFrame, name: str = "suggestions.csv") -> str:
    ensure_dir(outputs_dir)
    path = os.path.join(outputs_dir, name)
    suggestions.to_csv(path, index=False)
    return path


def sentinel_counts(rows: List[LedgerRow], sentinel: str) -> Dict[str, int]:
    return {
        "debit": sum(1 for r in rows if r.debit_code == sentinel),
        "credit": sum(1 for r in rows if r.credit_code == sentinel),
    }
