from typing import Dict, List, Optional, Sequence

from classifier import is_counterparty_marker
from layouts import MONEY, FieldRule
from utils import parse_money


def _cell(row: Sequence[str], idx: int) -> str:
    if idx < 0 or idx >= len(row):
        return ""
    return str(row[idx]).strip()


def candidate_columns(rule: FieldRule, doc_index: int, hints: Optional[Dict[str, int]] = None) -> List[int]:
    """
    Column search order for a field: learned hint column, then offsets from
    the document column, then fixed fallback columns. Duplicates and negative
    indices are dropped.
    """
    order: List[int] = []
    hints = hints or {}
    if rule.hint and hints.get(rule.hint) is not None:
        order.append(hints[rule.hint])
    order += [doc_index + off for off in rule.offsets] if doc_index >= 0 else []
    order += list(rule.columns)

    seen = set()
    out = []
    for idx in order:
        if idx < 0 or idx in seen:
            continue
        seen.add(idx)
        out.append(idx)
    return out


def extract_money(row: Sequence[str], columns: Sequence[int], skip_zero: bool = False) -> Optional[float]:
    for idx in columns:
        raw = _cell(row, idx)
        if not raw:
            continue
        value = parse_money(raw)
        if value is None:
            continue
        if skip_zero and value == 0:
            continue
        return value
    return None


def extract_text(row: Sequence[str], columns: Sequence[int]) -> str:
    for idx in columns:
        raw = _cell(row, idx)
        if raw and not is_counterparty_marker(raw):
            return raw
    return ""


def extract_field(row: Sequence[str], rule: FieldRule, doc_index: int,
                  hints: Optional[Dict[str, int]] = None):
    columns = candidate_columns(rule, doc_index, hints)
    if rule.kind == MONEY:
        return extract_money(row, columns, rule.skip_zero)
    return extract_text(row, columns)
