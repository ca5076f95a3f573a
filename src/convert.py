"""One conversion request: export bytes + chart bytes in, ledger bytes out.

Every call builds its own ChartIndex, AccountMatcher (and so its match
cache) and ProcessingContext, and shares nothing with other calls.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from accounts import ChartIndex
from config import ConvertConfig
from engine import LedgerEngine, LedgerRow, ScanStats
from errors import ConversionError
from ingest import load_rows
from logging_setup import get_logger
from match import AccountMatcher
from report import conversion_summary, sentinel_counts, write_ledger
from rules import load_layout
from suggest import build_suggestions

logger = get_logger("ledger_convert.convert")


def parse_prefixes(raw: Optional[str]) -> List[str]:
    """'1.1, 2.1,,' -> ['1.1', '2.1']"""
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass
class ConversionResult:
    layout: str
    filename: str
    content: bytes
    rows: List[LedgerRow]
    stats: ScanStats
    sentinel_counts: Dict[str, int]
    match_breakdown: Dict[str, int]
    suggestions: pd.DataFrame = field(default_factory=pd.DataFrame)

    def summary(self) -> Dict:
        return conversion_summary(self.layout, self.filename, self.stats,
                                  self.sentinel_counts, self.match_breakdown)


def output_filename(prefix: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{prefix}_{now.strftime('%Y%m%d_%H%M%S')}.csv"


def convert(export_data: bytes,
            chart_data: bytes,
            layout: str = "payments",
            filename: Optional[str] = None,
            fmt: Optional[str] = None,
            debit_prefixes: Optional[List[str]] = None,
            credit_prefixes: Optional[List[str]] = None,
            cfg: Optional[ConvertConfig] = None,
            layout_overrides: Optional[str] = None,
            now: Optional[datetime] = None) -> ConversionResult:
    cfg = cfg or ConvertConfig()
    rules = load_layout(layout, layout_overrides)

    try:
        rows = load_rows(export_data, filename=filename, fmt=fmt,
                         encoding=cfg.text_encoding, delimiter=cfg.delimiter)
        index = ChartIndex.from_bytes(chart_data, encoding=cfg.chart_encoding, delimiter=cfg.delimiter)
    except ConversionError as exc:
        logger.error("Conversion failed: %s", exc)
        raise

    matcher = AccountMatcher(index, min_similarity=cfg.min_similarity, sentinel=cfg.sentinel_code)
    engine = LedgerEngine(matcher, rules, cfg, debit_prefixes, credit_prefixes)
    scan = engine.scan(rows)

    content = write_ledger(scan.rows, rules, delimiter=cfg.delimiter)
    result = ConversionResult(
        layout=rules.name,
        filename=output_filename(rules.output.filename_prefix, now),
        content=content,
        rows=scan.rows,
        stats=scan.stats,
        sentinel_counts=sentinel_counts(scan.rows, cfg.sentinel_code),
        match_breakdown=matcher.breakdown(),
        suggestions=build_suggestions(matcher, cfg.top_k_suggestions),
    )
    logger.info("Converted %d ledger rows -> %s (sentinel debit=%d credit=%d, cache hits=%d, fuzzy searches=%d)",
                len(scan.rows), result.filename, result.sentinel_counts["debit"],
                result.sentinel_counts["credit"], matcher.cache_hits, matcher.fuzzy_searches)
    return result
