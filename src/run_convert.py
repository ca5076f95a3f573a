import argparse
import os
import sys
from typing import List, Optional

from convert import convert, parse_prefixes
from ingest import FORMATS
from layouts import LAYOUTS
from logging_setup import configure_logging
from report import ensure_dir, write_suggestions, write_summary
from rules import load_rules


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-convert",
        description="Convert a bank/accounting export into account-coded ledger rows",
    )
    parser.add_argument("export", help="Transaction export (.xlsx, .xls or ;-delimited text)")
    parser.add_argument("chart", help="Chart of accounts (;-delimited: code;classification;description)")
    parser.add_argument("--layout", choices=sorted(LAYOUTS), default="payments", help="Export shape")
    parser.add_argument("--debit-prefixes", default="", help="Comma-separated classification prefixes for the debit side")
    parser.add_argument("--credit-prefixes", default="", help="Comma-separated classification prefixes for the credit side")
    parser.add_argument("--format", choices=FORMATS, default=None, help="Export container format (default: from extension)")
    parser.add_argument("--out-dir", default="outputs", help="Directory for the ledger file")
    parser.add_argument("--rules", default="config/convert_rules.json", help="JSON overrides for engine settings")
    parser.add_argument("--layout-overrides", default=None, help="JSON overrides for layout column profiles")
    parser.add_argument("--summary", action="store_true", help="Also write summary.json")
    parser.add_argument("--suggestions", action="store_true", help="Also write suggestions.csv for unresolved descriptions")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING... (default: LEDGER_CONVERT_LOG_LEVEL or INFO)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        cfg = load_rules(args.rules)
        with open(args.export, "rb") as f:
            export_data = f.read()
        with open(args.chart, "rb") as f:
            chart_data = f.read()
        result = convert(
            export_data,
            chart_data,
            layout=args.layout,
            filename=os.path.basename(args.export),
            fmt=args.format,
            debit_prefixes=parse_prefixes(args.debit_prefixes),
            credit_prefixes=parse_prefixes(args.credit_prefixes),
            cfg=cfg,
            layout_overrides=args.layout_overrides,
        )
    except (ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    ensure_dir(args.out_dir)
    out_path = os.path.join(args.out_dir, result.filename)
    with open(out_path, "wb") as f:
        f.write(result.content)

    print(f"Wrote {len(result.rows)} ledger rows to {out_path}")
    print(f"Unresolved accounts: debit={result.sentinel_counts['debit']} | credit={result.sentinel_counts['credit']}")
    if args.summary:
        print(f"Summary -> {write_summary(args.out_dir, result.summary())}")
    if args.suggestions:
        path = write_suggestions(args.out_dir, result.suggestions)
        print(f"Suggestions: {len(result.suggestions)} rows -> {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
