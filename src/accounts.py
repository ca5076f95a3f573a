from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ingest import load_chart_rows
from logging_setup import get_logger
from utils import normalize_text

logger = get_logger("ledger_convert.accounts")


@dataclass(frozen=True)
class AccountRecord:
    code: str
    classification: str
    description: str

    def matches(self, prefixes: Sequence[str]) -> bool:
        return not prefixes or any(self.classification.startswith(p) for p in prefixes)


def _clean_code(raw: str) -> str:
    code = raw.strip()
    if code.endswith(".0"):
        code = code[:-2]
    return code


class ChartIndex:
    """Normalized description -> account records, most specific classification first.

    Built once per request and never mutated afterwards.
    """

    def __init__(self, records: Iterable[AccountRecord] = ()):
        entries: Dict[str, List[AccountRecord]] = {}
        for record in records:
            key = normalize_text(record.description)
            if not key:
                continue
            entries.setdefault(key, []).append(record)

        # stable sort keeps file order among equally specific records
        self._entries: Dict[str, Tuple[AccountRecord, ...]] = {
            key: tuple(sorted(items, key=lambda r: len(r.classification), reverse=True))
            for key, items in entries.items()
        }
        self._keys: Tuple[str, ...] = tuple(self._entries)

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[str]]) -> "ChartIndex":
        records = []
        skipped = 0
        for row in rows:
            cells = [str(c or "").strip() for c in row]
            if len(cells) < 3 or sum(1 for c in cells if c) < 3:
                skipped += 1
                continue
            code, classification, description = _clean_code(cells[0]), cells[1], cells[2]
            if not code or not description:
                skipped += 1
                continue
            records.append(AccountRecord(code, classification, description))
        index = cls(records)
        logger.info("Chart index: %d accounts under %d descriptions (%d rows skipped)",
                    len(records), len(index), skipped)
        return index

    @classmethod
    def from_bytes(cls, data: bytes, encoding: str = "latin-1", delimiter: str = ";") -> "ChartIndex":
        return cls.from_rows(load_chart_rows(data, encoding=encoding, delimiter=delimiter))

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def keys(self) -> Tuple[str, ...]:
        return self._keys

    def records(self, key: str) -> Tuple[AccountRecord, ...]:
        return self._entries.get(key, ())

    def best(self, key: str, prefixes: Sequence[str] = ()) -> Optional[AccountRecord]:
        """Most specific record under key passing the prefix filter.

        A filter that removes every record yields None; it never falls back
        to the unfiltered records.
        """
        for record in self._entries.get(key, ()):
            if record.matches(prefixes):
                return record
        return None

    def keys_matching(self, prefixes: Sequence[str] = ()) -> List[str]:
        if not prefixes:
            return list(self._keys)
        return [k for k in self._keys if any(r.matches(prefixes) for r in self._entries[k])]
