from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz, process

from accounts import AccountRecord, ChartIndex
from config import SENTINEL_CODE
from logging_setup import get_logger
from utils import normalize_text, strip_leading_number

logger = get_logger("ledger_convert.match")

CacheKey = Tuple[str, Tuple[str, ...]]


@dataclass(frozen=True)
class MatchResult:
    code: str
    kind: str
    matched_key: str = ""
    record: Optional[AccountRecord] = None
    similarity: float = 100.0

    @property
    def found(self) -> bool:
        return self.record is not None


def clean_prefixes(prefixes: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not prefixes:
        return ()
    return tuple(sorted({p.strip() for p in prefixes if p and p.strip()}))


class AccountMatcher:
    """Resolves free-text descriptions to account codes.

    Exact key, then the key without a leading numeric token, then the closest
    key by RapidFuzz similarity restricted to keys that pass the prefix
    filter. Results are memoized per (uppercased description, prefixes) for
    the lifetime of the matcher, which is one conversion request.
    """

    def __init__(self, index: ChartIndex, min_similarity: int = 70,
                 sentinel: str = SENTINEL_CODE):
        self.index = index
        self.min_similarity = min_similarity
        self.sentinel = sentinel
        self._cache: Dict[CacheKey, MatchResult] = {}
        self._choices: Dict[Tuple[str, ...], List[str]] = {}
        self.cache_hits = 0
        self.fuzzy_searches = 0

    def resolve(self, description: str, prefixes: Optional[Iterable[str]] = None) -> str:
        return self.match(description, prefixes).code

    def match(self, description: str, prefixes: Optional[Iterable[str]] = None) -> MatchResult:
        prefixes = clean_prefixes(prefixes)
        key = (str(description or "").strip().upper(), prefixes)
        cached = self._cache.get(key)
        if cached is not None:
            self.cache_hits += 1
            return cached

        result = self._match(description, prefixes)
        self._cache[key] = result
        logger.debug("match %r prefixes=%s -> %s (%s)", description, list(prefixes), result.code, result.kind)
        return result

    def choices(self, prefixes: Tuple[str, ...]) -> List[str]:
        if prefixes not in self._choices:
            self._choices[prefixes] = self.index.keys_matching(prefixes)
        return self._choices[prefixes]

    def misses(self) -> List[CacheKey]:
        return [k for k, r in self._cache.items() if r.kind.startswith("not_found")]

    def breakdown(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for result in self._cache.values():
            counts[result.kind] = counts.get(result.kind, 0) + 1
        return counts

    def _miss(self, kind: str) -> MatchResult:
        return MatchResult(code=self.sentinel, kind=kind, similarity=0.0)

    def _match(self, description: str, prefixes: Tuple[str, ...]) -> MatchResult:
        suffix = "_filtered" if prefixes else "_all"
        norm = normalize_text(description)
        if not norm:
            return self._miss("empty")
        stripped = strip_leading_number(norm)

        queries = [(norm, "exact"), (stripped, "exact_stripped")] if stripped != norm else [(norm, "exact")]
        for query, kind in queries:
            record = self.index.best(query, prefixes)
            if record is not None:
                return MatchResult(record.code, kind + suffix, query, record)

        # never search outside the filter: an empty filtered space is a miss
        choices = self.choices(prefixes)
        if not choices:
            return self._miss("not_found" + suffix)

        self.fuzzy_searches += 1
        fuzzy_queries = [(norm, "fuzzy")]
        if stripped != norm and stripped:
            fuzzy_queries.append((stripped, "fuzzy_stripped"))
        for query, kind in fuzzy_queries:
            hit = process.extractOne(query, choices, scorer=fuzz.WRatio, score_cutoff=self.min_similarity)
            if hit is None:
                continue
            matched_key, score = hit[0], hit[1]
            record = self.index.best(matched_key, prefixes)
            if record is not None:
                return MatchResult(record.code, kind + suffix, matched_key, record, float(score))

        return self._miss("not_found" + suffix)
