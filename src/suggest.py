import pandas as pd
from rapidfuzz import fuzz, process

from match import AccountMatcher
from utils import normalize_text, strip_leading_number

COLUMNS = ["description", "prefixes", "rank", "similarity", "code", "classification", "chart_description"]


def build_suggestions(matcher: AccountMatcher, top_k: int = 3) -> pd.DataFrame:
    """
    For every description that resolved to the sentinel, list the top_k closest
    chart keys inside the same prefix filter, without any similarity cutoff,
    so a reviewer can pick the right account by hand.
    """
    rows = []
    for description, prefixes in matcher.misses():
        choices = matcher.choices(prefixes)
        if not choices:
            continue
        query = strip_leading_number(normalize_text(description)) or normalize_text(description)
        hits = process.extract(query, choices, scorer=fuzz.WRatio, limit=top_k)
        for rank, (key, score, _) in enumerate(hits, start=1):
            record = matcher.index.best(key, prefixes)
            if record is None:
                continue
            rows.append({
                "description": description,
                "prefixes": ",".join(prefixes),
                "rank": rank,
                "similarity": round(float(score), 1),
                "code": record.code,
                "classification": record.classification,
                "chart_description": record.description,
            })

    if not rows:
        return pd.DataFrame(columns=COLUMNS)
    return pd.DataFrame(rows, columns=COLUMNS)
