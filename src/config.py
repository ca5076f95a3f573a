from dataclasses import dataclass

SENTINEL_CODE = "999999"


@dataclass(frozen=True)
class ConvertConfig:
    sentinel_code: str = SENTINEL_CODE

    min_similarity: int = 70             # 0-100 RapidFuzz threshold for the fuzzy fallback
    top_k_suggestions: int = 3

    date_lookback_rows: int = 60
    counterparty_lookback_rows: int = 60
    serial_min: float = 35000.0          # spreadsheet serials outside (min, max) are not dates
    serial_max: float = 47000.0

    early_label_columns: int = 6         # date labels only count in the first N cells
    section_marker_columns: int = 3
    max_header_cells: int = 6
    hint_min_hits: int = 3

    delimiter: str = ";"
    chart_encoding: str = "latin-1"
    text_encoding: str = "latin-1"

    @property
    def serial_range(self) -> tuple:
        return (self.serial_min, self.serial_max)
