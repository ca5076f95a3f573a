import json
import os
from dataclasses import fields, replace
from typing import Any, Dict, Optional

from config import ConvertConfig
from layouts import LAYOUTS, FieldRule, LayoutRules

_TUPLE_KEYS = ("date_labels", "date_prefix_labels", "date_offsets", "date_columns", "bank_hints",
               "bank_offsets", "bank_columns")
_STRING_TUPLE_KEYS = ("date_labels", "date_prefix_labels", "bank_hints")
_FIELD_TUPLE_KEYS = ("offsets", "columns")


def load_rules(path: str = "config/convert_rules.json") -> ConvertConfig:
    """ConvertConfig with overrides from a JSON file; defaults when the file is absent."""
    if not path or not os.path.exists(path):
        return ConvertConfig()

    with open(path, "r") as f:
        raw: Dict[str, Any] = json.load(f)

    defaults = ConvertConfig()
    overrides = {}
    for fld in fields(ConvertConfig):
        if fld.name not in raw:
            continue
        current = getattr(defaults, fld.name)
        value = raw[fld.name]
        if isinstance(current, bool):
            overrides[fld.name] = bool(value)
        elif isinstance(current, int):
            overrides[fld.name] = int(value)
        elif isinstance(current, float):
            overrides[fld.name] = float(value)
        else:
            overrides[fld.name] = str(value)
    return replace(defaults, **overrides)


def _apply_field_overrides(rule: FieldRule, raw: Dict[str, Any]) -> FieldRule:
    changes = {}
    for key, value in raw.items():
        if key == "name" or not hasattr(rule, key):
            continue
        changes[key] = tuple(int(v) for v in value) if key in _FIELD_TUPLE_KEYS else value
    return replace(rule, **changes)


def load_layout(name: str, overrides_path: Optional[str] = None) -> LayoutRules:
    layout = LAYOUTS.get(name)
    if layout is None:
        raise ValueError(f"Unknown layout '{name}'. Expected one of: {sorted(LAYOUTS)}")
    if not overrides_path:
        return layout

    with open(overrides_path, "r") as f:
        raw: Dict[str, Any] = json.load(f)
    section = raw.get(name, {})

    changes = {}
    for key, value in section.items():
        if key in ("name", "fields", "output"):
            continue
        if key in _TUPLE_KEYS:
            changes[key] = tuple(v if key in _STRING_TUPLE_KEYS else int(v) for v in value)
        elif hasattr(layout, key):
            changes[key] = value

    field_overrides = section.get("fields", {})
    if field_overrides:
        changes["fields"] = tuple(
            _apply_field_overrides(rule, field_overrides.get(rule.name, {}))
            for rule in layout.fields
        )
    return replace(layout, **changes)
